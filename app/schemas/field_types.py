# app/schemas/field_types.py
from datetime import datetime
from decimal import Decimal

from pydantic import AfterValidator, Field
from typing_extensions import Annotated

from app.utils.time_utils import as_utc

# Define reusable constrained types
PositiveDecimal = Annotated[Decimal, Field(gt=0, max_digits=14, decimal_places=2)]
NonNegativeDecimal = Annotated[Decimal, Field(ge=0, max_digits=14, decimal_places=2)]
Percent = Annotated[Decimal, Field(ge=0, le=100, max_digits=5, decimal_places=2)]
PositiveId = Annotated[int, Field(gt=0)]
NonEmptyStr = Annotated[str, Field(min_length=1, max_length=255)]

# every timestamp crossing the API boundary is aware UTC
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
