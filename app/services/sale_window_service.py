# app/services/sale_window_service.py
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidTimestampError
from app.models.sale_models import SaleOccasion, SaleProduct
from app.services.discount_resolution import ActiveCampaign, SaleEntry
from app.utils.decimal_utils import to_decimal
from app.utils.time_utils import as_utc

logger = logging.getLogger(__name__)


def parse_timestamp(value: Union[str, datetime, None]) -> datetime:
    """Parse an ISO-8601 time parameter into aware UTC."""
    if isinstance(value, datetime):
        return as_utc(value)
    if not value or not isinstance(value, str):
        raise InvalidTimestampError()
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise InvalidTimestampError(f"Invalid time parameter: {value!r}")
    return as_utc(parsed)


# --------------------------
# ACTIVE CAMPAIGNS AT A POINT IN TIME
# --------------------------
async def find_active_campaigns(
    db: AsyncSession,
    product_ids: Optional[Iterable[int]],
    at: Union[str, datetime],
) -> List[ActiveCampaign]:
    """
    Campaigns whose window contains ``at`` (both ends inclusive) and which
    list at least one of ``product_ids``; only matching entries are attached.
    ``product_ids=None`` matches every product. Runs a single query.
    """
    at = parse_timestamp(at)
    ids = None if product_ids is None else set(product_ids)
    if ids is not None and not ids:
        return []

    stmt = (
        select(
            SaleOccasion.id,
            SaleOccasion.name,
            SaleOccasion.start_at,
            SaleOccasion.end_at,
            SaleProduct.product_id,
            SaleProduct.sale_quantity,
            SaleProduct.sale_percent,
        )
        .join(SaleProduct, SaleProduct.sale_id == SaleOccasion.id)
        .where(SaleOccasion.start_at <= at, SaleOccasion.end_at >= at)
        .order_by(SaleOccasion.id, SaleProduct.position)
    )
    if ids is not None:
        stmt = stmt.where(SaleProduct.product_id.in_(ids))

    rows = (await db.execute(stmt)).all()

    grouped = {}
    for sale_id, name, start_at, end_at, product_id, sale_quantity, sale_percent in rows:
        campaign = grouped.get(sale_id)
        if campaign is None:
            campaign = grouped[sale_id] = {
                "sale_id": sale_id,
                "name": name,
                "start_at": as_utc(start_at),
                "end_at": as_utc(end_at),
                "entries": {},
            }
        campaign["entries"][product_id] = SaleEntry(
            product_id=product_id,
            sale_quantity=sale_quantity,
            sale_percent=to_decimal(sale_percent),
        )

    campaigns = [ActiveCampaign(**data) for data in grouped.values()]
    logger.debug("Found %d active campaign(s) at %s", len(campaigns), at.isoformat())
    return campaigns
