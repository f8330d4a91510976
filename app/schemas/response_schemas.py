# app/schemas/response_schemas.py
import math
from typing import Generic, TypeVar, Optional

from pydantic import BaseModel

T = TypeVar("T")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit) if limit else 1)


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str
    data: Optional[T] = None
    count: Optional[int] = None
    pagination: Optional[Pagination] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str


def ok(message: str, data=None, pagination: Optional[Pagination] = None) -> dict:
    """Build the success envelope; list payloads also get `count`."""
    body = {"success": True, "message": message, "data": data}
    if isinstance(data, list):
        body["count"] = len(data)
    if pagination is not None:
        body["pagination"] = pagination
    return body
