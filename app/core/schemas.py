"""Response envelope shared by every endpoint."""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

from app.core.helpers import total_pages

T = TypeVar("T")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, totalPages=total_pages(total, limit))


class ApiResponse(BaseModel, Generic[T]):
    """{success, message, data?, error?, pagination?} as consumed by the web client."""

    success: bool = True
    message: str = "Success"
    data: Optional[T] = None
    error: Optional[Any] = None
    pagination: Optional[Pagination] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str
