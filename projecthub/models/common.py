"""
Shared response schemas.
"""

from typing import Generic, List, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Pagination(BaseModel):
    """Limit/offset page metadata."""
    total: int
    limit: int
    offset: int
    has_more: bool


class Page(BaseModel, Generic[T]):
    """A page of items plus pagination metadata."""
    items: List[T]
    pagination: Pagination


class Message(BaseModel):
    """Plain acknowledgement."""
    message: str
