from typing import Optional, Generic, TypeVar, List
from pydantic import BaseModel

from constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

T = TypeVar('T')


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated response model"""
    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


def get_pagination_params(page: Optional[int] = None, page_size: Optional[int] = None) -> tuple[int, int]:
    """
    Turn 1-indexed page/page_size into (skip, limit) for a MongoDB cursor.
    Missing or non-positive values fall back to the defaults; page_size is capped.
    """
    page = page if page and page > 0 else DEFAULT_PAGE
    page_size = min(page_size if page_size and page_size > 0 else DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE)
    return (page - 1) * page_size, page_size


def create_paginated_response(items: List[T], total: int, page: int, page_size: int) -> PaginatedResponse[T]:
    total_pages = (total + page_size - 1) // page_size if total > 0 else 0

    return PaginatedResponse(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_previous=page > 1
    )
