"""
Utilities for API pagination.
"""
from typing import Any, Dict
from fastapi import Query


class PaginationParams:
    """
    Pagination parameters for API endpoints.

    This class is used as a FastAPI dependency to extract pagination parameters
    from query parameters.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number"),
        limit: int = Query(50, ge=1, le=500, description="Items per page"),
    ):
        """
        Initialize pagination parameters.

        Args:
            page: Page number (1-based)
            limit: Items per page
        """
        self.page = page
        self.limit = limit

        # Calculate skip value for database queries
        self.skip = (page - 1) * limit


def page_info(total: int, pagination: PaginationParams) -> Dict[str, Any]:
    """
    Build the pagination block of a list response.

    Args:
        total: Total number of items across all pages
        pagination: Pagination parameters

    Returns:
        Dict: page, limit, total and totalPages
    """
    total_pages = (total + pagination.limit - 1) // pagination.limit

    return {
        "page": pagination.page,
        "limit": pagination.limit,
        "total": total,
        "totalPages": total_pages,
    }
