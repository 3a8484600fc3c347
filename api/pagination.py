"""
Pagination parameter parsing for list endpoints.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from api.errors import InvalidRequestError

MAX_PAGE_SIZE = 100

# Signed 64-bit range accepted by BSON integers
INT64_MIN = -2 ** 63
INT64_MAX = 2 ** 63 - 1


class PaginationDefaults(BaseModel):
    """Per-resource pagination settings passed into parse_pagination."""
    default_page_size: int = Field(15, ge=1, description="Page size when none is requested")
    max_page_size: int = Field(MAX_PAGE_SIZE, ge=1, description="Largest accepted page size")

    model_config = {"frozen": True}


class PaginationSpec(BaseModel):
    """Validated page index and page size."""
    page: int = Field(..., ge=1, description="Page number (starts from 1)")
    page_size: int = Field(..., ge=1, description="Records per page")

    model_config = {"frozen": True}

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


def coerce_int(raw: Any) -> Optional[int]:
    """
    Coerce a request value into an int.

    Returns:
        The integer, or None when the value is not a whole number
        that fits in a signed 64-bit integer
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        number = raw
    elif isinstance(raw, str):
        text = raw.strip()
        if not (text.isascii() and text.removeprefix("-").isdigit()):
            return None
        number = int(text)
    else:
        return None

    if not INT64_MIN <= number <= INT64_MAX:
        return None
    return number


def parse_pagination(
    page_raw: Optional[Any],
    page_size_raw: Optional[Any],
    defaults: PaginationDefaults
) -> PaginationSpec:
    """
    Validate page and page size request parameters.

    Args:
        page_raw: Requested page, 1 when absent
        page_size_raw: Requested page size, the resource default when absent
        defaults: Resource pagination settings

    Returns:
        PaginationSpec with bounded values

    Raises:
        InvalidRequestError: Listing every invalid parameter
    """
    errors = []

    page = 1 if page_raw is None else coerce_int(page_raw)
    if page is None or page < 1:
        errors.append("page must be a positive integer")

    page_size = defaults.default_page_size if page_size_raw is None else coerce_int(page_size_raw)
    if page_size is None or not 1 <= page_size <= defaults.max_page_size:
        errors.append(f"page_size must be an integer between 1 and {defaults.max_page_size}")

    if not errors and (page - 1) * page_size > INT64_MAX:
        errors.append("page must be a positive integer")

    if errors:
        raise InvalidRequestError(errors)
    return PaginationSpec(page=page, page_size=page_size)
