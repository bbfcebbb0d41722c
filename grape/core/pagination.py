from dataclasses import dataclass

from grape.schemas.schemas import Pagination
from grape.services.errors import ValidationError

MAX_PAGE_SIZE = 50


@dataclass(frozen=True)
class PageRequest:
    """Offset pagination shared by every list read: offset = (page - 1) * limit."""

    page: int = 1
    limit: int = 20

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValidationError("Page must be 1 or greater")
        if not 1 <= self.limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def build_pagination(page: PageRequest, returned: int, total: int) -> Pagination:
    """Build the response envelope; has_more holds iff rows remain past this page."""
    return Pagination(
        page=page.page,
        limit=page.limit,
        total=total,
        has_more=page.offset + returned < total,
    )
