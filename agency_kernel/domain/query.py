"""
Query helpers -- enum filter normalisation and pagination.

List filters arrive from query strings in arbitrary case.  They are matched
case-insensitively against the canonical enum values; anything unrecognised
is dropped rather than rejected, so a bad filter widens the result set
instead of failing the request.
"""

from dataclasses import dataclass
from enum import Enum
from math import ceil
from typing import Any, Generic, Sequence, TypeVar
from uuid import UUID

from agency_kernel.exceptions import DomainValidationError

E = TypeVar("E", bound=Enum)
T = TypeVar("T")

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100


def normalize_enum(value: Any, enum_cls: type[E]) -> E | None:
    """
    Normalise a filter value to a member of ``enum_cls``.

    Returns None for None, empty or unrecognised values.
    """
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    text = str(value).strip().lower()
    if not text:
        return None
    for member in enum_cls:
        if str(member.value).lower() == text:
            return member
    return None


def parse_enum(value: Any, enum_cls: type[E], field: str) -> E:
    """
    Strict counterpart of normalize_enum for write payloads.

    Raises:
        DomainValidationError: If value is not a member of ``enum_cls``.
    """
    member = normalize_enum(value, enum_cls)
    if member is None:
        allowed = ", ".join(str(m.value) for m in enum_cls)
        raise DomainValidationError(field, f"'{value}' is not one of: {allowed}")
    return member


@dataclass(frozen=True)
class Pagination:
    """Page request with clamped bounds."""

    page: int = 1
    limit: int = DEFAULT_PAGE_LIMIT

    @classmethod
    def of(
        cls,
        page: Any = None,
        limit: Any = None,
        max_limit: int = MAX_PAGE_LIMIT,
        default_limit: int = DEFAULT_PAGE_LIMIT,
    ) -> "Pagination":
        """Build from loose inputs; non-numeric or out-of-range values are clamped."""
        try:
            page_num = int(page) if page is not None else 1
        except (TypeError, ValueError):
            page_num = 1
        try:
            limit_num = int(limit) if limit is not None else default_limit
        except (TypeError, ValueError):
            limit_num = default_limit
        return cls(
            page=max(page_num, 1),
            limit=min(max(limit_num, 1), max_limit),
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def total_pages(self, total: int) -> int:
        return ceil(total / self.limit) if total else 0


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of results plus totals."""

    items: Sequence[T]
    total: int
    page: int
    limit: int
    total_pages: int

    @classmethod
    def build(cls, items: Sequence[T], total: int, pagination: Pagination) -> "Page[T]":
        return cls(
            items=tuple(items),
            total=total,
            page=pagination.page,
            limit=pagination.limit,
            total_pages=pagination.total_pages(total),
        )


def as_uuid(value: Any, field: str = "id") -> UUID:
    """
    Coerce an identifier to UUID.

    Raises:
        DomainValidationError: If value is not a well-formed UUID.
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise DomainValidationError(field, f"'{value}' is not a valid identifier") from exc


def optional_uuid(value: Any, field: str = "id") -> UUID | None:
    if value is None or value == "":
        return None
    return as_uuid(value, field)
