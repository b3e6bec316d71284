"""
Pure domain layer.

Value objects, enums and helpers with NO dependencies on:
- ORM sessions
- Database
- Wall-clock time
- I/O
"""

from agency_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from agency_kernel.domain.currency import (
    DEFAULT_CURRENCY,
    SUPPORTED_CURRENCIES,
    ConvertedAmounts,
    Currency,
    display_amount,
    is_supported_currency,
    parse_currency,
)
from agency_kernel.domain.enums import (
    EMPLOYEE_PAYMENT_CATEGORIES,
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    EmploymentType,
    PaymentMethod,
    ProjectPriority,
    ProjectStatus,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
    UserRole,
    category_matches_type,
)
from agency_kernel.domain.query import (
    Page,
    Pagination,
    as_uuid,
    normalize_enum,
    optional_uuid,
    parse_enum,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Currency",
    "DEFAULT_CURRENCY",
    "SUPPORTED_CURRENCIES",
    "ConvertedAmounts",
    "display_amount",
    "is_supported_currency",
    "parse_currency",
    "TransactionType",
    "TransactionCategory",
    "TransactionStatus",
    "PaymentMethod",
    "ProjectStatus",
    "ProjectPriority",
    "UserRole",
    "EmploymentType",
    "INCOME_CATEGORIES",
    "EXPENSE_CATEGORIES",
    "EMPLOYEE_PAYMENT_CATEGORIES",
    "category_matches_type",
    "Page",
    "Pagination",
    "normalize_enum",
    "parse_enum",
    "as_uuid",
    "optional_uuid",
]
