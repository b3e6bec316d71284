"""Enumerations shared by the ledger, projects and people records."""

from enum import Enum


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class TransactionCategory(str, Enum):
    # Income
    CLIENT_PAYMENT = "client_payment"
    OTHER_INCOME = "other_income"
    # Expense
    EMPLOYEE_SALARY = "employee_salary"
    EMPLOYEE_BONUS = "employee_bonus"
    EQUIPMENT = "equipment"
    SOFTWARE = "software"
    MARKETING = "marketing"
    OFFICE = "office"
    UTILITIES = "utilities"
    OTHER_EXPENSE = "other_expense"


INCOME_CATEGORIES: frozenset[TransactionCategory] = frozenset({
    TransactionCategory.CLIENT_PAYMENT,
    TransactionCategory.OTHER_INCOME,
})

EXPENSE_CATEGORIES: frozenset[TransactionCategory] = frozenset(
    set(TransactionCategory) - INCOME_CATEGORIES
)

# Payments that count against an employee's agreed compensation
EMPLOYEE_PAYMENT_CATEGORIES: frozenset[TransactionCategory] = frozenset({
    TransactionCategory.EMPLOYEE_SALARY,
    TransactionCategory.EMPLOYEE_BONUS,
})


def categories_for(transaction_type: TransactionType) -> frozenset[TransactionCategory]:
    if transaction_type == TransactionType.INCOME:
        return INCOME_CATEGORIES
    return EXPENSE_CATEGORIES


def category_matches_type(
    category: TransactionCategory, transaction_type: TransactionType
) -> bool:
    return category in categories_for(transaction_type)


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    INSTAPAY = "instapay"
    WALLET = "wallet"
    CARD = "card"
    OTHER = "other"


class ProjectStatus(str, Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ProjectPriority(str, Enum):
    NORMAL = "normal"
    MEDIUM = "medium"
    HIGH = "high"


class UserRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    MODERATOR = "moderator"
    OPERATION = "operation"
    EMPLOYEE = "employee"


class EmploymentType(str, Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    FREELANCER = "freelancer"
