"""
Typed Exception Hierarchy for the Agency Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The ledger, staffing and provisioning paths fail for very different reasons:
a caller passed a project that does not exist, a currency rate could not be
fetched, an email could not be delivered.  The boundary layer must map each
of these to a different response without parsing message strings, and must
log infrastructure failures as operational incidents.

Every exception therefore has:
  1. A TYPED class (catch by type, not by message)
  2. A ``code`` class attribute (machine-readable, API-safe)
  3. A ``severity`` class attribute: ``"client"`` for domain validation
     failures, ``"server"`` for infrastructure failures
  4. Structured attributes carrying the offending identifiers

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AgencyError (base)
    |
    +-- NotFoundError
    |   +-- ProjectNotFoundError
    |   +-- ClientNotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- UserNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- MembershipNotFoundError
    |   +-- DepartmentNotFoundError
    |   +-- PositionNotFoundError
    |   +-- ServiceNotFoundError
    |
    +-- InactiveError
    |   +-- ProjectInactiveError
    |   +-- ClientInactiveError
    |   +-- DepartmentInactiveError
    |   +-- EmployeeInactiveError
    |
    +-- InvalidReferenceError
    |   +-- ClientProjectMismatchError
    |   +-- EmployeeNotAssignedError
    |   +-- CategoryTypeMismatchError
    |   +-- PositionDepartmentMismatchError
    |   +-- SkillPositionMismatchError
    |
    +-- InvalidStateTransitionError
    |   +-- CompletedTransactionImmutableError
    |
    +-- ConflictError
    |   +-- DuplicateEmailError
    |   +-- DuplicateKeyError
    |   +-- ReferencedRecordError
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- RateFetchError          (severity=server)
    |   +-- MissingRateError
    |
    +-- DomainValidationError
    +-- NotAuthorizedError
    +-- EmailDeliveryError          (severity=server)

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Domain exceptions inherit from Exception, not ValueError/LookupError, so
   they can be caught as a group without catching programming errors.

2. ``code`` and ``severity`` are class attributes so that documentation and
   the boundary mapping table can be generated without instantiation.

3. A conversion failure is never downgraded to a partial write.  Callers
   that catch ``CurrencyError`` must abort the write.
"""

from __future__ import annotations

from typing import Any

CLIENT = "client"
SERVER = "server"


class AgencyError(Exception):
    """
    Base exception for all agency kernel errors.

    All subclasses carry a ``code`` and a ``severity`` class attribute.
    """

    code: str = "AGENCY_ERROR"
    severity: str = CLIENT


# Not found


class NotFoundError(AgencyError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"
    entity: str = "Entity"

    def __init__(self, entity_id: Any):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity} not found: {self.entity_id}")


class ProjectNotFoundError(NotFoundError):
    code: str = "PROJECT_NOT_FOUND"
    entity: str = "Project"


class ClientNotFoundError(NotFoundError):
    code: str = "CLIENT_NOT_FOUND"
    entity: str = "Client"


class EmployeeNotFoundError(NotFoundError):
    code: str = "EMPLOYEE_NOT_FOUND"
    entity: str = "Employee"


class UserNotFoundError(NotFoundError):
    code: str = "USER_NOT_FOUND"
    entity: str = "User"


class TransactionNotFoundError(NotFoundError):
    code: str = "TRANSACTION_NOT_FOUND"
    entity: str = "Transaction"


class MembershipNotFoundError(NotFoundError):
    code: str = "MEMBERSHIP_NOT_FOUND"
    entity: str = "Project membership"


class DepartmentNotFoundError(NotFoundError):
    code: str = "DEPARTMENT_NOT_FOUND"
    entity: str = "Department"


class PositionNotFoundError(NotFoundError):
    code: str = "POSITION_NOT_FOUND"
    entity: str = "Position"


class ServiceNotFoundError(NotFoundError):
    """One or more services referenced by a project do not exist."""

    code: str = "SERVICE_NOT_FOUND"
    entity: str = "Service"


# Inactive


class InactiveError(AgencyError):
    """Referenced entity exists but is soft-disabled."""

    code: str = "INACTIVE"
    entity: str = "Entity"

    def __init__(self, entity_id: Any, name: str | None = None):
        self.entity_id = str(entity_id)
        self.name = name
        label = name or self.entity_id
        super().__init__(f"{self.entity} {label} is not active")


class ProjectInactiveError(InactiveError):
    code: str = "PROJECT_INACTIVE"
    entity: str = "Project"


class ClientInactiveError(InactiveError):
    code: str = "CLIENT_INACTIVE"
    entity: str = "Client"


class DepartmentInactiveError(InactiveError):
    code: str = "DEPARTMENT_INACTIVE"
    entity: str = "Department"


class EmployeeInactiveError(InactiveError):
    """The employee's linked user account is deactivated."""

    code: str = "EMPLOYEE_INACTIVE"
    entity: str = "Employee"


# Invalid references


class InvalidReferenceError(AgencyError):
    """A cross-entity invariant is violated."""

    code: str = "INVALID_REFERENCE"


class ClientProjectMismatchError(InvalidReferenceError):
    """The client given does not own the project given."""

    code: str = "CLIENT_PROJECT_MISMATCH"

    def __init__(self, client_id: Any, project_id: Any):
        self.client_id = str(client_id)
        self.project_id = str(project_id)
        super().__init__(
            f"Client {self.client_id} does not belong to project {self.project_id}"
        )


class EmployeeNotAssignedError(InvalidReferenceError):
    """The employee has no active membership on the project."""

    code: str = "EMPLOYEE_NOT_ASSIGNED"

    def __init__(self, employee_id: Any, project_id: Any):
        self.employee_id = str(employee_id)
        self.project_id = str(project_id)
        super().__init__(
            f"Employee {self.employee_id} is not assigned to project {self.project_id}"
        )


class CategoryTypeMismatchError(InvalidReferenceError):
    """Transaction category belongs to the other type partition."""

    code: str = "CATEGORY_TYPE_MISMATCH"

    def __init__(self, transaction_type: str, category: str):
        self.transaction_type = transaction_type
        self.category = category
        super().__init__(
            f"Invalid category '{category}' for {transaction_type} transaction"
        )


class PositionDepartmentMismatchError(InvalidReferenceError):
    code: str = "POSITION_DEPARTMENT_MISMATCH"

    def __init__(self, position_id: Any, department_id: Any):
        self.position_id = str(position_id)
        self.department_id = str(department_id)
        super().__init__(
            f"Position {self.position_id} not found or does not belong "
            f"to department {self.department_id}"
        )


class SkillPositionMismatchError(InvalidReferenceError):
    code: str = "SKILL_POSITION_MISMATCH"

    def __init__(self, position_id: Any, skill_ids: list[str]):
        self.position_id = str(position_id)
        self.skill_ids = skill_ids
        super().__init__(
            f"One or more skills do not belong to position {self.position_id}"
        )


# State transitions


class InvalidStateTransitionError(AgencyError):
    """Requested mutation is not allowed from the current state."""

    code: str = "INVALID_STATE_TRANSITION"


class CompletedTransactionImmutableError(InvalidStateTransitionError):
    """Type and category are frozen once a transaction is completed."""

    code: str = "COMPLETED_TRANSACTION_IMMUTABLE"

    def __init__(self, transaction_id: Any, fields: list[str]):
        self.transaction_id = str(transaction_id)
        self.fields = fields
        super().__init__(
            f"Cannot change {' or '.join(fields)} of completed transaction "
            f"{self.transaction_id}"
        )


# Conflicts


class ConflictError(AgencyError):
    """Uniqueness violation."""

    code: str = "CONFLICT"


class DuplicateEmailError(ConflictError):
    code: str = "DUPLICATE_EMAIL"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"User with email {email} already exists")


class DuplicateKeyError(ConflictError):
    """The persistence layer rejected a write on a unique constraint."""

    code: str = "DUPLICATE_KEY"

    def __init__(self, constraint: str | None, detail: str | None = None):
        self.constraint = constraint
        self.detail = detail
        super().__init__(
            f"Duplicate entry violates {constraint or 'a unique constraint'}"
        )


class ReferencedRecordError(ConflictError):
    """The persistence layer rejected a delete or write on a foreign key."""

    code: str = "REFERENCED_RECORD"

    def __init__(self, detail: str | None = None):
        self.detail = detail
        super().__init__("Record is referenced by other records")


# Currency


class CurrencyError(AgencyError):
    """Base exception for currency and conversion errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Currency code outside the supported set."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: Any):
        self.currency = str(currency)
        super().__init__(f"Unsupported currency code: '{self.currency}'")


class RateFetchError(CurrencyError):
    """The exchange rate provider failed, timed out or returned garbage."""

    code: str = "RATE_FETCH_FAILURE"
    severity: str = SERVER

    def __init__(self, base_currency: str, reason: str):
        self.base_currency = base_currency
        self.reason = reason
        super().__init__(
            f"Failed to fetch exchange rates for {base_currency}: {reason}"
        )


class MissingRateError(CurrencyError):
    """The provider's rate set lacks a supported target currency."""

    code: str = "MISSING_RATE"
    severity: str = SERVER

    def __init__(self, from_currency: str, to_currency: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        super().__init__(
            f"Exchange rate not found for {from_currency}/{to_currency}"
        )


# Validation, authorization, delivery


class DomainValidationError(AgencyError):
    """Malformed input detected inside the core."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class NotAuthorizedError(AgencyError):
    code: str = "NOT_AUTHORIZED"

    def __init__(self, role: str, permission: str):
        self.role = role
        self.permission = permission
        super().__init__(
            f"Role '{role}' is not authorized to perform '{permission}'"
        )


class EmailDeliveryError(AgencyError):
    """Outbound email could not be delivered."""

    code: str = "EMAIL_DELIVERY_FAILED"
    severity: str = SERVER

    def __init__(self, recipient: str, reason: str):
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"Failed to send email to {recipient}: {reason}")


def error_payload(exc: AgencyError) -> dict[str, Any]:
    """Render an AgencyError as a transport-agnostic dict for the boundary layer."""
    payload: dict[str, Any] = {
        "code": exc.code,
        "message": str(exc),
        "severity": exc.severity,
    }
    for key, value in vars(exc).items():
        if not key.startswith("_") and key not in payload:
            payload[key] = value
    return payload
