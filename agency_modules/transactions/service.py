"""
Transaction Ledger Service (``agency_modules.transactions.service``).

Responsibility
--------------
Records financial events (income and expense) with referential and
category validation, eager multi-currency conversion, filtered listing,
updates and hard deletes.  Three shorthand creators pre-fill type and
category for the common cases: client payments, employee payments and
generic expenses.

Architecture position
---------------------
**Modules layer** -- thin facade.  Validation lookups go through
``ReferenceSelector``, reads through ``TransactionSelector``, conversion
through the kernel ``CurrencyConversionService``.

Invariants enforced
-------------------
* Each public write owns the transaction boundary (``commit`` on success,
  ``rollback`` on failure or exception).
* Category belongs to the partition of type.
* If project and client are both given, the client owns the project.
* If project and employee are both given, the employee has an active
  membership on the project.
* Type and category are frozen once a transaction is completed.
* A write never persists without its converted map; a conversion failure
  aborts the write.

Failure modes
-------------
* ``NotFoundError`` / ``InactiveError`` for missing or disabled references.
* ``InvalidReferenceError`` subclasses for cross-entity violations.
* ``CompletedTransactionImmutableError`` when an update to a completed
  transaction names type or category.
* ``CurrencyError`` subclasses propagated from conversion.

Audit relevance
---------------
Every write logs a structured event carrying the transaction id, type,
category, amount, currency and actor id.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from agency_kernel.db.types import to_decimal
from agency_kernel.domain.clock import Clock, SystemClock
from agency_kernel.domain.currency import DEFAULT_CURRENCY, parse_currency
from agency_kernel.domain.enums import (
    EMPLOYEE_PAYMENT_CATEGORIES,
    PaymentMethod,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
    category_matches_type,
)
from agency_kernel.domain.query import Page, Pagination, as_uuid, optional_uuid, parse_enum
from agency_kernel.exceptions import (
    CategoryTypeMismatchError,
    ClientProjectMismatchError,
    CompletedTransactionImmutableError,
    DomainValidationError,
    EmployeeNotAssignedError,
    TransactionNotFoundError,
)
from agency_kernel.logging_config import LogContext, get_logger
from agency_kernel.models.transaction import Transaction
from agency_kernel.selectors.reference_selector import ReferenceSelector
from agency_kernel.selectors.transaction_selector import (
    TransactionFilter,
    TransactionSelector,
    TransactionView,
)
from agency_kernel.services.currency_conversion import CurrencyConversionService
from agency_modules._helpers import unit_of_work, write_context
from agency_services.rbac import Actor, Authorizer

logger = get_logger("modules.transactions.service")

UPDATABLE_FIELDS = frozenset({
    "type",
    "category",
    "amount",
    "currency",
    "project_id",
    "client_id",
    "employee_id",
    "description",
    "date",
    "payment_method",
    "reference",
    "status",
    "receipt_url",
    "notes",
})


def _as_datetime(value: Any, field: str = "date") -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError as exc:
            raise DomainValidationError(field, f"'{value}' is not an ISO date") from exc
    raise DomainValidationError(field, f"unsupported value {value!r}")


class TransactionService:
    """
    Ledger writes and reads.

    Contract
    --------
    * ``create`` and the shorthand creators return the new transaction id.
    * ``list`` and ``get_by_id`` return display projections
      (``TransactionView``), never ORM rows.

    Guarantees
    ----------
    * Clock is injectable; it supplies the default transaction date.
    * Amounts are handled as ``Decimal``.
    """

    def __init__(
        self,
        session: Session,
        conversion: CurrencyConversionService,
        clock: Clock | None = None,
        authorizer: Authorizer | None = None,
    ):
        self._session = session
        self._conversion = conversion
        self._clock = clock or SystemClock()
        self._authorizer = authorizer or Authorizer()
        self._refs = ReferenceSelector(session)
        self._selector = TransactionSelector(session)

    # =========================================================================
    # CRUD
    # =========================================================================

    @write_context()
    def create(
        self,
        actor: Actor,
        *,
        type: Any,
        category: Any,
        amount: Any,
        currency: Any = None,
        project_id: Any = None,
        client_id: Any = None,
        employee_id: Any = None,
        description: str | None = None,
        date: Any = None,
        payment_method: Any = None,
        reference: str | None = None,
        status: Any = None,
        receipt_url: str | None = None,
        notes: str | None = None,
    ) -> UUID:
        """Validate references and category, convert the amount, persist."""
        self._authorizer.require(actor, "transaction.create")

        txn_type = parse_enum(type, TransactionType, "type")
        txn_category = parse_enum(category, TransactionCategory, "category")
        project_uuid = optional_uuid(project_id, "project")
        client_uuid = optional_uuid(client_id, "client")
        employee_uuid = optional_uuid(employee_id, "employee")

        with unit_of_work(self._session, "transaction_create", actor_id=actor.id):
            self._validate_references(project_uuid, client_uuid, employee_uuid)
            if not category_matches_type(txn_category, txn_type):
                raise CategoryTypeMismatchError(txn_type.value, txn_category.value)

            txn = self._insert(
                actor,
                txn_type=txn_type,
                txn_category=txn_category,
                amount=amount,
                currency=currency,
                project_id=project_uuid,
                client_id=client_uuid,
                employee_id=employee_uuid,
                description=description,
                txn_date=date,
                payment_method=payment_method,
                reference=reference,
                status=status,
                receipt_url=receipt_url,
                notes=notes,
            )
        return txn.id

    def list(
        self,
        filters: TransactionFilter | None = None,
        pagination: Pagination | None = None,
        actor: Actor | None = None,
    ) -> Page[TransactionView]:
        if actor is not None:
            self._authorizer.require(actor, "transaction.read")
        return self._selector.list(filters or TransactionFilter(), pagination or Pagination())

    def get_by_id(self, transaction_id: Any, actor: Actor | None = None) -> TransactionView:
        if actor is not None:
            self._authorizer.require(actor, "transaction.read")
        return self._selector.get(as_uuid(transaction_id, "transaction"))

    @write_context("transaction_id")
    def update(
        self,
        actor: Actor,
        transaction_id: Any,
        changes: Mapping[str, Any],
    ) -> TransactionView:
        """
        Apply a partial update.

        Once the stored status is completed the payload may not name type
        or category at all, even with the stored values.  An amount or
        currency change re-converts, using the stored value for whichever
        of the two is not supplied.
        """
        self._authorizer.require(actor, "transaction.update")
        txn_id = as_uuid(transaction_id, "transaction")

        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise DomainValidationError(
                "changes", f"unknown fields: {', '.join(sorted(unknown))}"
            )

        with unit_of_work(self._session, "transaction_update", transaction_id=txn_id):
            txn = self._session.get(Transaction, txn_id)
            if txn is None:
                raise TransactionNotFoundError(txn_id)
            if txn.status == TransactionStatus.COMPLETED.value:
                frozen = [name for name in ("type", "category") if name in changes]
                if frozen:
                    raise CompletedTransactionImmutableError(txn_id, frozen)

            new_type = (
                parse_enum(changes["type"], TransactionType, "type")
                if "type" in changes
                else TransactionType(txn.type)
            )
            new_category = (
                parse_enum(changes["category"], TransactionCategory, "category")
                if "category" in changes
                else TransactionCategory(txn.category)
            )

            if not category_matches_type(new_category, new_type):
                raise CategoryTypeMismatchError(new_type.value, new_category.value)
            txn.type = new_type.value
            txn.category = new_category.value

            if {"project_id", "client_id", "employee_id"} & set(changes):
                project_uuid = (
                    optional_uuid(changes["project_id"], "project")
                    if "project_id" in changes
                    else txn.project_id
                )
                client_uuid = (
                    optional_uuid(changes["client_id"], "client")
                    if "client_id" in changes
                    else txn.client_id
                )
                employee_uuid = (
                    optional_uuid(changes["employee_id"], "employee")
                    if "employee_id" in changes
                    else txn.employee_id
                )
                self._validate_references(project_uuid, client_uuid, employee_uuid)
                txn.project_id = project_uuid
                txn.client_id = client_uuid
                txn.employee_id = employee_uuid

            if "amount" in changes or "currency" in changes:
                new_currency = parse_currency(
                    changes.get("currency") or txn.currency or DEFAULT_CURRENCY
                )
                new_amount = changes["amount"] if "amount" in changes else txn.amount
                converted = self._conversion.convert_to_all(new_amount, new_currency)
                txn.amount = to_decimal(new_amount)
                txn.currency = new_currency.value
                txn.amount_converted = converted.to_json()

            if "status" in changes:
                txn.status = parse_enum(changes["status"], TransactionStatus, "status").value
            if "payment_method" in changes:
                txn.payment_method = parse_enum(
                    changes["payment_method"], PaymentMethod, "payment_method"
                ).value
            if "date" in changes:
                txn.date = _as_datetime(changes["date"])
            for name in ("description", "reference", "receipt_url", "notes"):
                if name in changes:
                    setattr(txn, name, changes[name])

            txn.updated_at = self._clock.now()
            self._session.flush()

        logger.info(
            "transaction_updated",
            extra={
                "transaction_id": str(txn_id),
                "fields": sorted(changes),
            },
        )
        return self._selector.get(txn_id)

    @write_context("transaction_id")
    def delete(self, actor: Actor, transaction_id: Any) -> None:
        """Hard delete."""
        self._authorizer.require(actor, "transaction.delete")
        txn_id = as_uuid(transaction_id, "transaction")
        with unit_of_work(self._session, "transaction_delete", transaction_id=txn_id):
            txn = self._session.get(Transaction, txn_id)
            if txn is None:
                raise TransactionNotFoundError(txn_id)
            self._session.delete(txn)

        logger.info(
            "transaction_deleted",
            extra={"transaction_id": str(txn_id)},
        )

    # =========================================================================
    # Shorthand creators
    # =========================================================================

    @write_context()
    def record_client_payment(
        self,
        actor: Actor,
        *,
        project_id: Any,
        client_id: Any,
        amount: Any,
        currency: Any = None,
        description: str | None = None,
        date: Any = None,
        payment_method: Any = None,
        reference: str | None = None,
    ) -> UUID:
        """Income / client_payment against an active project and its active client."""
        self._authorizer.require(actor, "transaction.create")
        project_uuid = as_uuid(project_id, "project")
        client_uuid = as_uuid(client_id, "client")

        with unit_of_work(self._session, "client_payment", project_id=project_uuid):
            project = self._refs.require_active_project(project_uuid)
            self._refs.require_active_client(client_uuid)
            if project.client_id != client_uuid:
                raise ClientProjectMismatchError(client_uuid, project_uuid)

            txn = self._insert(
                actor,
                txn_type=TransactionType.INCOME,
                txn_category=TransactionCategory.CLIENT_PAYMENT,
                amount=amount,
                currency=currency,
                project_id=project_uuid,
                client_id=client_uuid,
                description=description or f"Payment for project: {project.name}",
                txn_date=date,
                payment_method=payment_method,
                reference=reference,
            )
        return txn.id

    @write_context()
    def record_employee_payment(
        self,
        actor: Actor,
        *,
        employee_id: Any,
        amount: Any,
        project_id: Any = None,
        category: Any = TransactionCategory.EMPLOYEE_SALARY,
        currency: Any = None,
        description: str | None = None,
        date: Any = None,
        payment_method: Any = None,
    ) -> UUID:
        """Expense / salary or bonus paid to an active employee."""
        self._authorizer.require(actor, "transaction.create")
        employee_uuid = as_uuid(employee_id, "employee")
        project_uuid = optional_uuid(project_id, "project")
        txn_category = parse_enum(category, TransactionCategory, "category")
        if txn_category not in EMPLOYEE_PAYMENT_CATEGORIES:
            raise CategoryTypeMismatchError("employee payment", txn_category.value)

        with unit_of_work(self._session, "employee_payment", employee_id=employee_uuid):
            employee = self._refs.require_active_employee(employee_uuid)
            if project_uuid is not None:
                self._refs.require_active_project(project_uuid)
                if self._refs.active_membership(project_uuid, employee_uuid) is None:
                    raise EmployeeNotAssignedError(employee_uuid, project_uuid)

            txn = self._insert(
                actor,
                txn_type=TransactionType.EXPENSE,
                txn_category=txn_category,
                amount=amount,
                currency=currency,
                project_id=project_uuid,
                employee_id=employee_uuid,
                description=description or f"Payment to {employee.user.name}",
                txn_date=date,
                payment_method=payment_method,
            )
        return txn.id

    @write_context()
    def record_expense(
        self,
        actor: Actor,
        *,
        category: Any,
        amount: Any,
        description: str,
        project_id: Any = None,
        currency: Any = None,
        date: Any = None,
        payment_method: Any = None,
        receipt_url: str | None = None,
    ) -> UUID:
        """Generic expense, optionally charged to an active project."""
        self._authorizer.require(actor, "transaction.create")
        txn_category = parse_enum(category, TransactionCategory, "category")
        if not category_matches_type(txn_category, TransactionType.EXPENSE):
            raise CategoryTypeMismatchError(TransactionType.EXPENSE.value, txn_category.value)
        if not description or not description.strip():
            raise DomainValidationError("description", "is required for an expense")
        project_uuid = optional_uuid(project_id, "project")

        with unit_of_work(self._session, "expense", project_id=project_uuid):
            if project_uuid is not None:
                self._refs.require_active_project(project_uuid)

            txn = self._insert(
                actor,
                txn_type=TransactionType.EXPENSE,
                txn_category=txn_category,
                amount=amount,
                currency=currency,
                project_id=project_uuid,
                description=description.strip(),
                txn_date=date,
                payment_method=payment_method,
                receipt_url=receipt_url,
            )
        return txn.id

    # =========================================================================
    # Internals
    # =========================================================================

    def _validate_references(
        self,
        project_id: UUID | None,
        client_id: UUID | None,
        employee_id: UUID | None,
    ) -> None:
        project = self._refs.require_project(project_id) if project_id else None
        if client_id is not None:
            self._refs.require_client(client_id)
        if employee_id is not None:
            self._refs.require_employee(employee_id)

        if project is not None and client_id is not None and project.client_id != client_id:
            raise ClientProjectMismatchError(client_id, project_id)
        if project is not None and employee_id is not None:
            if self._refs.active_membership(project_id, employee_id) is None:
                raise EmployeeNotAssignedError(employee_id, project_id)

    def _insert(
        self,
        actor: Actor,
        *,
        txn_type: TransactionType,
        txn_category: TransactionCategory,
        amount: Any,
        currency: Any,
        project_id: UUID | None = None,
        client_id: UUID | None = None,
        employee_id: UUID | None = None,
        description: str | None = None,
        txn_date: Any = None,
        payment_method: Any = None,
        reference: str | None = None,
        status: Any = None,
        receipt_url: str | None = None,
        notes: str | None = None,
    ) -> Transaction:
        source = parse_currency(currency or DEFAULT_CURRENCY)
        converted = self._conversion.convert_to_all(amount, source)
        now = self._clock.now()

        txn = Transaction(
            type=txn_type.value,
            category=txn_category.value,
            project_id=project_id,
            client_id=client_id,
            employee_id=employee_id,
            amount=to_decimal(amount),
            currency=source.value,
            amount_converted=converted.to_json(),
            description=description,
            date=_as_datetime(txn_date) if txn_date is not None else now,
            payment_method=(
                parse_enum(payment_method, PaymentMethod, "payment_method").value
                if payment_method is not None
                else PaymentMethod.INSTAPAY.value
            ),
            reference=reference,
            status=(
                parse_enum(status, TransactionStatus, "status").value
                if status is not None
                else TransactionStatus.COMPLETED.value
            ),
            receipt_url=receipt_url,
            notes=notes,
            added_by_id=actor.id,
            created_at=now,
            updated_at=now,
        )
        self._session.add(txn)
        self._session.flush()
        LogContext.set(entity_id=txn.id)

        logger.info(
            "transaction_created",
            extra={
                "transaction_id": str(txn.id),
                "type": txn.type,
                "category": txn.category,
                "amount": str(amount),
                "currency": txn.currency,
            },
        )
        return txn
