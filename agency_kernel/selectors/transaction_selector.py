"""
Module: agency_kernel.selectors.transaction_selector
Responsibility: Read-only ledger queries.  Filtered, paginated listing with
    resolved references for display, single-transaction lookup, and the
    completed-transaction sums the finance views are built from.
Architecture position: Kernel > Selectors.  May import from models/, domain/
    and selectors/base.py.

Invariants enforced:
    - Enum filters are normalised case-insensitively; unrecognised values are
      dropped, never rejected.
    - Date range filters are inclusive on both ends.
    - Listing order is ``date`` descending, then ``created_at`` descending.
    - Sums are computed over origin amounts, or over the stored converted
      values when a currency is requested, and returned as Decimal.

Failure modes:
    - TransactionNotFoundError from get().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session, joinedload

from agency_kernel.domain.currency import Currency, display_amount
from agency_kernel.domain.enums import (
    PaymentMethod,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
)
from agency_kernel.domain.query import Page, Pagination, normalize_enum, optional_uuid
from agency_kernel.exceptions import TransactionNotFoundError
from agency_kernel.models.project import Project
from agency_kernel.models.transaction import Transaction
from agency_kernel.models.user import Employee
from agency_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class EntityRef:
    """Resolved reference shown next to a transaction."""

    id: UUID
    name: str
    email: str | None = None
    company_name: str | None = None


@dataclass(frozen=True)
class TransactionView:
    id: UUID
    type: str
    category: str
    amount: Decimal
    currency: str
    amount_converted: dict[str, int | None]
    description: str | None
    date: datetime
    payment_method: str
    reference: str | None
    status: str
    receipt_url: str | None
    notes: str | None
    project: EntityRef | None
    client: EntityRef | None
    employee: EntityRef | None
    added_by: EntityRef | None
    created_at: datetime | None = None


@dataclass(frozen=True)
class TransactionFilter:
    """Normalised list filters.  Build with ``from_query``."""

    type: TransactionType | None = None
    category: TransactionCategory | None = None
    status: TransactionStatus | None = None
    payment_method: PaymentMethod | None = None
    project_id: UUID | None = None
    client_id: UUID | None = None
    employee_id: UUID | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None

    @classmethod
    def from_query(
        cls,
        type: Any = None,
        category: Any = None,
        status: Any = None,
        payment_method: Any = None,
        project_id: Any = None,
        client_id: Any = None,
        employee_id: Any = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> "TransactionFilter":
        return cls(
            type=normalize_enum(type, TransactionType),
            category=normalize_enum(category, TransactionCategory),
            status=normalize_enum(status, TransactionStatus),
            payment_method=normalize_enum(payment_method, PaymentMethod),
            project_id=optional_uuid(project_id, "project"),
            client_id=optional_uuid(client_id, "client"),
            employee_id=optional_uuid(employee_id, "employee"),
            start_date=start_date,
            end_date=end_date,
        )

    def apply(self, stmt: Select) -> Select:
        if self.type is not None:
            stmt = stmt.where(Transaction.type == self.type.value)
        if self.category is not None:
            stmt = stmt.where(Transaction.category == self.category.value)
        if self.status is not None:
            stmt = stmt.where(Transaction.status == self.status.value)
        if self.payment_method is not None:
            stmt = stmt.where(Transaction.payment_method == self.payment_method.value)
        if self.project_id is not None:
            stmt = stmt.where(Transaction.project_id == self.project_id)
        if self.client_id is not None:
            stmt = stmt.where(Transaction.client_id == self.client_id)
        if self.employee_id is not None:
            stmt = stmt.where(Transaction.employee_id == self.employee_id)
        if self.start_date is not None:
            stmt = stmt.where(Transaction.date >= self.start_date)
        if self.end_date is not None:
            stmt = stmt.where(Transaction.date <= self.end_date)
        return stmt


@dataclass(frozen=True)
class DisplayRow:
    """Completed transaction reduced to the fields dashboards aggregate."""

    type: str
    category: str
    amount: Decimal
    amount_converted: dict[str, Any] = field(default_factory=dict)
    date: datetime | None = None
    department_id: UUID | None = None


def _employee_ref(employee: Employee | None) -> EntityRef | None:
    if employee is None:
        return None
    user = employee.user
    return EntityRef(id=employee.id, name=user.name, email=user.email)


def to_view(txn: Transaction) -> TransactionView:
    return TransactionView(
        id=txn.id,
        type=txn.type,
        category=txn.category,
        amount=txn.amount,
        currency=txn.currency,
        amount_converted=dict(txn.amount_converted or {}),
        description=txn.description,
        date=txn.date,
        payment_method=txn.payment_method,
        reference=txn.reference,
        status=txn.status,
        receipt_url=txn.receipt_url,
        notes=txn.notes,
        project=EntityRef(id=txn.project.id, name=txn.project.name) if txn.project else None,
        client=(
            EntityRef(id=txn.client.id, name=txn.client.name, company_name=txn.client.company_name)
            if txn.client
            else None
        ),
        employee=_employee_ref(txn.employee),
        added_by=(
            EntityRef(id=txn.added_by.id, name=txn.added_by.name, email=txn.added_by.email)
            if txn.added_by
            else None
        ),
        created_at=txn.created_at,
    )


class TransactionSelector(BaseSelector[Transaction]):
    def __init__(self, session: Session):
        super().__init__(session)

    def _with_refs(self, stmt: Select) -> Select:
        return stmt.options(
            joinedload(Transaction.project),
            joinedload(Transaction.client),
            joinedload(Transaction.employee).joinedload(Employee.user),
            joinedload(Transaction.added_by),
        )

    def get(self, transaction_id: UUID) -> TransactionView:
        txn = self.session.execute(
            self._with_refs(select(Transaction).where(Transaction.id == transaction_id))
        ).unique().scalar_one_or_none()
        if txn is None:
            raise TransactionNotFoundError(transaction_id)
        return to_view(txn)

    def list(
        self, filters: TransactionFilter, pagination: Pagination
    ) -> Page[TransactionView]:
        total = self.session.execute(
            filters.apply(select(func.count()).select_from(Transaction))
        ).scalar_one()

        stmt = (
            self._with_refs(filters.apply(select(Transaction)))
            .order_by(Transaction.date.desc(), Transaction.created_at.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        )
        rows = self.session.execute(stmt).unique().scalars().all()
        return Page.build([to_view(t) for t in rows], total, pagination)

    def completed(
        self,
        project_id: UUID | None = None,
        transaction_type: TransactionType | None = None,
        categories: Iterable[TransactionCategory] | None = None,
        employee_id: UUID | None = None,
    ) -> list[TransactionView]:
        """Completed transactions, oldest first, with resolved references."""
        stmt = self._completed_filter(
            select(Transaction), project_id, transaction_type, categories, employee_id
        )
        stmt = self._with_refs(stmt).order_by(Transaction.date.asc())
        return [to_view(t) for t in self.session.execute(stmt).unique().scalars()]

    def sum_completed(
        self,
        project_id: UUID | None = None,
        transaction_type: TransactionType | None = None,
        categories: Iterable[TransactionCategory] | None = None,
        employee_id: UUID | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        currency: Currency | str | None = None,
    ) -> Decimal:
        """
        Sum over completed transactions.

        Origin amounts are summed in the database.  With ``currency`` each
        transaction contributes its converted value in that currency
        instead, so mixed-currency rows add up in one unit.
        """
        if currency is None:
            columns = [func.coalesce(func.sum(Transaction.amount), 0)]
        else:
            columns = [Transaction.amount, Transaction.amount_converted]
        stmt = self._completed_filter(
            select(*columns).select_from(Transaction),
            project_id,
            transaction_type,
            categories,
            employee_id,
        )
        if start_date is not None:
            stmt = stmt.where(Transaction.date >= start_date)
        if end_date is not None:
            stmt = stmt.where(Transaction.date <= end_date)
        if currency is None:
            return Decimal(str(self.session.execute(stmt).scalar_one()))
        return sum(
            (
                display_amount(converted, currency, amount)
                for amount, converted in self.session.execute(stmt)
            ),
            Decimal("0"),
        )

    def count_completed(
        self,
        transaction_type: TransactionType,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> int:
        stmt = self._completed_filter(
            select(func.count()).select_from(Transaction), None, transaction_type, None, None
        )
        if start_date is not None:
            stmt = stmt.where(Transaction.date >= start_date)
        if end_date is not None:
            stmt = stmt.where(Transaction.date <= end_date)
        return self.session.execute(stmt).scalar_one()

    def completed_display_rows(
        self,
        transaction_type: TransactionType | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[DisplayRow]:
        """
        Completed transactions with their converted maps and the department of
        their project (None when the transaction has no project).
        """
        stmt = (
            select(
                Transaction.type,
                Transaction.category,
                Transaction.amount,
                Transaction.amount_converted,
                Transaction.date,
                Project.department_id,
            )
            .select_from(Transaction)
            .outerjoin(Project, Project.id == Transaction.project_id)
            .where(Transaction.status == TransactionStatus.COMPLETED.value)
        )
        if transaction_type is not None:
            stmt = stmt.where(Transaction.type == transaction_type.value)
        if start_date is not None:
            stmt = stmt.where(Transaction.date >= start_date)
        if end_date is not None:
            stmt = stmt.where(Transaction.date <= end_date)
        return [
            DisplayRow(
                type=row.type,
                category=row.category,
                amount=row.amount,
                amount_converted=dict(row.amount_converted or {}),
                date=row.date,
                department_id=row.department_id,
            )
            for row in self.session.execute(stmt.order_by(Transaction.date.asc()))
        ]

    @staticmethod
    def _completed_filter(
        stmt: Select,
        project_id: UUID | None,
        transaction_type: TransactionType | None,
        categories: Iterable[TransactionCategory] | None,
        employee_id: UUID | None,
    ) -> Select:
        stmt = stmt.where(Transaction.status == TransactionStatus.COMPLETED.value)
        if project_id is not None:
            stmt = stmt.where(Transaction.project_id == project_id)
        if transaction_type is not None:
            stmt = stmt.where(Transaction.type == transaction_type.value)
        if categories is not None:
            stmt = stmt.where(Transaction.category.in_([c.value for c in categories]))
        if employee_id is not None:
            stmt = stmt.where(Transaction.employee_id == employee_id)
        return stmt
