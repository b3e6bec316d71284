"""
Module: agency_kernel.models.transaction
Responsibility: ORM persistence for ledger entries (income and expense).
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models only.

Invariants enforced (service layer, this model is the data source):
    - category belongs to the partition of ``type``.
    - amount_converted holds all five currencies with
      ``map[currency] == round(amount)``.
    - type and category are frozen once status is completed.

Failure modes:
    - IntegrityError on a dangling project/client/employee/user reference.

Audit relevance:
    Every aggregation in the finance and analytics modules reads completed
    transactions.  ``added_by_id`` records the acting user.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agency_kernel.db.base import TrackedBase
from agency_kernel.domain.currency import DEFAULT_CURRENCY
from agency_kernel.domain.enums import PaymentMethod, TransactionStatus
from agency_kernel.models.client import Client
from agency_kernel.models.project import Project
from agency_kernel.models.user import Employee, User


class Transaction(TrackedBase):
    __tablename__ = "transactions"

    __table_args__ = (
        Index("idx_txn_type_category", "type", "category"),
        Index("idx_txn_status_date", "status", "date"),
        Index("idx_txn_project", "project_id"),
        Index("idx_txn_client", "client_id"),
        Index("idx_txn_employee", "employee_id"),
    )

    type: Mapped[str] = mapped_column(String(20), nullable=False)

    category: Mapped[str] = mapped_column(String(40), nullable=False)

    project_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("projects.id"), nullable=True
    )

    client_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("clients.id"), nullable=True
    )

    employee_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default=DEFAULT_CURRENCY.value
    )

    amount_converted: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    date: Mapped[datetime] = mapped_column(nullable=False)

    payment_method: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentMethod.INSTAPAY.value
    )

    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransactionStatus.COMPLETED.value
    )

    receipt_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    added_by_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)

    project: Mapped[Project | None] = relationship()

    client: Mapped[Client | None] = relationship()

    employee: Mapped[Employee | None] = relationship()

    added_by: Mapped[User] = relationship()

    def __repr__(self) -> str:
        return f"<Transaction {self.type}/{self.category} {self.amount} {self.currency}>"
