"""
Module: agency_kernel.models.project
Responsibility: ORM persistence for projects, the services they deliver, and
    the per-employee compensation assignments (project members).
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models only.

Invariants enforced:
    - budget_converted and compensation_converted always hold the amount in
      all five supported currencies, with ``map[currency] == round(amount)``.
    - uq_project_member: one row per (project, employee) pair for the whole
      life of the project.  Removal sets ``removed_at``; re-adding the same
      employee reactivates that row instead of inserting a second one.
    - ``is_active`` is the project's soft-delete flag.

Failure modes:
    - IntegrityError on a second membership row for the same pair.

Audit relevance:
    Project financials are computed from these rows.  The origin pair
    (amount, currency) and the converted map are both persisted.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Index, String, Table, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agency_kernel.db.base import Base, TrackedBase, UUIDString
from agency_kernel.domain.currency import DEFAULT_CURRENCY
from agency_kernel.domain.enums import ProjectPriority, ProjectStatus
from agency_kernel.models.client import Client
from agency_kernel.models.organization import Department, Service
from agency_kernel.models.user import Employee, User

project_services = Table(
    "project_services",
    Base.metadata,
    Column("project_id", UUIDString(), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("service_id", UUIDString(), ForeignKey("services.id"), primary_key=True),
)


class Project(TrackedBase):
    __tablename__ = "projects"

    __table_args__ = (
        Index("idx_project_client", "client_id"),
        Index("idx_project_department", "department_id"),
        Index("idx_project_active_status", "is_active", "status"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    client_id: Mapped[UUID] = mapped_column(ForeignKey("clients.id"), nullable=False)

    department_id: Mapped[UUID] = mapped_column(
        ForeignKey("departments.id"), nullable=False
    )

    budget: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default=DEFAULT_CURRENCY.value
    )

    budget_converted: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProjectStatus.PLANNING.value
    )

    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProjectPriority.NORMAL.value
    )

    start_date: Mapped[datetime | None] = mapped_column(nullable=True)

    end_date: Mapped[datetime | None] = mapped_column(nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )

    client: Mapped[Client] = relationship()

    department: Mapped[Department] = relationship()

    services: Mapped[list[Service]] = relationship(secondary=project_services)

    created_by: Mapped[User | None] = relationship()

    def __repr__(self) -> str:
        return f"<Project {self.name} ({self.status})>"


class ProjectMember(TrackedBase):
    """
    One employee's compensation assignment within one project.

    Guarantees:
        - ``removed_at`` is None while the assignment is active.
        - The (project_id, employee_id) key survives removal/reactivation.
    """

    __tablename__ = "project_members"

    __table_args__ = (
        UniqueConstraint("project_id", "employee_id", name="uq_project_member"),
        Index("idx_member_employee", "employee_id"),
    )

    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), nullable=False
    )

    compensation: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default=DEFAULT_CURRENCY.value
    )

    compensation_converted: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )

    assigned_at: Mapped[datetime] = mapped_column(nullable=False)

    removed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    employee: Mapped[Employee] = relationship()

    @property
    def is_active(self) -> bool:
        return self.removed_at is None

    def __repr__(self) -> str:
        state = "active" if self.removed_at is None else "removed"
        return f"<ProjectMember {self.project_id}/{self.employee_id} {state}>"
