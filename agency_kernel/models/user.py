"""
Module: agency_kernel.models.user
Responsibility: ORM persistence for user accounts and the employee profiles
    that wrap them.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models only.

Invariants enforced:
    - User email is unique (uq_user_email).  A soft-deleted user has its email
      anonymised, which frees the address for a new account.
    - Every Employee wraps exactly one User (uq_employee_user, NOT NULL FK).
    - Employee has no active flag of its own.  ``User.is_active`` is the
      single source of truth for whether an employee is active.

Failure modes:
    - IntegrityError on duplicate email or on a second profile for one user.

Audit relevance:
    ``Transaction.added_by_id`` references users, so user rows are never
    hard-deleted outside the employee provisioning rollback/delete paths.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, Column, ForeignKey, Index, String, Table, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agency_kernel.db.base import Base, TrackedBase, UUIDString
from agency_kernel.domain.enums import EmploymentType, UserRole
from agency_kernel.models.organization import Department, Position, Skill


class User(TrackedBase):
    """
    Authenticated identity.

    Guarantees:
        - email is unique and stored lowercase.
        - ``deleted_at`` is set only by account deactivation; a deleted user
          is always inactive.
    """

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_user_email"),
        Index("idx_user_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    email: Mapped[str] = mapped_column(String(255), nullable=False)

    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Set while the account still holds a generated credential
    must_change_password: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserRole.EMPLOYEE.value
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    preferred_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"


employee_skills = Table(
    "employee_skills",
    Base.metadata,
    Column("employee_id", UUIDString(), ForeignKey("employees.id", ondelete="CASCADE"), primary_key=True),
    Column("skill_id", UUIDString(), ForeignKey("skills.id"), primary_key=True),
)


class Employee(TrackedBase):
    """
    Employee profile linked 1:1 to a User.

    Contract:
        Whether the employee is active is derived through ``user.is_active``;
        see ``agency_kernel.selectors.employee_selector.is_employee_active``.
    """

    __tablename__ = "employees"

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_employee_user"),
        Index("idx_employee_department", "department_id"),
        Index("idx_employee_position", "position_id"),
    )

    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)

    department_id: Mapped[UUID] = mapped_column(
        ForeignKey("departments.id"), nullable=False
    )

    position_id: Mapped[UUID] = mapped_column(
        ForeignKey("positions.id"), nullable=False
    )

    employment_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EmploymentType.FREELANCER.value
    )

    user: Mapped[User] = relationship(lazy="joined")

    department: Mapped[Department] = relationship()

    position: Mapped[Position] = relationship()

    skills: Mapped[list[Skill]] = relationship(secondary=employee_skills)

    def __repr__(self) -> str:
        return f"<Employee {self.user_id}>"
