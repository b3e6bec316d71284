"""
Module: agency_kernel.models.organization
Responsibility: ORM persistence for the reference entities that structure the
    agency: departments, the positions inside them, the skills attached to a
    position, and the services a department sells.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Department names are unique (stored lowercase).
    - Position names are unique within a department.
    - Skill names are unique within a position.
    - Service names are unique within a department.

Failure modes:
    - IntegrityError on any of the scoped uniqueness constraints; the module
      boundary maps it to DuplicateKeyError.
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agency_kernel.db.base import TrackedBase


class Department(TrackedBase):
    """
    Organisational unit that owns positions, services and projects.

    ``is_active`` is the soft-delete flag.  Inactive departments cannot take
    new projects or employees.
    """

    __tablename__ = "departments"

    __table_args__ = (
        UniqueConstraint("name", name="uq_department_name"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Department {self.name}>"


class Position(TrackedBase):
    __tablename__ = "positions"

    __table_args__ = (
        UniqueConstraint("name", "department_id", name="uq_position_name_department"),
        Index("idx_position_department", "department_id"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    department_id: Mapped[UUID] = mapped_column(
        ForeignKey("departments.id"), nullable=False
    )

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    department: Mapped[Department] = relationship()

    def __repr__(self) -> str:
        return f"<Position {self.name}>"


class Skill(TrackedBase):
    __tablename__ = "skills"

    __table_args__ = (
        UniqueConstraint("name", "position_id", name="uq_skill_name_position"),
        Index("idx_skill_position", "position_id"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    position_id: Mapped[UUID] = mapped_column(
        ForeignKey("positions.id"), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Skill {self.name}>"


class Service(TrackedBase):
    """A sellable service offered by one department."""

    __tablename__ = "services"

    __table_args__ = (
        UniqueConstraint("name", "department_id", name="uq_service_name_department"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    department_id: Mapped[UUID] = mapped_column(
        ForeignKey("departments.id"), nullable=False
    )

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Service {self.name}>"
