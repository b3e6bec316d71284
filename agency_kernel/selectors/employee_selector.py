"""
Module: agency_kernel.selectors.employee_selector
Responsibility: Read-only employee queries.  The listing filters on the
    joined user row at the storage layer and paginates natively.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Listing defaults to active employees (``users.is_active = True``).
    - Name search is a case-insensitive substring match on ``users.name``.
    - Listing order is ``employees.created_at`` ascending.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session, joinedload, selectinload

from agency_kernel.domain.enums import EmploymentType
from agency_kernel.domain.query import Page, Pagination, normalize_enum, optional_uuid
from agency_kernel.exceptions import EmployeeNotFoundError
from agency_kernel.models.user import Employee, User, employee_skills
from agency_kernel.selectors.base import BaseSelector
from agency_kernel.selectors.reference_selector import is_employee_active


@dataclass(frozen=True)
class NamedRef:
    id: UUID
    name: str


@dataclass(frozen=True)
class EmployeeView:
    id: UUID
    user_id: UUID
    name: str
    email: str
    phone: str | None
    is_active: bool
    employment_type: str
    department: NamedRef | None
    position: NamedRef | None
    skills: tuple[NamedRef, ...]
    created_at: datetime | None
    updated_at: datetime | None


@dataclass(frozen=True)
class EmployeeFilter:
    is_active: bool = True
    name: str | None = None
    department_id: UUID | None = None
    position_id: UUID | None = None
    skill_id: UUID | None = None
    employment_type: EmploymentType | None = None

    @classmethod
    def from_query(
        cls,
        is_active: Any = None,
        name: str | None = None,
        department_id: Any = None,
        position_id: Any = None,
        skill_id: Any = None,
        employment_type: Any = None,
    ) -> EmployeeFilter:
        if is_active is None:
            active = True
        elif isinstance(is_active, str):
            active = is_active.strip().lower() == "true"
        else:
            active = bool(is_active)
        return cls(
            is_active=active,
            name=name.strip() if name and name.strip() else None,
            department_id=optional_uuid(department_id, "department"),
            position_id=optional_uuid(position_id, "position"),
            skill_id=optional_uuid(skill_id, "skill"),
            employment_type=normalize_enum(employment_type, EmploymentType),
        )

    def apply(self, stmt: Select) -> Select:
        stmt = stmt.join(User, User.id == Employee.user_id).where(
            User.is_active.is_(self.is_active)
        )
        if self.name:
            stmt = stmt.where(User.name.icontains(self.name, autoescape=True))
        if self.department_id is not None:
            stmt = stmt.where(Employee.department_id == self.department_id)
        if self.position_id is not None:
            stmt = stmt.where(Employee.position_id == self.position_id)
        if self.skill_id is not None:
            stmt = stmt.where(
                Employee.id.in_(
                    select(employee_skills.c.employee_id).where(
                        employee_skills.c.skill_id == self.skill_id
                    )
                )
            )
        if self.employment_type is not None:
            stmt = stmt.where(Employee.employment_type == self.employment_type.value)
        return stmt


def to_view(employee: Employee) -> EmployeeView:
    user = employee.user
    return EmployeeView(
        id=employee.id,
        user_id=employee.user_id,
        name=user.name,
        email=user.email,
        phone=user.phone,
        is_active=is_employee_active(employee),
        employment_type=employee.employment_type,
        department=(
            NamedRef(employee.department.id, employee.department.name)
            if employee.department
            else None
        ),
        position=(
            NamedRef(employee.position.id, employee.position.name)
            if employee.position
            else None
        ),
        skills=tuple(NamedRef(s.id, s.name) for s in employee.skills),
        created_at=employee.created_at,
        updated_at=employee.updated_at,
    )


class EmployeeSelector(BaseSelector[Employee]):
    def __init__(self, session: Session):
        super().__init__(session)

    @staticmethod
    def _load_options():
        return (
            joinedload(Employee.user),
            joinedload(Employee.department),
            joinedload(Employee.position),
            selectinload(Employee.skills),
        )

    def get(self, employee_id: UUID) -> EmployeeView:
        employee = self.session.execute(
            select(Employee)
            .where(Employee.id == employee_id)
            .options(*self._load_options())
        ).unique().scalar_one_or_none()
        if employee is None:
            raise EmployeeNotFoundError(employee_id)
        return to_view(employee)

    def list(self, filters: EmployeeFilter, pagination: Pagination) -> Page[EmployeeView]:
        total = self.session.execute(
            filters.apply(select(func.count(Employee.id)).select_from(Employee))
        ).scalar_one()
        rows = self.session.execute(
            filters.apply(select(Employee))
            .options(*self._load_options())
            .order_by(Employee.created_at.asc(), Employee.id.asc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        ).unique().scalars().all()
        return Page.build([to_view(e) for e in rows], total, pagination)

    def count_active(self) -> int:
        """Employees whose linked user is active."""
        return self.session.execute(
            select(func.count(Employee.id))
            .select_from(Employee)
            .join(User, User.id == Employee.user_id)
            .where(User.is_active.is_(True))
        ).scalar_one()
