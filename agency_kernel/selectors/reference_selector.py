"""
Module: agency_kernel.selectors.reference_selector
Responsibility: Existence and activity lookups for the entities that ledger,
    staffing and provisioning writes reference: departments, positions,
    skills, services, clients, projects, employees, users and memberships.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - ``require_*`` methods raise the typed NotFound / Inactive /
      InvalidReference error for their entity and otherwise return the row.
    - An employee is active iff its linked user is active.

Failure modes:
    - NotFoundError subclasses, InactiveError subclasses,
      PositionDepartmentMismatchError, SkillPositionMismatchError.
"""

from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from agency_kernel.exceptions import (
    ClientInactiveError,
    ClientNotFoundError,
    DepartmentInactiveError,
    DepartmentNotFoundError,
    DuplicateEmailError,
    EmployeeInactiveError,
    EmployeeNotFoundError,
    PositionDepartmentMismatchError,
    ProjectInactiveError,
    ProjectNotFoundError,
    ServiceNotFoundError,
    SkillPositionMismatchError,
    UserNotFoundError,
)
from agency_kernel.models.client import Client
from agency_kernel.models.organization import Department, Position, Service, Skill
from agency_kernel.models.project import Project, ProjectMember
from agency_kernel.models.user import Employee, User
from agency_kernel.selectors.base import BaseSelector


def is_employee_active(employee: Employee) -> bool:
    """An employee is active exactly when its linked user account is active."""
    return employee.user is not None and bool(employee.user.is_active)


class ReferenceSelector(BaseSelector[Department]):
    def __init__(self, session: Session):
        super().__init__(session)

    # Departments / positions / skills / services

    def require_department(self, department_id: UUID) -> Department:
        department = self.session.get(Department, department_id)
        if department is None:
            raise DepartmentNotFoundError(department_id)
        return department

    def require_active_department(self, department_id: UUID) -> Department:
        department = self.require_department(department_id)
        if not department.is_active:
            raise DepartmentInactiveError(department_id, department.name)
        return department

    def department_names(self, department_ids: Iterable[UUID]) -> dict[UUID, str]:
        wanted = [d for d in dict.fromkeys(department_ids) if d is not None]
        if not wanted:
            return {}
        rows = self.session.execute(
            select(Department.id, Department.name).where(Department.id.in_(wanted))
        )
        return {department_id: name for department_id, name in rows}

    def require_position_in_department(
        self, position_id: UUID, department_id: UUID
    ) -> Position:
        """Position must exist and belong to ``department_id``."""
        position = self.session.get(Position, position_id)
        if position is None or position.department_id != department_id:
            raise PositionDepartmentMismatchError(position_id, department_id)
        return position

    def require_skills_for_position(
        self, skill_ids: Iterable[UUID], position_id: UUID
    ) -> list[Skill]:
        """Every skill must exist and belong to ``position_id``."""
        wanted = list(dict.fromkeys(skill_ids))
        if not wanted:
            return []
        skills = list(
            self.session.execute(
                select(Skill).where(
                    Skill.id.in_(wanted), Skill.position_id == position_id
                )
            ).scalars()
        )
        if len(skills) != len(wanted):
            raise SkillPositionMismatchError(position_id, [str(s) for s in wanted])
        return skills

    def require_services(self, service_ids: Iterable[UUID]) -> list[Service]:
        wanted = list(dict.fromkeys(service_ids))
        if not wanted:
            return []
        services = list(
            self.session.execute(select(Service).where(Service.id.in_(wanted))).scalars()
        )
        if len(services) != len(wanted):
            found = {s.id for s in services}
            missing = next(s for s in wanted if s not in found)
            raise ServiceNotFoundError(missing)
        return services

    # Clients / projects

    def require_client(self, client_id: UUID) -> Client:
        client = self.session.get(Client, client_id)
        if client is None:
            raise ClientNotFoundError(client_id)
        return client

    def require_active_client(self, client_id: UUID) -> Client:
        client = self.require_client(client_id)
        if not client.is_active:
            raise ClientInactiveError(client_id, client.name)
        return client

    def require_project(self, project_id: UUID) -> Project:
        project = self.session.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def require_active_project(self, project_id: UUID) -> Project:
        project = self.require_project(project_id)
        if not project.is_active:
            raise ProjectInactiveError(project_id, project.name)
        return project

    # People

    def require_user(self, user_id: UUID) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def require_employee(self, employee_id: UUID) -> Employee:
        employee = self.session.get(Employee, employee_id)
        if employee is None:
            raise EmployeeNotFoundError(employee_id)
        return employee

    def require_active_employee(self, employee_id: UUID) -> Employee:
        employee = self.require_employee(employee_id)
        if not is_employee_active(employee):
            raise EmployeeInactiveError(employee_id, employee.user.name)
        return employee

    def require_active_employees(self, employee_ids: Iterable[UUID]) -> list[Employee]:
        """All employees must exist with an active user; order follows input."""
        wanted = list(dict.fromkeys(employee_ids))
        if not wanted:
            return []
        rows = {
            e.id: e
            for e in self.session.execute(
                select(Employee).where(Employee.id.in_(wanted))
            ).scalars()
        }
        result = []
        for employee_id in wanted:
            employee = rows.get(employee_id)
            if employee is None:
                raise EmployeeNotFoundError(employee_id)
            if not is_employee_active(employee):
                raise EmployeeInactiveError(employee_id, employee.user.name)
            result.append(employee)
        return result

    def email_taken(self, email: str, exclude_user_id: UUID | None = None) -> bool:
        stmt = select(func.count()).select_from(User).where(
            func.lower(User.email) == email.strip().lower()
        )
        if exclude_user_id is not None:
            stmt = stmt.where(User.id != exclude_user_id)
        return self.session.execute(stmt).scalar_one() > 0

    def require_email_available(
        self, email: str, exclude_user_id: UUID | None = None
    ) -> None:
        if self.email_taken(email, exclude_user_id):
            raise DuplicateEmailError(email.strip().lower())

    # Memberships

    def active_membership(
        self, project_id: UUID, employee_id: UUID
    ) -> ProjectMember | None:
        return self.session.execute(
            select(ProjectMember).where(
                ProjectMember.project_id == project_id,
                ProjectMember.employee_id == employee_id,
                ProjectMember.removed_at.is_(None),
            )
        ).scalar_one_or_none()
