"""
Module: agency_kernel.selectors.project_selector
Responsibility: Read-only project and project-membership queries: the
    listing projection with active employee counts, the detail projection
    with its active roster, membership loading for the staffing
    synchronizer, and the budget/compensation totals used by the finance
    and analytics views.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - "Active member" always means ``removed_at IS NULL``.
    - Listing defaults to ``is_active = True`` and orders by ``created_at``
      descending.
    - Name/description search is a case-insensitive substring match; the
      search text is matched literally, never as a pattern.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session, joinedload, selectinload

from agency_kernel.domain.currency import Currency, display_amount
from agency_kernel.domain.enums import ProjectPriority, ProjectStatus
from agency_kernel.domain.query import Page, Pagination, normalize_enum, optional_uuid
from agency_kernel.exceptions import ProjectNotFoundError
from agency_kernel.models.project import Project, ProjectMember
from agency_kernel.models.user import Employee
from agency_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ProjectListItem:
    id: UUID
    name: str
    client: str | None
    currency: str
    start_date: datetime | None
    end_date: datetime | None
    status: str
    priority: str
    employee_count: int


@dataclass(frozen=True)
class RosterEntry:
    employee_id: UUID
    name: str | None
    email: str | None
    phone: str | None
    position: str | None
    employment_type: str | None
    compensation: Decimal
    currency: str
    assigned_at: datetime


@dataclass(frozen=True)
class ProjectDetail:
    id: UUID
    name: str
    description: str | None
    client_id: UUID
    client_name: str | None
    department_id: UUID
    department_name: str | None
    services: tuple[str, ...]
    budget: Decimal
    currency: str
    budget_converted: dict[str, Any]
    status: str
    priority: str
    start_date: datetime | None
    end_date: datetime | None
    is_active: bool
    created_at: datetime | None
    employees: tuple[RosterEntry, ...]


@dataclass(frozen=True)
class ProjectFilter:
    status: ProjectStatus | None = None
    priority: ProjectPriority | None = None
    client_id: UUID | None = None
    department_id: UUID | None = None
    is_active: bool = True
    search: str | None = None

    @classmethod
    def from_query(
        cls,
        status: Any = None,
        priority: Any = None,
        client_id: Any = None,
        department_id: Any = None,
        is_active: bool = True,
        search: str | None = None,
    ) -> ProjectFilter:
        return cls(
            status=normalize_enum(status, ProjectStatus),
            priority=normalize_enum(priority, ProjectPriority),
            client_id=optional_uuid(client_id, "client"),
            department_id=optional_uuid(department_id, "department"),
            is_active=is_active,
            search=search.strip() if search and search.strip() else None,
        )

    def apply(self, stmt: Select) -> Select:
        stmt = stmt.where(Project.is_active.is_(self.is_active))
        if self.status is not None:
            stmt = stmt.where(Project.status == self.status.value)
        if self.priority is not None:
            stmt = stmt.where(Project.priority == self.priority.value)
        if self.client_id is not None:
            stmt = stmt.where(Project.client_id == self.client_id)
        if self.department_id is not None:
            stmt = stmt.where(Project.department_id == self.department_id)
        if self.search:
            stmt = stmt.where(
                or_(
                    Project.name.icontains(self.search, autoescape=True),
                    Project.description.icontains(self.search, autoescape=True),
                )
            )
        return stmt


class ProjectSelector(BaseSelector[Project]):
    def __init__(self, session: Session):
        super().__init__(session)

    def list(self, filters: ProjectFilter, pagination: Pagination) -> Page[ProjectListItem]:
        total = self.session.execute(
            filters.apply(select(func.count()).select_from(Project))
        ).scalar_one()
        projects = self.session.execute(
            filters.apply(select(Project))
            .options(joinedload(Project.client))
            .order_by(Project.created_at.desc())
            .offset(pagination.offset)
            .limit(pagination.limit)
        ).scalars().all()

        counts = self.active_member_counts([p.id for p in projects])
        items = [
            ProjectListItem(
                id=p.id,
                name=p.name,
                client=p.client.name if p.client else None,
                currency=p.currency,
                start_date=p.start_date,
                end_date=p.end_date,
                status=p.status,
                priority=p.priority,
                employee_count=counts.get(p.id, 0),
            )
            for p in projects
        ]
        return Page.build(items, total, pagination)

    def active_member_counts(self, project_ids: list[UUID]) -> dict[UUID, int]:
        if not project_ids:
            return {}
        rows = self.session.execute(
            select(ProjectMember.project_id, func.count())
            .where(
                ProjectMember.project_id.in_(project_ids),
                ProjectMember.removed_at.is_(None),
            )
            .group_by(ProjectMember.project_id)
        )
        return {project_id: count for project_id, count in rows}

    def get(self, project_id: UUID) -> ProjectDetail:
        project = self.session.execute(
            select(Project)
            .where(Project.id == project_id)
            .options(
                joinedload(Project.client),
                joinedload(Project.department),
                selectinload(Project.services),
            )
        ).unique().scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(project_id)

        roster = tuple(
            RosterEntry(
                employee_id=m.employee_id,
                name=m.employee.user.name if m.employee else None,
                email=m.employee.user.email if m.employee else None,
                phone=m.employee.user.phone if m.employee else None,
                position=m.employee.position.name if m.employee and m.employee.position else None,
                employment_type=m.employee.employment_type if m.employee else None,
                compensation=m.compensation,
                currency=m.currency,
                assigned_at=m.assigned_at,
            )
            for m in self.active_members(project_id)
        )
        return ProjectDetail(
            id=project.id,
            name=project.name,
            description=project.description,
            client_id=project.client_id,
            client_name=project.client.name if project.client else None,
            department_id=project.department_id,
            department_name=project.department.name if project.department else None,
            services=tuple(s.name for s in project.services),
            budget=project.budget,
            currency=project.currency,
            budget_converted=dict(project.budget_converted or {}),
            status=project.status,
            priority=project.priority,
            start_date=project.start_date,
            end_date=project.end_date,
            is_active=project.is_active,
            created_at=project.created_at,
            employees=roster,
        )

    # Memberships

    def all_members(self, project_id: UUID) -> list[ProjectMember]:
        """Every membership row for the project, active and removed."""
        return list(
            self.session.execute(
                select(ProjectMember).where(ProjectMember.project_id == project_id)
            ).scalars()
        )

    def active_members(self, project_id: UUID) -> list[ProjectMember]:
        return list(
            self.session.execute(
                select(ProjectMember)
                .where(
                    ProjectMember.project_id == project_id,
                    ProjectMember.removed_at.is_(None),
                )
                .options(
                    joinedload(ProjectMember.employee).joinedload(Employee.user),
                    joinedload(ProjectMember.employee).joinedload(Employee.position),
                )
                .order_by(ProjectMember.assigned_at.asc())
            ).unique().scalars()
        )

    def total_active_compensation(
        self, project_id: UUID, currency: Currency | str | None = None
    ) -> tuple[Decimal, int]:
        """
        (sum of active members' compensation, active member count).

        With ``currency`` each compensation is read from its converted map
        instead of its origin amount.
        """
        if currency is not None:
            rows = self.session.execute(
                select(ProjectMember.compensation, ProjectMember.compensation_converted).where(
                    ProjectMember.project_id == project_id,
                    ProjectMember.removed_at.is_(None),
                )
            ).all()
            total = sum(
                (display_amount(converted, currency, amount) for amount, converted in rows),
                Decimal("0"),
            )
            return total, len(rows)
        total, count = self.session.execute(
            select(
                func.coalesce(func.sum(ProjectMember.compensation), 0),
                func.count(ProjectMember.id),
            ).where(
                ProjectMember.project_id == project_id,
                ProjectMember.removed_at.is_(None),
            )
        ).one()
        return Decimal(str(total)), int(count)

    # Portfolio

    def count_projects(self, is_active: bool | None = None, status: ProjectStatus | None = None) -> int:
        stmt = select(func.count()).select_from(Project)
        if is_active is not None:
            stmt = stmt.where(Project.is_active.is_(is_active))
        if status is not None:
            stmt = stmt.where(Project.status == status.value)
        return self.session.execute(stmt).scalar_one()

    def active_budget_total(self) -> Decimal:
        """Sum of origin-currency budgets over active projects."""
        total = self.session.execute(
            select(func.coalesce(func.sum(Project.budget), 0)).where(
                Project.is_active.is_(True)
            )
        ).scalar_one()
        return Decimal(str(total))

    def active_projects(self, limit: int | None = None) -> list[Project]:
        """Active projects, most recently created first."""
        stmt = (
            select(Project)
            .where(Project.is_active.is_(True))
            .options(joinedload(Project.client))
            .order_by(Project.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())
