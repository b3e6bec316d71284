"""
Project Service (``agency_modules.projects.service``).

Responsibility
--------------
Project writes that carry money: creation with an initial roster, updates
that re-convert the budget and reconcile staffing, soft delete and the
active toggle.  Reads return selector projections.

Architecture position
---------------------
**Modules layer** -- thin facade over ``ReferenceSelector``,
``ProjectSelector``, ``CurrencyConversionService`` and
``StaffingSynchronizer``.

Invariants enforced
-------------------
* Each public write owns the transaction boundary.
* Client and department must exist and be active; services must exist;
  every roster employee must exist and be active.
* ``budget_converted`` is recomputed whenever budget or currency changes,
  using the stored value for whichever of the two is not supplied.
* Delete is a soft delete (``is_active = False``).

Failure modes
-------------
* ``NotFoundError`` / ``InactiveError`` for references.
* ``CurrencyError`` from conversion; nothing is written.
* ``DuplicateKeyError`` if a concurrent sync inserted the same member.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from agency_kernel.db.types import to_decimal
from agency_kernel.domain.clock import Clock, SystemClock
from agency_kernel.domain.currency import DEFAULT_CURRENCY, parse_currency
from agency_kernel.domain.enums import ProjectPriority, ProjectStatus
from agency_kernel.domain.query import Page, Pagination, as_uuid, parse_enum
from agency_kernel.exceptions import DomainValidationError, ProjectNotFoundError
from agency_kernel.logging_config import LogContext, get_logger
from agency_kernel.models.project import Project
from agency_kernel.selectors.project_selector import (
    ProjectDetail,
    ProjectFilter,
    ProjectListItem,
    ProjectSelector,
)
from agency_kernel.selectors.reference_selector import ReferenceSelector
from agency_kernel.services.currency_conversion import CurrencyConversionService
from agency_modules._helpers import unit_of_work, write_context
from agency_modules.projects.staffing import (
    RosterEntry,
    StaffingSynchronizer,
    SyncResult,
    parse_roster,
)
from agency_services.parallel import run_parallel
from agency_services.rbac import Actor, Authorizer

logger = get_logger("modules.projects.service")

UPDATABLE_FIELDS = frozenset({
    "name",
    "description",
    "client_id",
    "department_id",
    "service_ids",
    "budget",
    "currency",
    "status",
    "priority",
    "start_date",
    "end_date",
    "employees",
})


class ProjectService:
    """
    Project lifecycle and staffing.

    ``session_factory`` enables concurrent reference validation on separate
    sessions; without it the lookups run on the service's own session.
    """

    def __init__(
        self,
        session: Session,
        conversion: CurrencyConversionService,
        clock: Clock | None = None,
        authorizer: Authorizer | None = None,
        session_factory: sessionmaker[Session] | None = None,
    ):
        self._session = session
        self._conversion = conversion
        self._clock = clock or SystemClock()
        self._authorizer = authorizer or Authorizer()
        self._session_factory = session_factory
        self._refs = ReferenceSelector(session)
        self._selector = ProjectSelector(session)
        self._staffing = StaffingSynchronizer(session, conversion, self._clock)

    # =========================================================================
    # Writes
    # =========================================================================

    @write_context()
    def create_project(
        self,
        actor: Actor,
        *,
        name: str,
        client_id: Any,
        department_id: Any,
        budget: Any = 0,
        currency: Any = None,
        description: str | None = None,
        service_ids: Iterable[Any] = (),
        employees: Iterable[RosterEntry | Mapping[str, Any]] = (),
        status: Any = None,
        priority: Any = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> UUID:
        """Create the project and its initial members in one transaction."""
        self._authorizer.require(actor, "project.write")
        if not name or not name.strip():
            raise DomainValidationError("name", "is required")

        client_uuid = as_uuid(client_id, "client")
        department_uuid = as_uuid(department_id, "department")
        service_uuids = [as_uuid(s, "service") for s in service_ids]
        roster = parse_roster(employees)

        self._validate_references(
            client_uuid, department_uuid, service_uuids, [e.employee_id for e in roster]
        )

        source = parse_currency(currency or DEFAULT_CURRENCY)
        converted = self._conversion.convert_to_all(budget, source)
        now = self._clock.now()

        with unit_of_work(self._session, "project_create", actor_id=actor.id):
            project = Project(
                name=name.strip(),
                description=description,
                client_id=client_uuid,
                department_id=department_uuid,
                budget=to_decimal(budget),
                currency=source.value,
                budget_converted=converted.to_json(),
                status=(
                    parse_enum(status, ProjectStatus, "status").value
                    if status is not None
                    else ProjectStatus.PLANNING.value
                ),
                priority=(
                    parse_enum(priority, ProjectPriority, "priority").value
                    if priority is not None
                    else ProjectPriority.NORMAL.value
                ),
                start_date=start_date,
                end_date=end_date,
                created_by_id=actor.id,
                created_at=now,
                updated_at=now,
            )
            if service_uuids:
                project.services = self._refs.require_services(service_uuids)
            self._session.add(project)
            self._session.flush()
            LogContext.set(entity_id=project.id)

            if roster:
                self._staffing.sync_members(project.id, roster)

        logger.info(
            "project_created",
            extra={
                "project_id": str(project.id),
                "budget": str(project.budget),
                "currency": project.currency,
                "members": len(roster),
            },
        )
        return project.id

    @write_context("project_id")
    def update_project(
        self,
        actor: Actor,
        project_id: Any,
        changes: Mapping[str, Any],
    ) -> ProjectDetail:
        """
        Apply a partial update.  When ``employees`` is present the roster is
        reconciled by the staffing synchronizer in the same transaction.
        """
        self._authorizer.require(actor, "project.write")
        project_uuid = as_uuid(project_id, "project")

        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise DomainValidationError(
                "changes", f"unknown fields: {', '.join(sorted(unknown))}"
            )

        client_uuid = as_uuid(changes["client_id"], "client") if changes.get("client_id") else None
        department_uuid = (
            as_uuid(changes["department_id"], "department")
            if changes.get("department_id")
            else None
        )
        service_uuids = (
            [as_uuid(s, "service") for s in changes["service_ids"]]
            if changes.get("service_ids") is not None
            else None
        )
        roster = parse_roster(changes["employees"]) if changes.get("employees") is not None else None

        self._validate_references(
            client_uuid,
            department_uuid,
            service_uuids or [],
            [e.employee_id for e in roster] if roster else [],
        )

        sync: SyncResult | None = None
        with unit_of_work(self._session, "project_update", project_id=project_uuid):
            project = self._session.get(Project, project_uuid)
            if project is None:
                raise ProjectNotFoundError(project_uuid)

            if "name" in changes:
                if not changes["name"] or not str(changes["name"]).strip():
                    raise DomainValidationError("name", "is required")
                project.name = str(changes["name"]).strip()
            if "description" in changes:
                project.description = changes["description"]
            if client_uuid is not None:
                project.client_id = client_uuid
            if department_uuid is not None:
                project.department_id = department_uuid
            if service_uuids is not None:
                project.services = self._refs.require_services(service_uuids)
            if "status" in changes:
                project.status = parse_enum(changes["status"], ProjectStatus, "status").value
            if "priority" in changes:
                project.priority = parse_enum(
                    changes["priority"], ProjectPriority, "priority"
                ).value
            if "start_date" in changes:
                project.start_date = changes["start_date"]
            if "end_date" in changes:
                project.end_date = changes["end_date"]

            if "budget" in changes or "currency" in changes:
                new_currency = parse_currency(
                    changes.get("currency") or project.currency or DEFAULT_CURRENCY
                )
                new_budget = changes["budget"] if "budget" in changes else project.budget
                converted = self._conversion.convert_to_all(new_budget, new_currency)
                project.budget = to_decimal(new_budget)
                project.currency = new_currency.value
                project.budget_converted = converted.to_json()

            project.updated_at = self._clock.now()
            self._session.flush()

            if roster is not None:
                sync = self._staffing.sync_members(project_uuid, roster)

        logger.info(
            "project_updated",
            extra={
                "project_id": str(project_uuid),
                "fields": sorted(changes),
                "member_writes": sync.write_count if sync else 0,
            },
        )
        return self._selector.get(project_uuid)

    @write_context("project_id")
    def sync_members(
        self,
        actor: Actor,
        project_id: Any,
        roster: Iterable[RosterEntry | Mapping[str, Any]],
    ) -> SyncResult:
        """Reconcile the roster only; commits or rolls back as one batch."""
        self._authorizer.require(actor, "project.write")
        project_uuid = as_uuid(project_id, "project")
        entries = parse_roster(roster)
        self._refs.require_project(project_uuid)
        self._refs.require_active_employees(e.employee_id for e in entries)

        with unit_of_work(self._session, "members_sync", project_id=project_uuid):
            result = self._staffing.sync_members(project_uuid, entries)
        return result

    @write_context("project_id")
    def delete_project(self, actor: Actor, project_id: Any) -> None:
        """Soft delete."""
        self._authorizer.require(actor, "project.write")
        project_uuid = as_uuid(project_id, "project")
        with unit_of_work(self._session, "project_delete", project_id=project_uuid):
            project = self._refs.require_project(project_uuid)
            project.is_active = False
            project.updated_at = self._clock.now()

        logger.info(
            "project_deleted",
            extra={"project_id": str(project_uuid)},
        )

    @write_context("project_id")
    def toggle_project_active(self, actor: Actor, project_id: Any) -> bool:
        """Flip ``is_active``; returns the new value."""
        self._authorizer.require(actor, "project.toggle")
        project_uuid = as_uuid(project_id, "project")
        with unit_of_work(self._session, "project_toggle", project_id=project_uuid):
            project = self._refs.require_project(project_uuid)
            project.is_active = not project.is_active
            project.updated_at = self._clock.now()
            new_state = project.is_active

        logger.info(
            "project_toggled",
            extra={"project_id": str(project_uuid), "is_active": new_state},
        )
        return new_state

    # =========================================================================
    # Reads
    # =========================================================================

    def get_project(self, project_id: Any, actor: Actor | None = None) -> ProjectDetail:
        if actor is not None:
            self._authorizer.require(actor, "project.read")
        return self._selector.get(as_uuid(project_id, "project"))

    def list_projects(
        self,
        filters: ProjectFilter | None = None,
        pagination: Pagination | None = None,
        actor: Actor | None = None,
    ) -> Page[ProjectListItem]:
        if actor is not None:
            self._authorizer.require(actor, "project.read")
        return self._selector.list(filters or ProjectFilter(), pagination or Pagination())

    # =========================================================================
    # Internals
    # =========================================================================

    def _validate_references(
        self,
        client_id: UUID | None,
        department_id: UUID | None,
        service_ids: list[UUID],
        employee_ids: list[UUID],
    ) -> None:
        """Independent lookups, issued concurrently when a session factory is set."""
        tasks = []
        if client_id is not None:
            tasks.append(lambda s: ReferenceSelector(s).require_active_client(client_id))
        if department_id is not None:
            tasks.append(lambda s: ReferenceSelector(s).require_active_department(department_id))
        if service_ids:
            tasks.append(lambda s: ReferenceSelector(s).require_services(service_ids))
        if employee_ids:
            tasks.append(lambda s: ReferenceSelector(s).require_active_employees(employee_ids))
        run_parallel(tasks, session_factory=self._session_factory, session=self._session)
