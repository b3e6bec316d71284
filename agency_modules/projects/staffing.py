"""
Project Staffing Synchronizer.

Reconciles a project's declared roster against its membership rows:

1. Load every membership row for the project, active and removed, and
   partition by employee.
2. For each incoming entry: an active row with the same compensation and
   currency is left alone; an active row with different values is updated;
   a removed row is reactivated (``removed_at`` cleared, ``assigned_at``
   reset); otherwise a row is inserted.
3. Active rows whose employee is absent from the roster are soft-removed.
4. Every conversion runs before any row is touched.  A failed conversion
   aborts the whole sync, so the batch is all-or-nothing.

The synchronizer only flushes.  ``ProjectService`` owns the commit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from agency_kernel.db.types import to_decimal
from agency_kernel.domain.clock import Clock, SystemClock
from agency_kernel.domain.currency import DEFAULT_CURRENCY, ConvertedAmounts, Currency, parse_currency
from agency_kernel.domain.query import as_uuid
from agency_kernel.exceptions import DomainValidationError
from agency_kernel.logging_config import get_logger
from agency_kernel.models.project import ProjectMember
from agency_kernel.selectors.project_selector import ProjectSelector
from agency_kernel.services.currency_conversion import CurrencyConversionService

logger = get_logger("modules.projects.staffing")


@dataclass(frozen=True)
class RosterEntry:
    """One employee's declared compensation on a project."""

    employee_id: UUID
    compensation: Decimal
    currency: Currency = DEFAULT_CURRENCY

    @classmethod
    def parse(cls, raw: RosterEntry | Mapping[str, Any]) -> RosterEntry:
        if isinstance(raw, RosterEntry):
            return raw
        employee = raw.get("employee_id", raw.get("employee"))
        try:
            compensation = to_decimal(raw.get("compensation", 0))
        except ValueError as exc:
            raise DomainValidationError("compensation", str(exc)) from exc
        if compensation < 0:
            raise DomainValidationError("compensation", "must be zero or greater")
        return cls(
            employee_id=as_uuid(employee, "employee"),
            compensation=compensation,
            currency=parse_currency(raw.get("currency") or DEFAULT_CURRENCY),
        )


def parse_roster(entries: Iterable[RosterEntry | Mapping[str, Any]]) -> list[RosterEntry]:
    """Parse roster entries; an employee may appear only once."""
    roster = [RosterEntry.parse(e) for e in entries]
    seen: set[UUID] = set()
    for entry in roster:
        if entry.employee_id in seen:
            raise DomainValidationError(
                "employees", f"employee {entry.employee_id} listed more than once"
            )
        seen.add(entry.employee_id)
    return roster


@dataclass(frozen=True)
class SyncResult:
    """Employee ids touched by each kind of operation."""

    added: tuple[UUID, ...] = ()
    updated: tuple[UUID, ...] = ()
    reactivated: tuple[UUID, ...] = ()
    removed: tuple[UUID, ...] = ()

    @property
    def write_count(self) -> int:
        return len(self.added) + len(self.updated) + len(self.reactivated) + len(self.removed)


@dataclass
class _Plan:
    add: list[RosterEntry] = field(default_factory=list)
    update: list[tuple[ProjectMember, RosterEntry]] = field(default_factory=list)
    reactivate: list[tuple[ProjectMember, RosterEntry]] = field(default_factory=list)
    remove: list[ProjectMember] = field(default_factory=list)


class StaffingSynchronizer:
    def __init__(
        self,
        session: Session,
        conversion: CurrencyConversionService,
        clock: Clock | None = None,
    ):
        self._session = session
        self._conversion = conversion
        self._clock = clock or SystemClock()
        self._projects = ProjectSelector(session)

    def plan(self, project_id: UUID, roster: list[RosterEntry]) -> _Plan:
        active: dict[UUID, ProjectMember] = {}
        removed: dict[UUID, ProjectMember] = {}
        for member in self._projects.all_members(project_id):
            if member.removed_at is None:
                active[member.employee_id] = member
            else:
                removed[member.employee_id] = member

        plan = _Plan()
        for entry in roster:
            current = active.get(entry.employee_id)
            if current is not None:
                unchanged = (
                    to_decimal(current.compensation) == entry.compensation
                    and current.currency == entry.currency.value
                )
                if not unchanged:
                    plan.update.append((current, entry))
            elif entry.employee_id in removed:
                plan.reactivate.append((removed[entry.employee_id], entry))
            else:
                plan.add.append(entry)

        incoming = {entry.employee_id for entry in roster}
        plan.remove = [m for emp, m in active.items() if emp not in incoming]
        return plan

    def sync_members(
        self,
        project_id: UUID,
        roster: Iterable[RosterEntry | Mapping[str, Any]],
    ) -> SyncResult:
        """Reconcile memberships with ``roster`` and flush."""
        entries = parse_roster(roster)
        plan = self.plan(project_id, entries)

        # Convert everything first so a rate failure leaves no row modified
        conversions: dict[UUID, ConvertedAmounts] = {}
        for entry in [*plan.add, *(e for _, e in plan.update), *(e for _, e in plan.reactivate)]:
            conversions[entry.employee_id] = self._conversion.convert_to_all(
                entry.compensation, entry.currency
            )

        now = self._clock.now()

        for entry in plan.add:
            self._session.add(
                ProjectMember(
                    project_id=project_id,
                    employee_id=entry.employee_id,
                    compensation=entry.compensation,
                    currency=entry.currency.value,
                    compensation_converted=conversions[entry.employee_id].to_json(),
                    assigned_at=now,
                    created_at=now,
                    updated_at=now,
                )
            )

        for member, entry in plan.update:
            member.compensation = entry.compensation
            member.currency = entry.currency.value
            member.compensation_converted = conversions[entry.employee_id].to_json()
            member.updated_at = now

        for member, entry in plan.reactivate:
            member.removed_at = None
            member.assigned_at = now
            member.compensation = entry.compensation
            member.currency = entry.currency.value
            member.compensation_converted = conversions[entry.employee_id].to_json()
            member.updated_at = now

        for member in plan.remove:
            member.removed_at = now
            member.updated_at = now

        self._session.flush()

        result = SyncResult(
            added=tuple(e.employee_id for e in plan.add),
            updated=tuple(e.employee_id for _, e in plan.update),
            reactivated=tuple(e.employee_id for _, e in plan.reactivate),
            removed=tuple(m.employee_id for m in plan.remove),
        )
        logger.info(
            "members_synced",
            extra={
                "project_id": str(project_id),
                "added": len(result.added),
                "updated": len(result.updated),
                "reactivated": len(result.reactivated),
                "removed": len(result.removed),
            },
        )
        return result
