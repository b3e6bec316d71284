"""
Analytics Service (``agency_modules.analytics.service``).

Responsibility
--------------
Dashboard aggregations shown in a caller-selected display currency:

* ``overview`` -- time-windowed income, salaries, other expenses, profit,
  income by department by quarter, monthly income growth and the most
  recent active projects;
* ``stats`` -- portfolio counts, active employees, department spend against
  budget and average completion.

Architecture position
---------------------
**Modules layer** -- composes ``TransactionSelector``, ``ProjectSelector``,
``EmployeeSelector`` and ``ReferenceSelector``.  The independent reads of
each view are fanned out with ``run_parallel``.

Invariants enforced
-------------------
* Only completed transactions are aggregated.
* Each amount is read from its converted map in the display currency; a
  missing or non-positive converted value falls back to the raw amount.
  Each record is rounded to whole units before summing.
* Transactions without a project are grouped under ``"Unassigned"``.
* Every ratio with a zero denominator yields 0.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from agency_kernel.db.types import round_whole
from agency_kernel.domain.clock import Clock, SystemClock
from agency_kernel.domain.currency import (
    DEFAULT_CURRENCY,
    Currency,
    display_amount,
    is_supported_currency,
    parse_currency,
)
from agency_kernel.domain.enums import ProjectStatus, TransactionCategory, TransactionType
from agency_kernel.logging_config import get_logger
from agency_kernel.selectors.employee_selector import EmployeeSelector
from agency_kernel.selectors.project_selector import ProjectSelector
from agency_kernel.selectors.reference_selector import ReferenceSelector
from agency_kernel.selectors.transaction_selector import DisplayRow, TransactionSelector
from agency_modules.finance.service import percentage
from agency_services.parallel import run_parallel
from agency_services.rbac import Actor, Authorizer

logger = get_logger("modules.analytics.service")

UNASSIGNED = "Unassigned"
RECENT_PROJECTS_LIMIT = 10


def resolve_display_currency(
    header: Any = None,
    query: Any = None,
    user_preference: Any = None,
) -> Currency:
    """First supported value of header, query, user preference; else EGP."""
    for candidate in (header, query, user_preference):
        if candidate is not None and is_supported_currency(candidate):
            return parse_currency(candidate)
    return DEFAULT_CURRENCY


@dataclass(frozen=True)
class Period:
    start: datetime | None
    end: datetime | None
    lifetime: bool = False


@dataclass(frozen=True)
class OverviewTotals:
    total_income: int
    total_salaries: int
    other_expenses: int
    net_profit: int
    profit_margin: int


@dataclass(frozen=True)
class QuarterIncome:
    quarter: str
    departments: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class GrowthPoint:
    year: int
    month: int
    value: int


@dataclass(frozen=True)
class RecentProject:
    id: UUID
    name: str
    client: str | None
    department: str | None
    status: str
    start_date: datetime | None
    end_date: datetime | None
    budget: int


@dataclass(frozen=True)
class Overview:
    period: Period
    currency: Currency
    financials: OverviewTotals
    growth_trend: tuple[GrowthPoint, ...]
    income_by_department: tuple[QuarterIncome, ...]
    recent_projects: tuple[RecentProject, ...]


@dataclass(frozen=True)
class DepartmentProgress:
    id: UUID
    name: str
    spent: int
    budget: int
    percent: int


@dataclass(frozen=True)
class Stats:
    currency: Currency
    total_projects: int
    active_projects: int
    active_employees: int
    avg_completion: int
    departments: tuple[DepartmentProgress, ...]


def _display(row: DisplayRow, currency: Currency) -> int:
    return round_whole(display_amount(row.amount_converted, currency, row.amount))


def quarter_of(moment: datetime) -> int:
    return (moment.month + 2) // 3


def _recent_projects(session: Session, currency: Currency) -> list[RecentProject]:
    projects = ProjectSelector(session).active_projects(limit=RECENT_PROJECTS_LIMIT)
    names = ReferenceSelector(session).department_names(p.department_id for p in projects)
    return [
        RecentProject(
            id=p.id,
            name=p.name,
            client=(p.client.name or p.client.company_name) if p.client else None,
            department=names.get(p.department_id),
            status=p.status,
            start_date=p.start_date,
            end_date=p.end_date,
            budget=round_whole(display_amount(p.budget_converted, currency, p.budget)),
        )
        for p in projects
    ]


def _department_budgets(session: Session, currency: Currency) -> dict[UUID, int]:
    budgets: dict[UUID, int] = defaultdict(int)
    for project in ProjectSelector(session).active_projects():
        budgets[project.department_id] += round_whole(
            display_amount(project.budget_converted, currency, project.budget)
        )
    return dict(budgets)


class AnalyticsService:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        authorizer: Authorizer | None = None,
        session_factory: sessionmaker[Session] | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._authorizer = authorizer or Authorizer()
        self._session_factory = session_factory

    def _authorize(self, actor: Actor | None) -> None:
        if actor is not None:
            self._authorizer.require(actor, "analytics.read")

    def _parallel(self, tasks: list) -> list[Any]:
        return run_parallel(tasks, session_factory=self._session_factory, session=self._session)

    def resolve_period(
        self,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
        lifetime: bool = False,
    ) -> Period:
        """
        Default window is the first day of the current month to the end of
        today.  An explicit end is extended to the end of its day.
        """
        if lifetime:
            return Period(start=None, end=None, lifetime=True)
        now = self._clock.now()
        tz = now.tzinfo

        if start is None:
            window_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        elif isinstance(start, datetime):
            window_start = start
        else:
            window_start = datetime.combine(start, time.min, tzinfo=tz)

        end_day = now.date() if end is None else (end.date() if isinstance(end, datetime) else end)
        end_tz = end.tzinfo if isinstance(end, datetime) and end.tzinfo else tz
        window_end = datetime.combine(end_day, time.max, tzinfo=end_tz)
        return Period(start=window_start, end=window_end)

    # =========================================================================
    # Overview
    # =========================================================================

    def overview(
        self,
        display_currency: Any = None,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
        lifetime: bool = False,
        actor: Actor | None = None,
    ) -> Overview:
        self._authorize(actor)
        currency = parse_currency(display_currency or DEFAULT_CURRENCY)
        period = self.resolve_period(start, end, lifetime)

        window_rows, all_income_rows, recent = self._parallel([
            lambda s: TransactionSelector(s).completed_display_rows(
                start_date=period.start, end_date=period.end
            ),
            lambda s: TransactionSelector(s).completed_display_rows(TransactionType.INCOME),
            lambda s: _recent_projects(s, currency),
        ])

        income = salaries = other = 0
        for row in window_rows:
            value = _display(row, currency)
            if row.type == TransactionType.INCOME.value:
                income += value
            elif row.category == TransactionCategory.EMPLOYEE_SALARY.value:
                salaries += value
            else:
                other += value
        net = income - salaries - other

        financials = OverviewTotals(
            total_income=income,
            total_salaries=salaries,
            other_expenses=other,
            net_profit=net,
            profit_margin=percentage(net, income),
        )

        income_rows = [r for r in window_rows if r.type == TransactionType.INCOME.value]
        result = Overview(
            period=period,
            currency=currency,
            financials=financials,
            growth_trend=tuple(self._growth_trend(all_income_rows, currency)),
            income_by_department=tuple(self._income_by_department(income_rows, currency)),
            recent_projects=tuple(recent),
        )
        logger.debug(
            "overview_computed",
            extra={
                "currency": currency.value,
                "lifetime": period.lifetime,
                "transactions": len(window_rows),
            },
        )
        return result

    def _income_by_department(
        self, rows: Iterable[DisplayRow], currency: Currency
    ) -> list[QuarterIncome]:
        rows = list(rows)
        names = ReferenceSelector(self._session).department_names(
            r.department_id for r in rows
        )
        pivot: dict[int, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        for row in rows:
            department = names.get(row.department_id, UNASSIGNED) if row.department_id else UNASSIGNED
            pivot[quarter_of(row.date)][department] += _display(row, currency)
        return [
            QuarterIncome(quarter=f"Q{q}", departments=dict(sorted(pivot[q].items())))
            for q in sorted(pivot)
        ]

    @staticmethod
    def _growth_trend(rows: Iterable[DisplayRow], currency: Currency) -> list[GrowthPoint]:
        months: dict[tuple[int, int], int] = defaultdict(int)
        for row in rows:
            months[(row.date.year, row.date.month)] += _display(row, currency)
        return [
            GrowthPoint(year=year, month=month, value=months[(year, month)])
            for year, month in sorted(months)
        ]

    # =========================================================================
    # Stats
    # =========================================================================

    def stats(self, display_currency: Any = None, actor: Actor | None = None) -> Stats:
        self._authorize(actor)
        currency = parse_currency(display_currency or DEFAULT_CURRENCY)

        (
            total_projects,
            active_projects,
            completed_active,
            active_employees,
            expense_rows,
            budgets,
        ) = self._parallel([
            lambda s: ProjectSelector(s).count_projects(),
            lambda s: ProjectSelector(s).count_projects(is_active=True),
            lambda s: ProjectSelector(s).count_projects(
                is_active=True, status=ProjectStatus.COMPLETED
            ),
            lambda s: EmployeeSelector(s).count_active(),
            lambda s: TransactionSelector(s).completed_display_rows(TransactionType.EXPENSE),
            lambda s: _department_budgets(s, currency),
        ])

        spent: dict[UUID, int] = defaultdict(int)
        for row in expense_rows:
            if row.department_id is not None:
                spent[row.department_id] += _display(row, currency)

        names = ReferenceSelector(self._session).department_names(spent)
        departments = tuple(
            DepartmentProgress(
                id=department_id,
                name=names.get(department_id, "Unknown"),
                spent=amount,
                budget=budgets.get(department_id, 0),
                percent=percentage(amount, budgets.get(department_id, 0)),
            )
            for department_id, amount in spent.items()
        )

        return Stats(
            currency=currency,
            total_projects=total_projects,
            active_projects=active_projects,
            active_employees=active_employees,
            avg_completion=percentage(completed_active, active_projects),
            departments=departments,
        )
