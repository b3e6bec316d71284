"""
Finance Service (``agency_modules.finance.service``).

Responsibility
--------------
Read-only financial views over completed transactions and active project
memberships:

* project financials -- agreed compensation, money collected, expenses,
  balances due and profit for one project;
* project employee breakdown -- per active member, paid against agreed
  compensation, with the full payment history;
* client payment history -- client payments for one project with the share
  of the budget collected;
* company financials -- income, expenses and margins across the system.

Architecture position
---------------------
**Modules layer** -- composes ``ProjectSelector`` and
``TransactionSelector``.  Independent reads are fanned out with
``run_parallel``.

Invariants enforced
-------------------
* Only ``status = completed`` transactions are aggregated.
* Project views report in the project's own currency.  Each transaction
  and compensation contributes its stored converted value in that currency,
  so a USD payment against an EGP budget counts at its EGP value.  Individual
  payments keep their original amount and currency.
* Company totals add origin amounts across the ledger.
* Every aggregated money value is rounded to whole units on the way out;
  sums are taken on exact values first.
* Every ratio with a zero denominator yields 0.

Failure modes
-------------
* ``ProjectNotFoundError`` -- project missing or soft-deleted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from agency_kernel.db.types import round_whole, to_decimal
from agency_kernel.domain.currency import display_amount
from agency_kernel.domain.enums import (
    EMPLOYEE_PAYMENT_CATEGORIES,
    TransactionCategory,
    TransactionType,
)
from agency_kernel.domain.query import as_uuid
from agency_kernel.exceptions import ProjectNotFoundError
from agency_kernel.logging_config import get_logger
from agency_kernel.models.project import Project
from agency_kernel.selectors.project_selector import ProjectSelector
from agency_kernel.selectors.transaction_selector import TransactionSelector, TransactionView
from agency_services.parallel import run_parallel
from agency_services.rbac import Actor, Authorizer

logger = get_logger("modules.finance.service")

ZERO = Decimal("0")


def percentage(part: Decimal | int, whole: Decimal | int) -> int:
    """``round(part / whole * 100)``; 0 when ``whole`` is zero."""
    if not whole:
        return 0
    return round_whole(to_decimal(part) / to_decimal(whole) * 100)


@dataclass(frozen=True)
class ProjectRef:
    id: UUID
    name: str
    budget: int
    currency: str
    status: str
    client_id: UUID
    client_name: str | None


@dataclass(frozen=True)
class ProjectFinancials:
    project: ProjectRef
    budget: int
    total_employees_compensation: int
    employees_count: int
    money_collected: int
    total_expenses: int
    paid_to_employees: int
    other_expenses: int
    client_balance_due: int
    employee_balance_due: int
    gross_profit: int
    net_profit_to_date: int
    client_transactions: tuple[TransactionView, ...]
    employee_transactions: tuple[TransactionView, ...]


@dataclass(frozen=True)
class EmployeePayment:
    id: UUID
    amount: Decimal
    currency: str
    category: str
    date: datetime
    description: str | None


@dataclass(frozen=True)
class EmployeeBreakdownLine:
    employee_id: UUID
    name: str
    email: str | None
    position: str | None
    compensation: int
    currency: str
    paid: int
    remaining: int
    payment_count: int
    payments: tuple[EmployeePayment, ...]


@dataclass(frozen=True)
class BreakdownSummary:
    employees_count: int
    currency: str
    total_compensation: int
    total_paid: int
    total_remaining: int


@dataclass(frozen=True)
class EmployeeBreakdown:
    project_id: UUID
    project_name: str
    breakdown: tuple[EmployeeBreakdownLine, ...]
    summary: BreakdownSummary


@dataclass(frozen=True)
class ClientPaymentHistory:
    project: ProjectRef
    payments: tuple[TransactionView, ...]
    total_payments: int
    total_collected: int
    balance_due: int
    percentage_paid: int


@dataclass(frozen=True)
class CompanyFinancials:
    period_start: str
    period_end: str
    total_income: int
    total_expenses: int
    net_profit: int
    profit_margin: int
    active_projects: int
    total_budget: int
    uncollected: int
    income_count: int
    expense_count: int


def _project_ref(project: Project) -> ProjectRef:
    return ProjectRef(
        id=project.id,
        name=project.name,
        budget=round_whole(project.budget),
        currency=project.currency,
        status=project.status,
        client_id=project.client_id,
        client_name=project.client.name if project.client else None,
    )


class FinanceService:
    def __init__(
        self,
        session: Session,
        authorizer: Authorizer | None = None,
        session_factory: sessionmaker[Session] | None = None,
    ):
        self._session = session
        self._authorizer = authorizer or Authorizer()
        self._session_factory = session_factory

    def _authorize(self, actor: Actor | None) -> None:
        if actor is not None:
            self._authorizer.require(actor, "finance.read")

    def _active_project(self, project_id: UUID) -> Project:
        project = self._session.get(Project, project_id)
        if project is None or not project.is_active:
            raise ProjectNotFoundError(project_id)
        return project

    def _parallel(self, tasks: list) -> list[Any]:
        return run_parallel(tasks, session_factory=self._session_factory, session=self._session)

    # =========================================================================
    # Project views
    # =========================================================================


    def project_financials(self, project_id: Any, actor: Actor | None = None) -> ProjectFinancials:
        self._authorize(actor)
        pid = as_uuid(project_id, "project")
        project = self._active_project(pid)
        currency = project.currency

        (
            (total_compensation, member_count),
            income,
            total_expenses,
            paid_to_employees,
            client_txns,
            employee_txns,
        ) = self._parallel([
            lambda s: ProjectSelector(s).total_active_compensation(pid, currency),
            lambda s: TransactionSelector(s).sum_completed(
                pid, TransactionType.INCOME, currency=currency
            ),
            lambda s: TransactionSelector(s).sum_completed(
                pid, TransactionType.EXPENSE, currency=currency
            ),
            lambda s: TransactionSelector(s).sum_completed(
                pid, categories=EMPLOYEE_PAYMENT_CATEGORIES, currency=currency
            ),
            lambda s: TransactionSelector(s).completed(pid, TransactionType.INCOME),
            lambda s: TransactionSelector(s).completed(
                pid, categories=EMPLOYEE_PAYMENT_CATEGORIES
            ),
        ])

        budget = project.budget
        other_expenses = total_expenses - paid_to_employees
        return ProjectFinancials(
            project=_project_ref(project),
            budget=round_whole(budget),
            total_employees_compensation=round_whole(total_compensation),
            employees_count=member_count,
            money_collected=round_whole(income),
            total_expenses=round_whole(total_expenses),
            paid_to_employees=round_whole(paid_to_employees),
            other_expenses=round_whole(other_expenses),
            client_balance_due=round_whole(budget - income),
            employee_balance_due=round_whole(total_compensation - paid_to_employees),
            gross_profit=round_whole(budget - total_compensation - other_expenses),
            net_profit_to_date=round_whole(income - total_expenses),
            client_transactions=tuple(reversed(client_txns)),
            employee_transactions=tuple(reversed(employee_txns)),
        )

    def project_employee_breakdown(
        self, project_id: Any, actor: Actor | None = None
    ) -> EmployeeBreakdown:
        """
        Paid against agreed compensation for every active member.

        Each line is expressed in the member's compensation currency; the
        summary is expressed in the project's currency.
        """
        self._authorize(actor)
        pid = as_uuid(project_id, "project")
        project = self._active_project(pid)

        members = ProjectSelector(self._session).active_members(pid)
        payments = TransactionSelector(self._session).completed(
            pid, categories=EMPLOYEE_PAYMENT_CATEGORIES
        )
        by_employee: dict[UUID, list[TransactionView]] = {}
        for txn in payments:
            if txn.employee is not None:
                by_employee.setdefault(txn.employee.id, []).append(txn)

        lines = []
        total_compensation = total_paid = ZERO
        for member in members:
            history = by_employee.get(member.employee_id, [])
            paid = sum(
                (display_amount(t.amount_converted, member.currency, t.amount) for t in history),
                ZERO,
            )
            total_compensation += display_amount(
                member.compensation_converted, project.currency, member.compensation
            )
            total_paid += sum(
                (display_amount(t.amount_converted, project.currency, t.amount) for t in history),
                ZERO,
            )
            user = member.employee.user if member.employee else None
            position = member.employee.position if member.employee else None
            lines.append(
                EmployeeBreakdownLine(
                    employee_id=member.employee_id,
                    name=user.name if user else "Unknown",
                    email=user.email if user else None,
                    position=position.name if position else None,
                    compensation=round_whole(member.compensation),
                    currency=member.currency,
                    paid=round_whole(paid),
                    remaining=round_whole(member.compensation - paid),
                    payment_count=len(history),
                    payments=tuple(
                        EmployeePayment(
                            id=t.id,
                            amount=t.amount,
                            currency=t.currency,
                            category=t.category,
                            date=t.date,
                            description=t.description,
                        )
                        for t in history
                    ),
                )
            )

        summary = BreakdownSummary(
            employees_count=len(lines),
            currency=project.currency,
            total_compensation=round_whole(total_compensation),
            total_paid=round_whole(total_paid),
            total_remaining=round_whole(total_compensation - total_paid),
        )
        return EmployeeBreakdown(
            project_id=project.id,
            project_name=project.name,
            breakdown=tuple(lines),
            summary=summary,
        )

    def client_payment_history(
        self, project_id: Any, actor: Actor | None = None
    ) -> ClientPaymentHistory:
        self._authorize(actor)
        pid = as_uuid(project_id, "project")
        project = self._active_project(pid)

        payments = TransactionSelector(self._session).completed(
            pid,
            TransactionType.INCOME,
            categories=[TransactionCategory.CLIENT_PAYMENT],
        )
        total_collected = sum(
            (display_amount(p.amount_converted, project.currency, p.amount) for p in payments),
            ZERO,
        )
        return ClientPaymentHistory(
            project=_project_ref(project),
            payments=tuple(reversed(payments)),
            total_payments=len(payments),
            total_collected=round_whole(total_collected),
            balance_due=round_whole(project.budget - total_collected),
            percentage_paid=percentage(total_collected, project.budget),
        )

    # =========================================================================
    # Company view
    # =========================================================================

    def company_financials(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        actor: Actor | None = None,
    ) -> CompanyFinancials:
        self._authorize(actor)

        income, expenses, income_count, expense_count, active_count, total_budget = self._parallel([
            lambda s: TransactionSelector(s).sum_completed(
                transaction_type=TransactionType.INCOME, start_date=start_date, end_date=end_date
            ),
            lambda s: TransactionSelector(s).sum_completed(
                transaction_type=TransactionType.EXPENSE, start_date=start_date, end_date=end_date
            ),
            lambda s: TransactionSelector(s).count_completed(
                TransactionType.INCOME, start_date, end_date
            ),
            lambda s: TransactionSelector(s).count_completed(
                TransactionType.EXPENSE, start_date, end_date
            ),
            lambda s: ProjectSelector(s).count_projects(is_active=True),
            lambda s: ProjectSelector(s).active_budget_total(),
        ])

        net = income - expenses
        result = CompanyFinancials(
            period_start=start_date.isoformat() if start_date else "All time",
            period_end=end_date.isoformat() if end_date else "Present",
            total_income=round_whole(income),
            total_expenses=round_whole(expenses),
            net_profit=round_whole(net),
            profit_margin=percentage(net, income),
            active_projects=active_count,
            total_budget=round_whole(total_budget),
            uncollected=round_whole(total_budget - income),
            income_count=income_count,
            expense_count=expense_count,
        )
        logger.debug(
            "company_financials_computed",
            extra={"income": income, "expenses": expenses},
        )
        return result
