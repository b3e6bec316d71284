"""
Tests for roster reconciliation on a project.

Covers the four outcomes of a sync (add, update, reactivate, remove),
idempotent resubmission, and the all-or-nothing behaviour when a
compensation cannot be converted.
"""

from decimal import Decimal

import pytest

from agency_kernel.exceptions import (
    DomainValidationError,
    EmployeeInactiveError,
    EmployeeNotAssignedError,
    RateFetchError,
)
from agency_kernel.selectors.project_selector import ProjectSelector
from agency_modules.projects import ProjectService
from agency_modules.transactions import TransactionService


@pytest.fixture
def projects(session, conversion, clock) -> ProjectService:
    return ProjectService(session, conversion, clock)


@pytest.fixture
def team(factory):
    department = factory.department()
    return {
        "client": factory.client(),
        "department": department,
        "sara": factory.employee(department=department, name="sara"),
        "omar": factory.employee(department=department, name="omar"),
    }


@pytest.fixture
def project_id(projects, team, admin):
    return projects.create_project(
        admin,
        name="Website",
        client_id=team["client"].id,
        department_id=team["department"].id,
        budget=100000,
        employees=[{"employee_id": team["sara"].id, "compensation": 40000}],
    )


def _members(session, project_id):
    return {m.employee_id: m for m in ProjectSelector(session).all_members(project_id)}


class TestSyncOutcomes:
    def test_initial_roster_persisted_with_conversion(self, session, project_id, team):
        member = _members(session, project_id)[team["sara"].id]
        assert member.compensation == Decimal("40000")
        assert member.currency == "EGP"
        assert member.compensation_converted["USD"] == 800
        assert member.removed_at is None

    def test_resubmitting_same_roster_writes_nothing(self, projects, project_id, team, admin):
        result = projects.sync_members(
            admin, project_id, [{"employee_id": team["sara"].id, "compensation": "40000.00"}]
        )
        assert result.write_count == 0

    def test_changed_compensation_updates_row(self, session, projects, project_id, team, admin):
        before = _members(session, project_id)[team["sara"].id].id
        result = projects.sync_members(
            admin, project_id, [{"employee": team["sara"].id, "compensation": 45000}]
        )
        assert result.updated == (team["sara"].id,)

        member = _members(session, project_id)[team["sara"].id]
        assert member.id == before
        assert member.compensation == Decimal("45000")
        assert member.compensation_converted["EGP"] == 45000

    def test_currency_change_counts_as_update(self, session, projects, project_id, team, admin):
        result = projects.sync_members(
            admin,
            project_id,
            [{"employee_id": team["sara"].id, "compensation": 40000, "currency": "USD"}],
        )
        assert result.updated == (team["sara"].id,)
        member = _members(session, project_id)[team["sara"].id]
        assert member.currency == "USD"
        assert member.compensation_converted["EGP"] == 2000000

    def test_new_employee_added(self, projects, project_id, team, admin):
        result = projects.sync_members(
            admin,
            project_id,
            [
                {"employee_id": team["sara"].id, "compensation": 40000},
                {"employee_id": team["omar"].id, "compensation": 1000, "currency": "usd"},
            ],
        )
        assert result.added == (team["omar"].id,)
        assert result.write_count == 1

        detail = projects.get_project(project_id)
        assert {e.name for e in detail.employees} == {"sara", "omar"}

    def test_absent_employee_soft_removed(self, session, projects, project_id, team, admin):
        result = projects.sync_members(admin, project_id, [])
        assert result.removed == (team["sara"].id,)

        assert projects.get_project(project_id).employees == ()
        member = _members(session, project_id)[team["sara"].id]
        assert member.removed_at is not None

    def test_removed_employee_reactivated_on_same_row(
        self, session, projects, project_id, team, admin
    ):
        original_id = _members(session, project_id)[team["sara"].id].id
        projects.sync_members(admin, project_id, [])

        result = projects.sync_members(
            admin, project_id, [{"employee_id": team["sara"].id, "compensation": 30000}]
        )
        assert result.reactivated == (team["sara"].id,)

        members = _members(session, project_id)
        assert len(members) == 1
        member = members[team["sara"].id]
        assert member.id == original_id
        assert member.removed_at is None
        assert member.compensation == Decimal("30000")

    def test_removed_member_cannot_be_paid_against_project(
        self, session, conversion, clock, projects, project_id, team, admin
    ):
        projects.sync_members(admin, project_id, [])
        with pytest.raises(EmployeeNotAssignedError):
            TransactionService(session, conversion, clock).record_employee_payment(
                admin, employee_id=team["sara"].id, project_id=project_id, amount=100
            )


class TestSyncValidation:
    def test_duplicate_employee_rejected(self, projects, project_id, team, admin):
        with pytest.raises(DomainValidationError):
            projects.sync_members(
                admin,
                project_id,
                [
                    {"employee_id": team["sara"].id, "compensation": 1},
                    {"employee_id": team["sara"].id, "compensation": 2},
                ],
            )

    def test_negative_compensation_rejected(self, projects, project_id, team, admin):
        with pytest.raises(DomainValidationError):
            projects.sync_members(
                admin, project_id, [{"employee_id": team["sara"].id, "compensation": -1}]
            )

    def test_inactive_employee_rejected(self, projects, project_id, factory, admin):
        inactive = factory.employee(is_active=False)
        with pytest.raises(EmployeeInactiveError):
            projects.sync_members(
                admin, project_id, [{"employee_id": inactive.id, "compensation": 1}]
            )

    def test_rate_failure_leaves_roster_untouched(
        self, session, projects, project_id, team, rate_client, rate_provider, admin,
        captured_logs,
    ):
        rate_client.cache.clear()
        rate_provider.fail = True

        with pytest.raises(RateFetchError):
            projects.sync_members(
                admin,
                project_id,
                [
                    {"employee_id": team["sara"].id, "compensation": 50000},
                    {"employee_id": team["omar"].id, "compensation": 1000},
                ],
            )

        members = _members(session, project_id)
        assert set(members) == {team["sara"].id}
        assert members[team["sara"].id].compensation == Decimal("40000")
        assert any(r["message"] == "members_sync_rolled_back" for r in captured_logs())
