"""
Log context carried by module writes.

Every line logged during a write names the acting user, the entity being
written and a correlation id shared by the whole operation.
"""

import pytest

from agency_kernel.exceptions import RateFetchError
from agency_kernel.logging_config import LogContext
from agency_modules.employees import EmployeeService
from agency_modules.projects import ProjectService
from agency_modules.transactions import TransactionService


@pytest.fixture
def transactions(session, conversion, clock) -> TransactionService:
    return TransactionService(session, conversion, clock)


def _records(captured_logs, message: str) -> list[dict]:
    return [r for r in captured_logs() if r["message"] == message]


class TestTransactionWrites:
    def test_create_logs_actor_and_new_entity(self, transactions, admin, captured_logs):
        txn_id = transactions.create(admin, type="expense", category="office", amount=10)

        [created] = _records(captured_logs, "transaction_created")
        assert created["actor_id"] == str(admin.id)
        assert created["entity_id"] == str(txn_id)
        assert created["correlation_id"]

    def test_context_is_released_after_the_write(self, transactions, admin):
        transactions.create(admin, type="expense", category="office", amount=10)
        assert LogContext.get_all() == {}

    def test_update_and_delete_name_the_target(self, transactions, admin, captured_logs):
        txn_id = transactions.create(admin, type="expense", category="office", amount=10)
        transactions.update(admin, txn_id, {"notes": "rent"})
        transactions.delete(admin, str(txn_id))

        [updated] = _records(captured_logs, "transaction_updated")
        [deleted] = _records(captured_logs, "transaction_deleted")
        assert updated["entity_id"] == deleted["entity_id"] == str(txn_id)

    def test_each_write_gets_its_own_correlation_id(self, transactions, admin, captured_logs):
        transactions.create(admin, type="expense", category="office", amount=10)
        transactions.create(admin, type="expense", category="office", amount=20)
        first, second = _records(captured_logs, "transaction_created")
        assert first["correlation_id"] != second["correlation_id"]

    def test_caller_correlation_id_is_kept(self, transactions, admin, captured_logs):
        with LogContext.bind(correlation_id="req-42"):
            transactions.create(admin, type="expense", category="office", amount=10)
            assert LogContext.get_all() == {"correlation_id": "req-42"}

        [created] = _records(captured_logs, "transaction_created")
        assert created["correlation_id"] == "req-42"

    def test_rollback_warning_carries_actor(
        self, transactions, admin, rate_client, rate_provider, captured_logs
    ):
        rate_client.cache.clear()
        rate_provider.fail = True
        with pytest.raises(RateFetchError):
            transactions.create(admin, type="expense", category="office", amount=10)

        [rolled_back] = _records(captured_logs, "transaction_create_rolled_back")
        assert rolled_back["actor_id"] == str(admin.id)
        assert "entity_id" not in rolled_back


class TestProjectAndEmployeeWrites:
    def test_project_create_shares_context_with_member_sync(
        self, session, conversion, clock, factory, admin, captured_logs
    ):
        projects = ProjectService(session, conversion, clock)
        employee = factory.employee()
        project_id = projects.create_project(
            admin,
            name="Rebrand",
            client_id=factory.client().id,
            department_id=factory.department().id,
            employees=[{"employee_id": employee.id, "compensation": 1000}],
        )

        [created] = _records(captured_logs, "project_created")
        [synced] = _records(captured_logs, "members_synced")
        assert created["entity_id"] == synced["entity_id"] == str(project_id)
        assert created["correlation_id"] == synced["correlation_id"]

    def test_toggle_names_the_project(
        self, session, conversion, clock, factory, admin, captured_logs
    ):
        projects = ProjectService(session, conversion, clock)
        project = factory.project()
        projects.toggle_project_active(admin, project.id)

        [toggled] = _records(captured_logs, "project_toggled")
        assert (toggled["actor_id"], toggled["entity_id"]) == (str(admin.id), str(project.id))

    def test_provisioning_names_the_new_employee(
        self, session, recording_email_sender, clock, factory, admin, captured_logs
    ):
        department = factory.department()
        employees = EmployeeService(session, recording_email_sender, clock)
        employee_id = employees.create_employee(
            admin,
            name="Sara Ahmed",
            email="sara@example.com",
            department_id=department.id,
            position_id=factory.position(department).id,
        )

        [provisioned] = _records(captured_logs, "employee_provisioned")
        assert provisioned["entity_id"] == str(employee_id)
        assert provisioned["actor_id"] == str(admin.id)
