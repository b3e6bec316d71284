"""
Project lifecycle through ProjectService: creation with an initial roster,
partial updates, soft delete, the active toggle and filtered listing.
"""

import os
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from agency_kernel.domain.query import Pagination
from agency_kernel.exceptions import (
    ClientInactiveError,
    DepartmentInactiveError,
    DomainValidationError,
    EmployeeInactiveError,
    NotAuthorizedError,
    ProjectNotFoundError,
    ServiceNotFoundError,
)
from agency_kernel.selectors.project_selector import ProjectFilter
from agency_modules.projects import ProjectService


@pytest.fixture
def projects(session, conversion, clock) -> ProjectService:
    return ProjectService(session, conversion, clock)


@pytest.fixture
def refs(factory):
    department = factory.department(name="Design")
    return {
        "client": factory.client(name="Nile Foods"),
        "department": department,
        "service": factory.service(department, name="Branding"),
        "employee": factory.employee(department=department, name="mona"),
    }


def _create(projects, refs, actor, **overrides):
    kwargs = {
        "name": "Rebrand",
        "client_id": refs["client"].id,
        "department_id": refs["department"].id,
        "budget": 100000,
    }
    kwargs.update(overrides)
    return projects.create_project(actor, **kwargs)


class TestCreateProject:
    def test_creates_with_defaults_and_conversion(self, projects, refs, admin, captured_logs):
        project_id = _create(
            projects,
            refs,
            admin,
            service_ids=[refs["service"].id],
            employees=[{"employee_id": refs["employee"].id, "compensation": 25000}],
        )

        detail = projects.get_project(project_id)
        assert detail.name == "Rebrand"
        assert detail.client_name == "Nile Foods"
        assert detail.department_name == "Design"
        assert detail.services == ("Branding",)
        assert detail.budget == Decimal("100000")
        assert detail.budget_converted["USD"] == 2000
        assert detail.status == "planning"
        assert detail.priority == "normal"
        assert detail.is_active is True
        assert [(e.name, e.compensation) for e in detail.employees] == [
            ("mona", Decimal("25000"))
        ]

        created = [r for r in captured_logs() if r["message"] == "project_created"]
        assert created and created[0]["members"] == 1

    def test_status_and_priority_parsed(self, projects, refs, admin):
        project_id = _create(projects, refs, admin, status="ACTIVE", priority="High")
        detail = projects.get_project(project_id)
        assert (detail.status, detail.priority) == ("active", "high")

    def test_blank_name_rejected(self, projects, refs, admin):
        with pytest.raises(DomainValidationError):
            _create(projects, refs, admin, name="   ")

    def test_inactive_client_rejected(self, projects, refs, factory, admin):
        with pytest.raises(ClientInactiveError):
            _create(projects, refs, admin, client_id=factory.client(is_active=False).id)

    def test_inactive_department_rejected(self, projects, refs, factory, admin):
        with pytest.raises(DepartmentInactiveError):
            _create(
                projects, refs, admin, department_id=factory.department(is_active=False).id
            )

    def test_unknown_service_rejected(self, projects, refs, admin):
        with pytest.raises(ServiceNotFoundError):
            _create(projects, refs, admin, service_ids=[uuid4()])

    def test_inactive_employee_rejected(self, projects, refs, factory, admin):
        inactive = factory.employee(is_active=False)
        with pytest.raises(EmployeeInactiveError):
            _create(
                projects, refs, admin,
                employees=[{"employee_id": inactive.id, "compensation": 1}],
            )

    def test_employee_role_cannot_create(self, projects, refs, factory):
        with pytest.raises(NotAuthorizedError):
            _create(projects, refs, factory.actor("employee"))


class TestUpdateProject:
    def test_budget_change_reconverts(self, projects, refs, admin):
        project_id = _create(projects, refs, admin)
        detail = projects.update_project(admin, project_id, {"budget": "5000", "currency": "SAR"})
        assert detail.budget == Decimal("5000")
        assert detail.currency == "SAR"
        assert detail.budget_converted["SAR"] == 5000
        assert detail.budget_converted["USD"] == 1333

    def test_roster_in_update_is_synced(self, projects, refs, factory, admin):
        project_id = _create(
            projects, refs, admin,
            employees=[{"employee_id": refs["employee"].id, "compensation": 100}],
        )
        newcomer = factory.employee(name="karim")
        detail = projects.update_project(
            admin, project_id, {"employees": [{"employee_id": newcomer.id, "compensation": 200}]}
        )
        assert [e.name for e in detail.employees] == ["karim"]

    def test_plain_fields(self, projects, refs, admin):
        project_id = _create(projects, refs, admin)
        end = datetime(2024, 12, 31, tzinfo=timezone.utc)
        detail = projects.update_project(
            admin,
            project_id,
            {"name": " Rebrand v2 ", "description": "Phase two", "status": "on_hold",
             "end_date": end},
        )
        assert detail.name == "Rebrand v2"
        assert detail.description == "Phase two"
        assert detail.status == "on_hold"
        assert detail.end_date == end

    def test_unknown_field_rejected(self, projects, refs, admin):
        project_id = _create(projects, refs, admin)
        with pytest.raises(DomainValidationError):
            projects.update_project(admin, project_id, {"created_by_id": uuid4()})

    def test_missing_project(self, projects, admin):
        with pytest.raises(ProjectNotFoundError):
            projects.update_project(admin, uuid4(), {"name": "x"})


class TestDeleteAndToggle:
    def test_delete_is_soft(self, projects, refs, admin):
        project_id = _create(projects, refs, admin)
        projects.delete_project(admin, project_id)

        assert projects.get_project(project_id).is_active is False
        assert projects.list_projects().total == 0
        assert projects.list_projects(ProjectFilter(is_active=False)).total == 1

    def test_toggle_flips_state(self, projects, refs, admin):
        project_id = _create(projects, refs, admin)
        assert projects.toggle_project_active(admin, project_id) is False
        assert projects.toggle_project_active(admin, project_id) is True

    def test_only_admins_toggle(self, projects, refs, admin, manager):
        project_id = _create(projects, refs, admin)
        with pytest.raises(NotAuthorizedError):
            projects.toggle_project_active(manager, project_id)


class TestListProjects:
    def test_member_counts_and_client_names(self, projects, refs, admin):
        _create(
            projects, refs, admin,
            employees=[{"employee_id": refs["employee"].id, "compensation": 1}],
        )
        page = projects.list_projects()
        assert page.total == 1
        item = page.items[0]
        assert (item.client, item.employee_count) == ("Nile Foods", 1)

    def test_filters(self, projects, refs, admin):
        _create(projects, refs, admin, name="Logo refresh", status="active")
        _create(projects, refs, admin, name="Packaging", status="planning")

        active = projects.list_projects(ProjectFilter.from_query(status="Active"))
        assert [p.name for p in active.items] == ["Logo refresh"]

        searched = projects.list_projects(ProjectFilter.from_query(search="pack"))
        assert [p.name for p in searched.items] == ["Packaging"]

        ignored = projects.list_projects(ProjectFilter.from_query(priority="urgent"))
        assert ignored.total == 2

    def test_pagination(self, projects, refs, admin):
        for n in range(3):
            _create(projects, refs, admin, name=f"Project {n}")
        page = projects.list_projects(pagination=Pagination(page=2, limit=2))
        assert (page.total, page.total_pages, len(page.items)) == (3, 2, 1)


@pytest.mark.postgres
@pytest.mark.skipif(
    not os.environ.get("DATABASE_URL", "").startswith("postgresql"),
    reason="concurrent reference checks need a pooled backend",
)
class TestConcurrentValidation:
    def test_create_with_session_factory(self, session, session_factory, conversion, clock,
                                         refs, admin):
        projects = ProjectService(session, conversion, clock, session_factory=session_factory)
        project_id = _create(
            projects, refs, admin,
            employees=[{"employee_id": refs["employee"].id, "compensation": 10}],
        )
        assert len(projects.get_project(project_id).employees) == 1

    def test_failure_surfaces_from_worker(self, session, session_factory, conversion, clock,
                                          refs, factory, admin):
        projects = ProjectService(session, conversion, clock, session_factory=session_factory)
        with pytest.raises(ClientInactiveError):
            _create(projects, refs, admin, client_id=factory.client(is_active=False).id)
