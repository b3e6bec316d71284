"""
Employee Provisioning Service (``agency_modules.employees.service``).

Responsibility
--------------
Creates, updates, toggles and deletes the User + Employee pair, and serves
employee reads.  Creation sends the account-credentials email inside the
transaction: if delivery fails, neither record survives.

Architecture position
---------------------
**Modules layer** -- composes ``ReferenceSelector`` and
``EmployeeSelector`` with an ``EmailSender`` from ``agency_services``.

Invariants enforced
-------------------
* Department exists and is active; position belongs to the department;
  every skill belongs to the position.  The chain is re-validated on update
  whenever one of its links changes.
* Email is unique among users (case-insensitive).
* Create and delete are atomic across both records.
* An employee is active iff its linked user is active.

Failure modes
-------------
* ``DepartmentNotFoundError`` / ``DepartmentInactiveError``.
* ``PositionDepartmentMismatchError`` / ``SkillPositionMismatchError``.
* ``DuplicateEmailError`` (pre-check) or ``DuplicateKeyError`` (race).
* ``EmailDeliveryError`` -- provisioning rolled back.
* ``ReferencedRecordError`` -- delete blocked because the user recorded
  ledger entries.
"""

from __future__ import annotations

import secrets
from typing import Any, Iterable, Mapping
from uuid import UUID

import bcrypt
from sqlalchemy.orm import Session

from agency_kernel.domain.clock import Clock, SystemClock
from agency_kernel.domain.enums import EmploymentType, UserRole
from agency_kernel.domain.query import Page, Pagination, as_uuid, parse_enum
from agency_kernel.exceptions import DomainValidationError, EmployeeNotFoundError
from agency_kernel.logging_config import LogContext, get_logger
from agency_kernel.models.user import Employee, User
from agency_kernel.selectors.employee_selector import (
    EmployeeFilter,
    EmployeeSelector,
    EmployeeView,
)
from agency_kernel.selectors.reference_selector import ReferenceSelector, is_employee_active
from agency_modules._helpers import unit_of_work, write_context
from agency_services.notifications import EmailSender, account_created_email
from agency_services.rbac import Actor, Authorizer

logger = get_logger("modules.employees.service")

TEMP_PASSWORD_BYTES = 6
BCRYPT_ROUNDS = 12

USER_FIELDS = frozenset({"name", "email", "phone"})
PROFILE_FIELDS = frozenset({"department_id", "position_id", "skill_ids", "employment_type"})


def generate_temp_password() -> str:
    """12 hex characters."""
    return secrets.token_hex(TEMP_PASSWORD_BYTES)


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def _normalize_email(email: str | None) -> str:
    if not email or not email.strip():
        raise DomainValidationError("email", "is required")
    return email.strip().lower()


class EmployeeService:
    """
    Provisioning and employee reads.

    Contract
    --------
    * ``create_employee`` returns the new employee id after the email has
      been accepted by the sender and the transaction committed.
    * Reads return ``EmployeeView`` projections.
    """

    def __init__(
        self,
        session: Session,
        email_sender: EmailSender,
        clock: Clock | None = None,
        authorizer: Authorizer | None = None,
        company_name: str = "Glitci",
    ):
        self._session = session
        self._email_sender = email_sender
        self._clock = clock or SystemClock()
        self._authorizer = authorizer or Authorizer()
        self._company_name = company_name
        self._refs = ReferenceSelector(session)
        self._selector = EmployeeSelector(session)

    # =========================================================================
    # Provisioning
    # =========================================================================

    @write_context()
    def create_employee(
        self,
        actor: Actor,
        *,
        name: str,
        email: str,
        department_id: Any,
        position_id: Any,
        phone: str | None = None,
        skill_ids: Iterable[Any] = (),
        employment_type: Any = None,
    ) -> UUID:
        self._authorizer.require(actor, "employee.write")
        if not name or not name.strip():
            raise DomainValidationError("name", "is required")
        address = _normalize_email(email)
        department_uuid = as_uuid(department_id, "department")
        position_uuid = as_uuid(position_id, "position")
        skill_uuids = [as_uuid(s, "skill") for s in skill_ids]
        kind = (
            parse_enum(employment_type, EmploymentType, "employment_type")
            if employment_type is not None
            else EmploymentType.FREELANCER
        )

        self._refs.require_active_department(department_uuid)
        self._refs.require_position_in_department(position_uuid, department_uuid)
        skills = self._refs.require_skills_for_position(skill_uuids, position_uuid)
        self._refs.require_email_available(address)

        temp_password = generate_temp_password()
        now = self._clock.now()

        with unit_of_work(self._session, "employee_provision", email=address):
            user = User(
                name=name.strip(),
                email=address,
                phone=phone or None,
                password_hash=hash_password(temp_password),
                must_change_password=True,
                role=UserRole.EMPLOYEE.value,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            self._session.add(user)
            self._session.flush()

            employee = Employee(
                user_id=user.id,
                department_id=department_uuid,
                position_id=position_uuid,
                employment_type=kind.value,
                skills=skills,
                created_at=now,
                updated_at=now,
            )
            self._session.add(employee)
            self._session.flush()
            LogContext.set(entity_id=employee.id)

            # Delivery failure aborts the transaction
            self._email_sender.send(
                account_created_email(user.name, user.email, temp_password, self._company_name)
            )

        logger.info(
            "employee_provisioned",
            extra={
                "employee_id": str(employee.id),
                "user_id": str(user.id),
                "department_id": str(department_uuid),
            },
        )
        return employee.id

    @write_context("employee_id")
    def update_employee(
        self,
        actor: Actor,
        employee_id: Any,
        changes: Mapping[str, Any],
    ) -> EmployeeView:
        """
        Update user fields (name, email, phone) and profile fields
        (department, position, skills, employment type) in one flush.
        """
        self._authorizer.require(actor, "employee.write")
        emp_uuid = as_uuid(employee_id, "employee")

        unknown = set(changes) - USER_FIELDS - PROFILE_FIELDS
        if unknown:
            raise DomainValidationError(
                "changes", f"unknown fields: {', '.join(sorted(unknown))}"
            )

        with unit_of_work(self._session, "employee_update", employee_id=emp_uuid):
            employee = self._refs.require_employee(emp_uuid)
            user = employee.user

            department_uuid = (
                as_uuid(changes["department_id"], "department")
                if changes.get("department_id") is not None
                else employee.department_id
            )
            position_uuid = (
                as_uuid(changes["position_id"], "position")
                if changes.get("position_id") is not None
                else employee.position_id
            )

            if changes.get("department_id") is not None:
                self._refs.require_active_department(department_uuid)
            if changes.get("department_id") is not None or changes.get("position_id") is not None:
                self._refs.require_position_in_department(position_uuid, department_uuid)

            skills = None
            if changes.get("skill_ids") is not None:
                skills = self._refs.require_skills_for_position(
                    [as_uuid(s, "skill") for s in changes["skill_ids"]], position_uuid
                )

            address = None
            if changes.get("email") is not None:
                address = _normalize_email(changes["email"])
                self._refs.require_email_available(address, exclude_user_id=user.id)

            if "name" in changes:
                if not changes["name"] or not str(changes["name"]).strip():
                    raise DomainValidationError("name", "is required")
                user.name = str(changes["name"]).strip()
            if address is not None:
                user.email = address
            if "phone" in changes:
                user.phone = changes["phone"] or None

            employee.department_id = department_uuid
            employee.position_id = position_uuid
            if skills is not None:
                employee.skills = skills
            if changes.get("employment_type") is not None:
                employee.employment_type = parse_enum(
                    changes["employment_type"], EmploymentType, "employment_type"
                ).value

            now = self._clock.now()
            employee.updated_at = now
            if USER_FIELDS & set(changes):
                user.updated_at = now
            self._session.flush()

        logger.info(
            "employee_updated",
            extra={
                "employee_id": str(emp_uuid),
                "fields": sorted(changes),
            },
        )
        self._session.expire_all()
        return self._selector.get(emp_uuid)

    @write_context("employee_id")
    def toggle_employee_active(self, actor: Actor, employee_id: Any) -> bool:
        """Flip the linked user's ``is_active``; returns the new value."""
        self._authorizer.require(actor, "employee.write")
        emp_uuid = as_uuid(employee_id, "employee")
        with unit_of_work(self._session, "employee_toggle", employee_id=emp_uuid):
            employee = self._refs.require_employee(emp_uuid)
            employee.user.is_active = not employee.user.is_active
            employee.user.updated_at = self._clock.now()
            new_state = employee.user.is_active

        logger.info(
            "employee_toggled",
            extra={"employee_id": str(emp_uuid), "is_active": new_state},
        )
        return new_state

    @write_context("employee_id")
    def delete_employee(self, actor: Actor, employee_id: Any) -> None:
        """Delete the profile and its user in one transaction."""
        self._authorizer.require(actor, "employee.write")
        emp_uuid = as_uuid(employee_id, "employee")
        with unit_of_work(self._session, "employee_delete", employee_id=emp_uuid):
            employee = self._refs.require_employee(emp_uuid)
            user = employee.user
            self._session.delete(employee)
            self._session.flush()
            self._session.delete(user)
            self._session.flush()

        logger.info(
            "employee_deleted",
            extra={
                "employee_id": str(emp_uuid),
                "user_id": str(user.id),
            },
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def get_employee(self, employee_id: Any, actor: Actor | None = None) -> EmployeeView:
        if actor is not None:
            self._authorizer.require(actor, "employee.read")
        return self._selector.get(as_uuid(employee_id, "employee"))

    def list_employees(
        self,
        filters: EmployeeFilter | None = None,
        pagination: Pagination | None = None,
        actor: Actor | None = None,
    ) -> Page[EmployeeView]:
        if actor is not None:
            self._authorizer.require(actor, "employee.read")
        return self._selector.list(filters or EmployeeFilter(), pagination or Pagination())

    def is_employee_active(self, employee_id: Any) -> bool:
        employee = self._session.get(Employee, as_uuid(employee_id, "employee"))
        if employee is None:
            raise EmployeeNotFoundError(employee_id)
        return is_employee_active(employee)
