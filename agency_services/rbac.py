"""
agency_services.rbac -- Role-based authorization at the module boundary.

Responsibility:
    Check that an actor, identified and authenticated by the identity layer,
    holds a role that grants the permission an operation needs.  Grants are
    config-driven (``agency_config`` ``rbac`` section); ``DEFAULT_GRANTS``
    applies when no configuration is supplied.

Architecture position:
    Services layer.  Consumed by ``agency_modules`` services before any
    write or restricted read.  The kernel remains actor-agnostic.

Invariants:
    - Unknown permissions are denied.
    - A deactivated actor is denied regardless of role.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping
from uuid import UUID

from agency_kernel.domain.enums import UserRole
from agency_kernel.exceptions import NotAuthorizedError
from agency_kernel.logging_config import get_logger

logger = get_logger("services.rbac")

_ALL_ROLES = frozenset(r.value for r in UserRole)

DEFAULT_GRANTS: dict[str, frozenset[str]] = {
    "transaction.create": frozenset({"admin", "manager"}),
    "transaction.read": frozenset({"admin", "manager"}),
    "transaction.update": frozenset({"admin", "manager"}),
    "transaction.delete": frozenset({"admin"}),
    "project.read": _ALL_ROLES,
    "project.write": frozenset({"admin", "manager"}),
    "project.toggle": frozenset({"admin"}),
    "employee.read": _ALL_ROLES,
    "employee.write": frozenset({"admin", "manager", "operation"}),
    "finance.read": frozenset({"admin", "manager"}),
    "analytics.read": frozenset({"admin", "manager"}),
    "user.delete": frozenset({"admin"}),
}


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as supplied by the identity layer."""

    id: UUID
    role: str
    is_active: bool = True


def check_permission(
    grants: Mapping[str, frozenset[str]] | None,
    actor: Actor,
    permission: str,
) -> tuple[bool, str]:
    """Check whether ``actor`` may perform ``permission``.

    Returns:
        (allowed, reason). reason is empty when allowed, or a short message
        when denied.
    """
    table = DEFAULT_GRANTS if grants is None else grants
    if not actor.is_active:
        return (False, "RBAC: actor account is inactive")
    roles = table.get(permission)
    if roles is None:
        return (False, f"RBAC: unknown permission '{permission}'")
    if str(actor.role).lower() not in roles:
        return (False, f"RBAC: permission '{permission}' not granted to role '{actor.role}'")
    return (True, "")


def require_permission(
    grants: Mapping[str, frozenset[str]] | None,
    actor: Actor,
    permission: str,
) -> None:
    """Raise NotAuthorizedError unless ``actor`` may perform ``permission``."""
    allowed, reason = check_permission(grants, actor, permission)
    if not allowed:
        logger.warning(
            "permission_denied",
            extra={
                "actor_id": str(actor.id),
                "role": actor.role,
                "permission": permission,
                "reason": reason,
            },
        )
        raise NotAuthorizedError(actor.role, permission)


class Authorizer:
    """Binds a grant table so module services can call ``require(actor, permission)``."""

    def __init__(self, grants: Mapping[str, frozenset[str]] | None = None):
        self._grants = grants

    @classmethod
    def from_config(cls, rbac_config) -> Authorizer:
        """Build from ``agency_config.RbacConfig``; empty config falls back to defaults."""
        return cls(dict(rbac_config.role_permissions) or None)

    def check(self, actor: Actor, permission: str) -> tuple[bool, str]:
        return check_permission(self._grants, actor, permission)

    def require(self, actor: Actor, permission: str) -> None:
        require_permission(self._grants, actor, permission)
