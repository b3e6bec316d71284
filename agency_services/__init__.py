"""
agency_services -- Cross-module infrastructure.

Role-based authorization, outbound email delivery and the concurrent read
fan-out used by the dashboard aggregations, plus the container that builds
the shared infrastructure from configuration.
"""

from agency_services.container import ServiceContainer, build_container
from agency_services.notifications import (
    EmailMessage,
    EmailSender,
    ResendEmailSender,
    account_created_email,
)
from agency_services.parallel import run_parallel
from agency_services.rbac import (
    DEFAULT_GRANTS,
    Actor,
    Authorizer,
    check_permission,
    require_permission,
)

__all__ = [
    "Actor",
    "Authorizer",
    "DEFAULT_GRANTS",
    "check_permission",
    "require_permission",
    "EmailMessage",
    "EmailSender",
    "ResendEmailSender",
    "account_created_email",
    "run_parallel",
    "ServiceContainer",
    "build_container",
]
