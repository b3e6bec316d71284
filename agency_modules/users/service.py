"""
User Service (``agency_modules.users.service``).

Account deactivation.  User rows are referenced by ledger entries
(``Transaction.added_by_id``), so a removed account is soft-deleted and its
personal data anonymised instead of the row being dropped.  The email is
rewritten to a unique placeholder, which frees the original address for a
new account.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from agency_kernel.domain.clock import Clock, SystemClock
from agency_kernel.domain.query import as_uuid
from agency_kernel.logging_config import get_logger
from agency_kernel.selectors.reference_selector import ReferenceSelector
from agency_modules._helpers import unit_of_work, write_context
from agency_services.rbac import Actor, Authorizer

logger = get_logger("modules.users.service")

DELETED_USER_NAME = "Deleted user"
DELETED_EMAIL_DOMAIN = "invalid.local"


class UserService:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        authorizer: Authorizer | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._authorizer = authorizer or Authorizer()
        self._refs = ReferenceSelector(session)

    @write_context("user_id")
    def deactivate_user(self, actor: Actor, user_id: Any) -> None:
        """
        Soft-delete and anonymise.  Repeating the call on an already
        deleted user is a no-op.
        """
        self._authorizer.require(actor, "user.delete")
        user_uuid = as_uuid(user_id, "user")

        with unit_of_work(self._session, "user_deactivate", user_id=user_uuid):
            user = self._refs.require_user(user_uuid)
            if user.deleted_at is not None:
                return

            now = self._clock.now()
            user.deleted_at = now
            user.is_active = False
            user.name = DELETED_USER_NAME
            user.email = f"deleted+{user.id}@{DELETED_EMAIL_DOMAIN}"
            user.phone = None
            user.password_hash = None
            user.updated_at = now
            logger.info(
                "user_deactivated",
                extra={"user_id": str(user_uuid)},
            )
