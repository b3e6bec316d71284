"""Users Module (``agency_modules.users``): account deactivation."""

from agency_modules.users.service import DELETED_USER_NAME, UserService

__all__ = ["DELETED_USER_NAME", "UserService"]
