"""
Projects Module (``agency_modules.projects``).

Project budget writes and the staffing synchronizer that reconciles a
project's roster with its membership rows.
"""

from agency_modules.projects.service import ProjectService
from agency_modules.projects.staffing import (
    RosterEntry,
    StaffingSynchronizer,
    SyncResult,
    parse_roster,
)

__all__ = [
    "ProjectService",
    "RosterEntry",
    "StaffingSynchronizer",
    "SyncResult",
    "parse_roster",
]
