"""
Analytics Module (``agency_modules.analytics``).

Dashboard overview and portfolio stats in a caller-selected display
currency.
"""

from agency_modules.analytics.service import (
    UNASSIGNED,
    AnalyticsService,
    DepartmentProgress,
    GrowthPoint,
    Overview,
    OverviewTotals,
    Period,
    QuarterIncome,
    RecentProject,
    Stats,
    resolve_display_currency,
)

__all__ = [
    "UNASSIGNED",
    "AnalyticsService",
    "DepartmentProgress",
    "GrowthPoint",
    "Overview",
    "OverviewTotals",
    "Period",
    "QuarterIncome",
    "RecentProject",
    "Stats",
    "resolve_display_currency",
]
