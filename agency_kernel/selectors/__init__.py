"""Read-only selectors for the agency kernel."""

from agency_kernel.selectors.employee_selector import EmployeeFilter, EmployeeSelector, EmployeeView
from agency_kernel.selectors.project_selector import (
    ProjectDetail,
    ProjectFilter,
    ProjectListItem,
    ProjectSelector,
)
from agency_kernel.selectors.reference_selector import ReferenceSelector, is_employee_active
from agency_kernel.selectors.transaction_selector import (
    TransactionFilter,
    TransactionSelector,
    TransactionView,
)

__all__ = [
    "EmployeeFilter",
    "EmployeeSelector",
    "EmployeeView",
    "ProjectDetail",
    "ProjectFilter",
    "ProjectListItem",
    "ProjectSelector",
    "ReferenceSelector",
    "is_employee_active",
    "TransactionFilter",
    "TransactionSelector",
    "TransactionView",
]
