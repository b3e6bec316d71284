"""
Finance Module (``agency_modules.finance``).

Project and company financial views over completed transactions, reported
in origin amounts.
"""

from agency_modules.finance.service import (
    BreakdownSummary,
    ClientPaymentHistory,
    CompanyFinancials,
    EmployeeBreakdown,
    EmployeeBreakdownLine,
    EmployeePayment,
    FinanceService,
    ProjectFinancials,
    ProjectRef,
    percentage,
)

__all__ = [
    "BreakdownSummary",
    "ClientPaymentHistory",
    "CompanyFinancials",
    "EmployeeBreakdown",
    "EmployeeBreakdownLine",
    "EmployeePayment",
    "FinanceService",
    "ProjectFinancials",
    "ProjectRef",
    "percentage",
]
