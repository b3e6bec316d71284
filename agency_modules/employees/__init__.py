"""
Employees Module (``agency_modules.employees``).

Provisioning of the User + Employee pair with credential delivery, and
employee reads.
"""

from agency_modules.employees.service import (
    EmployeeService,
    generate_temp_password,
    hash_password,
)

__all__ = [
    "EmployeeService",
    "generate_temp_password",
    "hash_password",
]
