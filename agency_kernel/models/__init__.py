"""ORM models for the agency kernel."""

from agency_kernel.models.client import Client
from agency_kernel.models.organization import Department, Position, Service, Skill
from agency_kernel.models.project import Project, ProjectMember, project_services
from agency_kernel.models.transaction import Transaction
from agency_kernel.models.user import Employee, User, employee_skills

__all__ = [
    "Client",
    "Department",
    "Position",
    "Service",
    "Skill",
    "Project",
    "ProjectMember",
    "project_services",
    "Transaction",
    "Employee",
    "User",
    "employee_skills",
]
