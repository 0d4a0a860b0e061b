"""
Database models using SQLModel.
"""

from .user import User
from .project import Project, ProjectStatus
from .invoice import Invoice, InvoiceSequence, InvoiceStatus
from .time_entry import TimeEntry

__all__ = [
    "User",
    "Project",
    "ProjectStatus",
    "Invoice",
    "InvoiceSequence",
    "InvoiceStatus",
    "TimeEntry",
]
