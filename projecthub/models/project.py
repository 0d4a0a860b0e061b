"""
Project models.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


class ProjectStatus(str, Enum):
    """Project lifecycle status."""
    PENDING = "pending"
    ONGOING = "ongoing"
    COMPLETED = "completed"


class ProjectBase(SQLModel):
    """Base project fields shared across schemas."""
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    start_date: date
    end_date: Optional[date] = None
    status: ProjectStatus = ProjectStatus.PENDING


class Project(ProjectBase, table=True):
    """
    Project database model.

    Attributes:
        id: Primary key.
        name: Project name.
        description: Optional free-form description.
        start_date: Day work started.
        end_date: Day work ended; never before start_date.
        status: pending, ongoing or completed.
        created_by: Owning user (the creator).
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
    """

    __tablename__ = "projects"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_by: int = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ProjectCreate(ProjectBase):
    """Schema for creating a project."""
    pass


class ProjectUpdate(SQLModel):
    """Schema for updating a project. Only submitted fields are applied."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[ProjectStatus] = None


class ProjectRead(ProjectBase):
    """Schema for reading a project with its creator."""
    id: int
    created_by: int
    created_by_name: Optional[str] = None
    created_by_username: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProjectStats(SQLModel):
    """Project counts by status plus completion rate (percent)."""
    total: int = 0
    pending: int = 0
    ongoing: int = 0
    completed: int = 0
    completion_rate: float = 0.0
