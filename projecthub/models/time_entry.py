"""
Time tracking models.
"""

import datetime as dt
from datetime import datetime
from typing import Optional

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel


class TimeEntry(SQLModel, table=True):
    """
    A clock-in/clock-out pair for one user.

    Attributes:
        id: Primary key.
        user_id: Owning user.
        clock_in: When the entry was opened.
        clock_out: When it was closed; None while the user is clocked in.
        date: Calendar date of clock_in.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
    """

    __tablename__ = "time_entries"
    # At most one open entry per user
    __table_args__ = (
        Index(
            "ux_time_entries_open_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("clock_out IS NULL"),
            postgresql_where=text("clock_out IS NULL"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    clock_in: datetime
    clock_out: Optional[datetime] = None
    date: dt.date = Field(index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_open(self) -> bool:
        return self.clock_out is None


class TimeEntryRead(SQLModel):
    """Time entry with its formatted duration (None while open)."""
    id: int
    user_id: int
    clock_in: datetime
    clock_out: Optional[datetime] = None
    date: dt.date
    duration: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CurrentEntry(SQLModel):
    """The open entry, if any, with its running duration."""
    current_entry: Optional[TimeEntryRead] = None
    current_duration: Optional[str] = None
    is_clocked_in: bool = False


class TodaySummary(SQLModel):
    """Summary of the caller's entries for today."""
    date: dt.date
    clock_in_time: Optional[datetime] = None
    clock_out_time: Optional[datetime] = None
    total_worked: str = "0:00"
    status: str = "Not Started"
    is_currently_clocked_in: bool = False
    entries_count: int = 0


class TimeStats(SQLModel):
    """Hours worked over a period."""
    period: str
    total_entries: int = 0
    completed_entries: int = 0
    active_entries: int = 0
    days_worked: int = 0
    total_hours: float = 0.0
    average_hours_per_day: float = 0.0
