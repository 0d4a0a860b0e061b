"""
Time tracking endpoints.

Every route acts on the caller's own entries only; there is no path to
another user's entries for any role.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Query, status

from projecthub.api.deps import CurrentUser, DbSession, Paging
from projecthub.core import access
from projecthub.models.common import Message, Page
from projecthub.models.time_entry import CurrentEntry, TimeEntryRead, TimeStats, TodaySummary
from projecthub.services import statistics
from projecthub.services import time_tracking

router = APIRouter()


@router.get("", response_model=Page[TimeEntryRead])
async def list_time_entries(
    current_user: CurrentUser,
    db: DbSession,
    paging: Paging,
    on_date: Optional[date] = Query(default=None, alias="date"),
    month: Optional[str] = None,
):
    """List own entries, optionally for one date or a ``YYYY-MM`` month."""
    entries, pagination = await time_tracking.list_entries(
        db,
        access.time_entry_scope(current_user.id),
        paging.limit,
        paging.offset,
        on_date=on_date,
        month=month,
    )
    return Page[TimeEntryRead](items=entries, pagination=pagination)


@router.get("/current", response_model=CurrentEntry)
async def get_current_entry(current_user: CurrentUser, db: DbSession):
    """The open entry, if clocked in, with its running duration."""
    return await time_tracking.current_entry(db, access.time_entry_scope(current_user.id))


@router.get("/today", response_model=TodaySummary)
async def get_today_summary(current_user: CurrentUser, db: DbSession):
    """Today's clock-in, clock-out and total worked time."""
    return await time_tracking.today_summary(db, access.time_entry_scope(current_user.id))


@router.get("/stats", response_model=TimeStats)
async def get_time_stats(
    current_user: CurrentUser,
    db: DbSession,
    period: str = "month",
):
    """Hours worked over the last week, month or year."""
    return await statistics.time_stats(db, access.time_entry_scope(current_user.id), period)


@router.post("/clock-in", response_model=TimeEntryRead, status_code=status.HTTP_201_CREATED)
async def clock_in(current_user: CurrentUser, db: DbSession):
    """Open a time entry."""
    entry = await time_tracking.clock_in(db, access.time_entry_scope(current_user.id))
    return time_tracking.to_read(entry)


@router.put("/clock-out", response_model=TimeEntryRead)
async def clock_out(current_user: CurrentUser, db: DbSession):
    """Close the open time entry."""
    entry = await time_tracking.clock_out(db, access.time_entry_scope(current_user.id))
    return time_tracking.to_read(entry)


@router.delete("/{entry_id}", response_model=Message)
async def delete_time_entry(entry_id: int, current_user: CurrentUser, db: DbSession):
    """Delete a closed entry."""
    await time_tracking.delete_entry(db, access.time_entry_scope(current_user.id), entry_id)
    return Message(message="Time entry deleted successfully")
