"""
Time tracking: clock-in/clock-out with at most one open entry per user.

Every function takes the owning user's id; entries of other users are
never reachable through this module.
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from projecthub.core.exceptions import ConflictError, NotFoundError, ValidationError
from projecthub.models.common import Pagination
from projecthub.models.time_entry import (
    CurrentEntry,
    TimeEntry,
    TimeEntryRead,
    TodaySummary,
)
from projecthub.services.pagination import paginate

logger = logging.getLogger(__name__)


def format_duration(elapsed: timedelta) -> str:
    """Whole hours and zero-padded minutes, e.g. ``7:05``."""
    total_minutes = max(int(elapsed.total_seconds() // 60), 0)
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}:{minutes:02d}"


def entry_duration(entry: TimeEntry, now: Optional[datetime] = None) -> timedelta:
    """Elapsed time of an entry; open entries run until ``now``."""
    end = entry.clock_out or now or datetime.utcnow()
    return end - entry.clock_in


def to_read(entry: TimeEntry) -> TimeEntryRead:
    payload = TimeEntryRead.model_validate(entry)
    payload.duration = None if entry.is_open else format_duration(entry_duration(entry))
    return payload


def month_bounds(month: str) -> Tuple[date, date]:
    """
    First day of ``YYYY-MM`` and first day of the following month.

    Raises:
        ValidationError: If the value is not a valid ``YYYY-MM``.
    """
    try:
        start = datetime.strptime(month, "%Y-%m").date()
    except ValueError:
        raise ValidationError("Month must be in YYYY-MM format", field="month", constraint="format")
    if start.month == 12:
        return start, date(start.year + 1, 1, 1)
    return start, date(start.year, start.month + 1, 1)


async def get_open_entry(session: AsyncSession, user_id: int) -> Optional[TimeEntry]:
    """Most recent entry without a clock-out, if any."""
    result = await session.execute(
        select(TimeEntry)
        .where(TimeEntry.user_id == user_id, TimeEntry.clock_out.is_(None))
        .order_by(TimeEntry.clock_in.desc(), TimeEntry.id.desc())
        .limit(1)
    )
    return result.scalars().first()


async def clock_in(session: AsyncSession, user_id: int, now: Optional[datetime] = None) -> TimeEntry:
    """
    Open a new entry.

    Raises:
        ConflictError: ``already_clocked_in`` if an entry is already open.
    """
    if await get_open_entry(session, user_id) is not None:
        raise ConflictError(
            "You are already clocked in. Please clock out first.",
            condition="already_clocked_in",
        )

    now = now or datetime.utcnow()
    entry = TimeEntry(user_id=user_id, clock_in=now, date=now.date())
    session.add(entry)
    try:
        await session.commit()
    except IntegrityError:
        # Lost a race against a concurrent clock-in; the open-entry index held
        await session.rollback()
        raise ConflictError(
            "You are already clocked in. Please clock out first.",
            condition="already_clocked_in",
        )
    await session.refresh(entry)

    logger.info(f"User {user_id} clocked in at {now.isoformat()}")
    return entry


async def clock_out(session: AsyncSession, user_id: int, now: Optional[datetime] = None) -> TimeEntry:
    """
    Close the most recent open entry.

    Raises:
        ConflictError: ``not_clocked_in`` if no entry is open.
    """
    entry = await get_open_entry(session, user_id)
    if entry is None:
        raise ConflictError("You are not currently clocked in.", condition="not_clocked_in")

    now = now or datetime.utcnow()
    entry.clock_out = now
    entry.updated_at = now
    session.add(entry)
    await session.commit()
    await session.refresh(entry)

    logger.info(f"User {user_id} clocked out after {format_duration(entry_duration(entry))}")
    return entry


async def delete_entry(session: AsyncSession, user_id: int, entry_id: int) -> None:
    """
    Delete one of the user's closed entries.

    Raises:
        NotFoundError: If the entry does not exist or belongs to someone else.
        ConflictError: ``entry_active`` if the entry is still open.
    """
    entry = await session.get(TimeEntry, entry_id)
    if entry is None or entry.user_id != user_id:
        raise NotFoundError("Time entry")
    if entry.is_open:
        raise ConflictError(
            "Cannot delete an active time entry. Please clock out first.",
            condition="entry_active",
        )

    await session.delete(entry)
    await session.commit()

    logger.info(f"User {user_id} deleted time entry {entry_id}")


async def list_entries(
    session: AsyncSession,
    user_id: int,
    limit: int,
    offset: int,
    on_date: Optional[date] = None,
    month: Optional[str] = None,
) -> Tuple[List[TimeEntryRead], Pagination]:
    """List the user's entries, newest first, optionally for a date or month."""
    query = select(TimeEntry).where(TimeEntry.user_id == user_id)
    if on_date is not None:
        query = query.where(TimeEntry.date == on_date)
    if month:
        start, end = month_bounds(month)
        query = query.where(TimeEntry.date >= start, TimeEntry.date < end)
    query = query.order_by(TimeEntry.clock_in.desc(), TimeEntry.id.desc())

    rows, pagination = await paginate(session, query, limit, offset)
    return [to_read(row[0]) for row in rows], pagination


async def current_entry(session: AsyncSession, user_id: int, now: Optional[datetime] = None) -> CurrentEntry:
    entry = await get_open_entry(session, user_id)
    if entry is None:
        return CurrentEntry()
    return CurrentEntry(
        current_entry=to_read(entry),
        current_duration=format_duration(entry_duration(entry, now)),
        is_clocked_in=True,
    )


async def today_summary(session: AsyncSession, user_id: int, now: Optional[datetime] = None) -> TodaySummary:
    """
    Today's first clock-in, last clock-out and total worked time.

    Status is ``Not Started`` with no entries, ``In Progress`` while an
    entry is open and ``Completed`` otherwise.
    """
    now = now or datetime.utcnow()
    today = now.date()
    result = await session.execute(
        select(TimeEntry)
        .where(TimeEntry.user_id == user_id, TimeEntry.date == today)
        .order_by(TimeEntry.clock_in.asc(), TimeEntry.id.asc())
    )
    entries = list(result.scalars().all())

    summary = TodaySummary(date=today, entries_count=len(entries))
    if not entries:
        return summary

    summary.clock_in_time = entries[0].clock_in
    summary.is_currently_clocked_in = any(entry.is_open for entry in entries)
    if summary.is_currently_clocked_in:
        summary.status = "In Progress"
    else:
        summary.status = "Completed"
        summary.clock_out_time = entries[-1].clock_out

    worked = sum((entry_duration(entry, now) for entry in entries), timedelta())
    summary.total_worked = format_duration(worked)
    return summary
