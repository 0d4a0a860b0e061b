"""
Time tracking tests: open-entry uniqueness, own-scope access and summaries.
"""

from datetime import date, datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from projecthub.core.exceptions import ConflictError
from projecthub.models.time_entry import TimeEntry
from projecthub.models.user import User
from projecthub.services import time_tracking

ENTRIES = "/api/v1/time-entries"


async def add_entry(db: AsyncSession, user: User, clock_in: datetime, hours: float = None) -> TimeEntry:
    entry = TimeEntry(
        user_id=user.id,
        clock_in=clock_in,
        clock_out=clock_in + timedelta(hours=hours) if hours is not None else None,
        date=clock_in.date(),
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return entry


@pytest.mark.parametrize(
    "elapsed, expected",
    [
        (timedelta(0), "0:00"),
        (timedelta(minutes=5, seconds=59), "0:05"),
        (timedelta(hours=7, minutes=5), "7:05"),
        (timedelta(hours=26, minutes=30), "26:30"),
    ],
)
def test_format_duration(elapsed, expected):
    assert time_tracking.format_duration(elapsed) == expected


def test_month_bounds_wraps_december():
    assert time_tracking.month_bounds("2024-12") == (date(2024, 12, 1), date(2025, 1, 1))


@pytest.mark.asyncio
async def test_clock_in_then_out(client: AsyncClient, staff_headers: dict):
    """Any approved user, base role included, tracks time."""
    clocked_in = await client.post(f"{ENTRIES}/clock-in", headers=staff_headers)
    current = (await client.get(f"{ENTRIES}/current", headers=staff_headers)).json()
    clocked_out = await client.put(f"{ENTRIES}/clock-out", headers=staff_headers)

    assert clocked_in.status_code == 201
    assert clocked_in.json()["clock_out"] is None
    assert clocked_in.json()["duration"] is None
    assert current["is_clocked_in"] is True
    assert current["current_duration"] == "0:00"
    assert clocked_out.status_code == 200
    assert clocked_out.json()["clock_out"] is not None
    assert clocked_out.json()["duration"] == "0:00"


@pytest.mark.asyncio
async def test_double_clock_in_rejected(client: AsyncClient, user_headers: dict):
    await client.post(f"{ENTRIES}/clock-in", headers=user_headers)

    response = await client.post(f"{ENTRIES}/clock-in", headers=user_headers)

    assert response.status_code == 409
    assert response.json()["errors"][0]["condition"] == "already_clocked_in"


@pytest.mark.asyncio
async def test_clock_out_without_open_entry_rejected(client: AsyncClient, user_headers: dict):
    response = await client.put(f"{ENTRIES}/clock-out", headers=user_headers)

    assert response.status_code == 409
    assert response.json()["errors"][0]["condition"] == "not_clocked_in"


@pytest.mark.asyncio
async def test_open_entries_are_per_user(client: AsyncClient, user_headers: dict, other_headers: dict):
    first = await client.post(f"{ENTRIES}/clock-in", headers=user_headers)
    second = await client.post(f"{ENTRIES}/clock-in", headers=other_headers)

    assert first.status_code == 201
    assert second.status_code == 201


@pytest.mark.asyncio
async def test_cannot_delete_open_entry(client: AsyncClient, user_headers: dict):
    entry = (await client.post(f"{ENTRIES}/clock-in", headers=user_headers)).json()

    response = await client.delete(f"{ENTRIES}/{entry['id']}", headers=user_headers)

    assert response.status_code == 409
    assert response.json()["errors"][0]["condition"] == "entry_active"


@pytest.mark.asyncio
async def test_delete_closed_entry(client: AsyncClient, user_headers: dict):
    entry = (await client.post(f"{ENTRIES}/clock-in", headers=user_headers)).json()
    await client.put(f"{ENTRIES}/clock-out", headers=user_headers)

    response = await client.delete(f"{ENTRIES}/{entry['id']}", headers=user_headers)
    remaining = (await client.get(ENTRIES, headers=user_headers)).json()

    assert response.status_code == 200
    assert remaining["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_other_users_entries_unreachable(
    client: AsyncClient,
    admin_headers: dict,
    test_db: AsyncSession,
    regular_user: User,
):
    """Even an admin cannot see or delete someone else's entries."""
    entry = await add_entry(test_db, regular_user, datetime(2024, 5, 1, 9, 0), hours=8)

    listed = (await client.get(ENTRIES, headers=admin_headers)).json()
    deleted = await client.delete(f"{ENTRIES}/{entry.id}", headers=admin_headers)

    assert listed["items"] == []
    assert deleted.status_code == 404


@pytest.mark.asyncio
async def test_list_filters_by_date_and_month(
    client: AsyncClient,
    user_headers: dict,
    test_db: AsyncSession,
    regular_user: User,
):
    await add_entry(test_db, regular_user, datetime(2024, 5, 1, 9, 0), hours=8)
    await add_entry(test_db, regular_user, datetime(2024, 5, 2, 9, 0), hours=7.5)
    await add_entry(test_db, regular_user, datetime(2024, 6, 1, 9, 0), hours=1)

    by_month = (await client.get(f"{ENTRIES}?month=2024-05", headers=user_headers)).json()
    by_date = (await client.get(f"{ENTRIES}?date=2024-05-02", headers=user_headers)).json()
    bad_month = await client.get(f"{ENTRIES}?month=May", headers=user_headers)

    assert by_month["pagination"]["total"] == 2
    assert [item["duration"] for item in by_month["items"]] == ["7:30", "8:00"]
    assert by_date["items"][0]["duration"] == "7:30"
    assert bad_month.status_code == 400


@pytest.mark.asyncio
async def test_today_summary(client: AsyncClient, user_headers: dict):
    before = (await client.get(f"{ENTRIES}/today", headers=user_headers)).json()
    await client.post(f"{ENTRIES}/clock-in", headers=user_headers)
    during = (await client.get(f"{ENTRIES}/today", headers=user_headers)).json()
    await client.put(f"{ENTRIES}/clock-out", headers=user_headers)
    after = (await client.get(f"{ENTRIES}/today", headers=user_headers)).json()

    assert before["status"] == "Not Started"
    assert before["entries_count"] == 0
    assert before["total_worked"] == "0:00"
    assert during["status"] == "In Progress"
    assert during["is_currently_clocked_in"] is True
    assert after["status"] == "Completed"
    assert after["clock_out_time"] is not None


@pytest.mark.asyncio
async def test_stats_empty_period(client: AsyncClient, user_headers: dict):
    stats = (await client.get(f"{ENTRIES}/stats?period=week", headers=user_headers)).json()

    assert stats == {
        "period": "This Week",
        "total_entries": 0,
        "completed_entries": 0,
        "active_entries": 0,
        "days_worked": 0,
        "total_hours": 0.0,
        "average_hours_per_day": 0.0,
    }


@pytest.mark.asyncio
async def test_stats_average_over_distinct_days(
    client: AsyncClient,
    user_headers: dict,
    test_db: AsyncSession,
    regular_user: User,
):
    yesterday = datetime.combine(datetime.utcnow().date() - timedelta(days=1), datetime.min.time())
    await add_entry(test_db, regular_user, yesterday.replace(hour=8), hours=4)
    await add_entry(test_db, regular_user, yesterday.replace(hour=13), hours=4)
    await add_entry(test_db, regular_user, yesterday - timedelta(days=1, hours=-9), hours=6)

    stats = (await client.get(f"{ENTRIES}/stats", headers=user_headers)).json()

    assert stats["period"] == "This Month"
    assert stats["total_entries"] == 3
    assert stats["days_worked"] == 2
    assert stats["total_hours"] == 14.0
    assert stats["average_hours_per_day"] == 7.0


@pytest.mark.asyncio
async def test_open_entry_index_rejects_second_open_entry(test_db: AsyncSession, regular_user: User):
    await add_entry(test_db, regular_user, datetime(2024, 5, 1, 9, 0))

    test_db.add(TimeEntry(user_id=regular_user.id, clock_in=datetime(2024, 5, 1, 10, 0), date=date(2024, 5, 1)))

    with pytest.raises(IntegrityError):
        await test_db.flush()
    await test_db.rollback()


@pytest.mark.asyncio
async def test_clock_in_race_reported_as_conflict(
    test_db: AsyncSession,
    regular_user: User,
    monkeypatch: pytest.MonkeyPatch,
):
    """A concurrent clock-in that slips past the lookup is caught at commit."""
    user_id = regular_user.id
    await add_entry(test_db, regular_user, datetime(2024, 5, 1, 9, 0))

    async def no_open_entry(session, uid):
        return None

    monkeypatch.setattr(time_tracking, "get_open_entry", no_open_entry)

    with pytest.raises(ConflictError) as exc_info:
        await time_tracking.clock_in(test_db, user_id, now=datetime(2024, 5, 1, 10, 0))

    assert exc_info.value.condition == "already_clocked_in"
    open_entries = (
        await test_db.execute(
            select(TimeEntry).where(TimeEntry.user_id == user_id, TimeEntry.clock_out.is_(None))
        )
    ).scalars().all()
    assert len(open_entries) == 1
