"""
Read-only statistics over current state.

Every function tolerates empty tables and returns zero-valued fields.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import case, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from projecthub.core import roles as role_model
from projecthub.core.roles import Role
from projecthub.models.invoice import Invoice, InvoiceStats, InvoiceStatus
from projecthub.models.project import Project, ProjectStats, ProjectStatus
from projecthub.models.time_entry import TimeEntry, TimeStats
from projecthub.models.user import User, UserStats
from projecthub.services.invoices import CENTS, status_condition

# period -> (window in days, label)
TIME_PERIODS: Dict[str, tuple] = {
    "week": (7, "This Week"),
    "month": (30, "This Month"),
    "year": (365, "This Year"),
}
DEFAULT_PERIOD = "month"

MONEY_FIELDS = ("total_revenue", "pending_revenue", "overdue_revenue", "average_invoice_amount")


def to_money(value) -> Decimal:
    """SQL sums and averages as cents; NULL (no rows) becomes zero."""
    return Decimal(str(value or 0)).quantize(CENTS)


def completion_rate(completed: int, total: int) -> float:
    """Completed share in percent, rounded to 2 places; 0 when total is 0."""
    if total == 0:
        return 0.0
    return round(completed / total * 100, 2)


async def project_stats(session: AsyncSession, owner_id: Optional[int] = None) -> ProjectStats:
    """
    Project counts by status.

    Args:
        owner_id: Restrict to projects created by this user.
    """
    query = select(Project.status, func.count()).group_by(Project.status)
    if owner_id is not None:
        query = query.where(Project.created_by == owner_id)
    counts = {status: count for status, count in (await session.execute(query)).all()}

    total = sum(counts.values())
    completed = counts.get(ProjectStatus.COMPLETED, 0)
    return ProjectStats(
        total=total,
        pending=counts.get(ProjectStatus.PENDING, 0),
        ongoing=counts.get(ProjectStatus.ONGOING, 0),
        completed=completed,
        completion_rate=completion_rate(completed, total),
    )


async def invoice_stats(session: AsyncSession, today: Optional[date] = None) -> InvoiceStats:
    """
    Invoice counts and revenue by effective status.

    total_revenue sums paid amounts; pending and overdue revenue sum the
    full amount of invoices in that status; average_invoice_amount is the
    mean amount of paid invoices.
    """
    today = today or date.today()
    pending = status_condition(InvoiceStatus.PENDING, today)
    overdue = status_condition(InvoiceStatus.OVERDUE, today)
    paid = status_condition(InvoiceStatus.PAID, today)

    query = select(
        func.count(Invoice.id).label("total"),
        *[
            func.count(case((status_condition(status, today), 1))).label(status.value)
            for status in InvoiceStatus
        ],
        func.sum(Invoice.paid_amount).label("total_revenue"),
        func.sum(case((pending, Invoice.amount))).label("pending_revenue"),
        func.sum(case((overdue, Invoice.amount))).label("overdue_revenue"),
        func.avg(case((paid, Invoice.amount))).label("average_invoice_amount"),
    )
    row = (await session.execute(query)).one()._mapping

    return InvoiceStats(
        total=row["total"],
        **{status.value: row[status.value] for status in InvoiceStatus},
        **{key: to_money(row[key]) for key in MONEY_FIELDS},
    )


async def user_stats(session: AsyncSession) -> UserStats:
    """
    User counts: total, approved, pending, per role and staff-only.

    Roles are stored as a JSON list, so the per-role breakdown is counted
    here rather than in SQL.
    """
    total, approved = (
        await session.execute(
            select(func.count(User.id), func.count(case((User.approved.is_(True), 1))))
        )
    ).one()

    by_role = {role.value: 0 for role in Role}
    staff_only = 0
    for roles in (await session.execute(select(User.roles))).scalars():
        role_set = role_model.to_role_set(roles or [])
        for role in role_set:
            by_role[role.value] += 1
        if role_set == frozenset({Role.STAFF}):
            staff_only += 1

    return UserStats(
        total=total,
        approved=approved,
        pending=total - approved,
        by_role=by_role,
        staff_only=staff_only,
    )


async def time_stats(
    session: AsyncSession,
    user_id: int,
    period: str = DEFAULT_PERIOD,
    today: Optional[date] = None,
) -> TimeStats:
    """
    Hours worked by one user over a trailing window.

    Only closed entries count towards hours. The per-day average divides
    by the number of distinct days with at least one entry.
    """
    today = today or datetime.utcnow().date()
    days, label = TIME_PERIODS.get(period, TIME_PERIODS[DEFAULT_PERIOD])
    since = today - timedelta(days=days)

    entries = (
        await session.execute(
            select(TimeEntry).where(TimeEntry.user_id == user_id, TimeEntry.date >= since)
        )
    ).scalars().all()

    closed = [entry for entry in entries if entry.clock_out is not None]
    total_hours = sum((entry.clock_out - entry.clock_in).total_seconds() for entry in closed) / 3600
    days_worked = len({entry.date for entry in entries})

    return TimeStats(
        period=label,
        total_entries=len(entries),
        completed_entries=len(closed),
        active_entries=len(entries) - len(closed),
        days_worked=days_worked,
        total_hours=round(total_hours, 2),
        average_hours_per_day=round(total_hours / days_worked, 2) if days_worked else 0.0,
    )
