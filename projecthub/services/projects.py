"""
Project invariants and persistence.

- end_date, when set, is never before start_date
- non-privileged writers may only set end_date on a completed project
- completing a completed project is a business-state conflict
"""

import logging
from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import or_, select

from projecthub.core import roles as role_model
from projecthub.core.exceptions import ConflictError, NotFoundError, ValidationError
from projecthub.core.roles import RoleSet
from projecthub.models.common import Pagination
from projecthub.models.invoice import Invoice
from projecthub.models.project import (
    Project,
    ProjectCreate,
    ProjectRead,
    ProjectStatus,
    ProjectUpdate,
)
from projecthub.models.user import User
from projecthub.services.pagination import paginate

logger = logging.getLogger(__name__)


def check_dates(start_date: date, end_date: Optional[date]) -> None:
    """
    Raises:
        ValidationError: If end_date precedes start_date.
    """
    if end_date is not None and end_date < start_date:
        raise ValidationError(
            "End date cannot be before start date",
            field="end_date",
            constraint="not_before_start_date",
        )


def check_end_date_rule(
    role_set: RoleSet,
    end_date_submitted: bool,
    status: ProjectStatus,
) -> None:
    """
    Non-privileged writers may only set an end date on a completed project.

    Raises:
        ValidationError: If the rule is violated.
    """
    if role_model.is_privileged(role_set):
        return
    if end_date_submitted and status != ProjectStatus.COMPLETED:
        raise ValidationError(
            "End date can only be set when project status is completed",
            field="end_date",
            constraint="requires_completed_status",
        )


async def get_project(session: AsyncSession, project_id: int, field: Optional[str] = None) -> Project:
    """
    Load a project by id.

    Raises:
        NotFoundError: If no such project exists.
    """
    project = await session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", field=field)
    return project


async def to_read(session: AsyncSession, project: Project) -> ProjectRead:
    """Attach the creator's name and username."""
    creator = await session.get(User, project.created_by)
    return _build_read(project, creator.name if creator else None, creator.username if creator else None)


def _build_read(project: Project, name: Optional[str], username: Optional[str]) -> ProjectRead:
    payload = ProjectRead.model_validate(project)
    payload.created_by_name = name
    payload.created_by_username = username
    return payload


async def create_project(
    session: AsyncSession,
    data: ProjectCreate,
    owner_id: int,
    role_set: RoleSet,
) -> Project:
    """
    Create a project owned by ``owner_id``. Status defaults to pending.
    """
    check_dates(data.start_date, data.end_date)
    check_end_date_rule(role_set, data.end_date is not None, data.status)

    project = Project(**data.model_dump(), created_by=owner_id)
    session.add(project)
    await session.commit()
    await session.refresh(project)

    logger.info(f"Project {project.id} '{project.name}' created by user {owner_id}")
    return project


async def update_project(
    session: AsyncSession,
    project: Project,
    data: ProjectUpdate,
    role_set: RoleSet,
) -> Project:
    """
    Apply submitted fields after checking them against the merged state.

    Nothing is written when a check fails.
    """
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No valid fields to update")
    for key in ("name", "start_date", "status"):
        if key in changes and changes[key] is None:
            raise ValidationError(f"{key} cannot be null", field=key, constraint="required")

    start_date = changes.get("start_date") or project.start_date
    end_date = changes["end_date"] if "end_date" in changes else project.end_date
    status = changes.get("status") or project.status

    check_dates(start_date, end_date)
    check_end_date_rule(role_set, changes.get("end_date") is not None, status)

    for key, value in changes.items():
        setattr(project, key, value)
    project.updated_at = datetime.utcnow()

    session.add(project)
    await session.commit()
    await session.refresh(project)

    logger.info(f"Project {project.id} updated: {sorted(changes)}")
    return project


async def complete_project(session: AsyncSession, project: Project, today: Optional[date] = None) -> Project:
    """
    Mark a project completed as of today.

    Raises:
        ConflictError: ``already_completed`` if it is already completed.
    """
    if project.status == ProjectStatus.COMPLETED:
        raise ConflictError("Project is already completed", condition="already_completed")

    today = today or date.today()
    check_dates(project.start_date, today)

    project.status = ProjectStatus.COMPLETED
    project.end_date = today
    project.updated_at = datetime.utcnow()

    session.add(project)
    await session.commit()
    await session.refresh(project)

    logger.info(f"Project {project.id} completed on {today}")
    return project


async def delete_project(session: AsyncSession, project: Project) -> None:
    """Delete a project; invoices referencing it keep existing unlinked."""
    await session.execute(
        update(Invoice).where(Invoice.project_id == project.id).values(project_id=None)
    )
    await session.delete(project)
    await session.commit()

    logger.info(f"Project {project.id} '{project.name}' deleted")


async def list_projects(
    session: AsyncSession,
    limit: int,
    offset: int,
    owner_id: Optional[int] = None,
    status: Optional[ProjectStatus] = None,
    search: Optional[str] = None,
    user_id: Optional[int] = None,
) -> Tuple[List[ProjectRead], Pagination]:
    """
    List projects with their creators, newest first.

    Args:
        owner_id: Visibility scope; None for privileged callers.
        status: Only projects in this status.
        search: Case-insensitive match on name or description.
        user_id: Only projects created by this user.
    """
    query = select(Project, User.name, User.username).join(
        User, User.id == Project.created_by, isouter=True
    )
    if owner_id is not None:
        query = query.where(Project.created_by == owner_id)
    if user_id is not None:
        query = query.where(Project.created_by == user_id)
    if status is not None:
        query = query.where(Project.status == status)
    if search:
        like = f"%{search}%"
        query = query.where(or_(Project.name.ilike(like), Project.description.ilike(like)))
    query = query.order_by(Project.created_at.desc(), Project.id.desc())

    rows, pagination = await paginate(session, query, limit, offset)
    return [_build_read(project, name, username) for project, name, username in rows], pagination
