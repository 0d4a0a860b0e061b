"""
Project endpoints.

Requires the user, madmin or admin role. Non-privileged callers only see
and change the projects they created; deletion is admin only.
"""

from typing import Optional

from fastapi import APIRouter, status

from projecthub.api.deps import DbSession, Paging, ProjectUser
from projecthub.core import access
from projecthub.models.common import Message, Page
from projecthub.models.project import (
    ProjectCreate,
    ProjectRead,
    ProjectStats,
    ProjectStatus,
    ProjectUpdate,
)
from projecthub.services import projects as project_service
from projecthub.services import statistics

router = APIRouter()


@router.get("", response_model=Page[ProjectRead])
async def list_projects(
    current_user: ProjectUser,
    db: DbSession,
    paging: Paging,
    status: Optional[ProjectStatus] = None,
    search: Optional[str] = None,
    user_id: Optional[int] = None,
):
    """List visible projects with optional status, text and creator filters."""
    projects, pagination = await project_service.list_projects(
        db,
        paging.limit,
        paging.offset,
        owner_id=access.project_scope(current_user.role_set, current_user.id),
        status=status,
        search=search,
        user_id=user_id,
    )
    return Page[ProjectRead](items=projects, pagination=pagination)


@router.get("/stats/overview", response_model=ProjectStats)
async def project_statistics(current_user: ProjectUser, db: DbSession):
    """Project counts and completion rate over the caller's visible projects."""
    return await statistics.project_stats(
        db, owner_id=access.project_scope(current_user.role_set, current_user.id)
    )


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(project_id: int, current_user: ProjectUser, db: DbSession):
    """Get a single project."""
    project = await project_service.get_project(db, project_id)
    access.project_instance(
        current_user.role_set, project.created_by, current_user.id, "view"
    ).enforce()
    return await project_service.to_read(db, project)


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
async def create_project(project_in: ProjectCreate, current_user: ProjectUser, db: DbSession):
    """Create a project owned by the caller."""
    project = await project_service.create_project(
        db, project_in, current_user.id, current_user.role_set
    )
    return await project_service.to_read(db, project)


@router.put("/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: int,
    project_in: ProjectUpdate,
    current_user: ProjectUser,
    db: DbSession,
):
    """Update a project."""
    project = await project_service.get_project(db, project_id)
    access.project_instance(
        current_user.role_set, project.created_by, current_user.id, "edit"
    ).enforce()
    project = await project_service.update_project(db, project, project_in, current_user.role_set)
    return await project_service.to_read(db, project)


@router.put("/{project_id}/complete", response_model=ProjectRead)
async def complete_project(project_id: int, current_user: ProjectUser, db: DbSession):
    """Mark a project completed with today's end date."""
    project = await project_service.get_project(db, project_id)
    access.project_instance(
        current_user.role_set, project.created_by, current_user.id, "complete"
    ).enforce()
    project = await project_service.complete_project(db, project)
    return await project_service.to_read(db, project)


@router.delete("/{project_id}", response_model=Message)
async def delete_project(project_id: int, current_user: ProjectUser, db: DbSession):
    """Delete a project (admin only)."""
    access.project_delete(current_user.role_set).enforce()
    project = await project_service.get_project(db, project_id)
    await project_service.delete_project(db, project)
    return Message(message="Project deleted successfully")
