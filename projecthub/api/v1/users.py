"""
User management endpoints.

Listing, creation, approval and password reset are admin only. Any
authenticated user may read and update their own profile within the
non-admin field allowlist.
"""

from typing import Optional

from fastapi import APIRouter, status

from projecthub.api.deps import AdminUser, CurrentUser, DbSession, Paging
from projecthub.core import access
from projecthub.core import roles as role_model
from projecthub.core.roles import Role
from projecthub.models.common import Message, Page
from projecthub.models.user import (
    PasswordReset,
    ProjectCounts,
    UserCreate,
    UserDetail,
    UserRead,
    UserStats,
    UserUpdate,
)
from projecthub.services import statistics
from projecthub.services import users as user_service

router = APIRouter()


@router.get("", response_model=Page[UserRead])
async def list_users(
    current_user: AdminUser,
    db: DbSession,
    paging: Paging,
    role: Optional[Role] = None,
    approved: Optional[bool] = None,
    search: Optional[str] = None,
):
    """List users with optional role, approval and text filters."""
    users, pagination = await user_service.list_users(
        db, paging.limit, paging.offset, role=role, approved=approved, search=search
    )
    return Page[UserRead](
        items=[UserRead.model_validate(user) for user in users],
        pagination=pagination,
    )


@router.get("/stats/overview", response_model=UserStats)
async def user_statistics(current_user: AdminUser, db: DbSession):
    """User counts by approval state and role."""
    return await statistics.user_stats(db)


@router.get("/{user_id}", response_model=UserDetail)
async def get_user(user_id: int, current_user: CurrentUser, db: DbSession):
    """
    Get a user. Users holding a project role also get their project counts.
    """
    access.profile_access(current_user.role_set, user_id, current_user.id).enforce()
    user = await user_service.get_user(db, user_id)

    project_stats = None
    if role_model.can_access_projects(user.role_set):
        stats = await statistics.project_stats(db, owner_id=user.id)
        project_stats = ProjectCounts(
            total=stats.total,
            pending=stats.pending,
            ongoing=stats.ongoing,
            completed=stats.completed,
        )
    return UserDetail(user=UserRead.model_validate(user), project_stats=project_stats)


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(user_in: UserCreate, current_user: AdminUser, db: DbSession):
    """Create a user with explicit roles; approved unless stated otherwise."""
    return await user_service.create_user(db, user_in)


@router.put("/{user_id}", response_model=UserRead)
async def update_user(user_id: int, user_in: UserUpdate, current_user: CurrentUser, db: DbSession):
    """
    Update a user.

    Non-admins may change name, email and username on their own profile;
    admins may also change roles and approval on any profile.
    """
    changes = user_in.model_dump(exclude_unset=True)
    access.profile_update(
        current_user.role_set, user_id, current_user.id, changes.keys()
    ).enforce()

    user = await user_service.get_user(db, user_id)
    return await user_service.update_user(db, user, changes)


@router.put("/{user_id}/password", response_model=Message)
async def reset_password(
    user_id: int,
    payload: PasswordReset,
    current_user: AdminUser,
    db: DbSession,
):
    """Reset a user's password."""
    user = await user_service.get_user(db, user_id)
    await user_service.reset_password(db, user, payload.new_password)
    return Message(message="Password reset successfully")


@router.put("/{user_id}/approve", response_model=UserRead)
async def approve_user(user_id: int, current_user: AdminUser, db: DbSession):
    """Approve a pending user."""
    user = await user_service.get_user(db, user_id)
    return await user_service.approve_user(db, user)
