"""
User invariants and persistence.

Uniqueness of email/username, role-set validity, password strength and
approval state are checked here. Access control is decided by the caller
through ``projecthub.core.access`` before any of these run.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import or_, select

from projecthub.core import roles as role_model
from projecthub.core.config import settings
from projecthub.core.exceptions import ConflictError, NotFoundError, ValidationError
from projecthub.core.roles import Role
from projecthub.core.security import get_password_hash, verify_password
from projecthub.models.common import Pagination
from projecthub.models.user import User, UserCreate, UserRegister
from projecthub.services.pagination import paginate

logger = logging.getLogger(__name__)


async def get_user(session: AsyncSession, user_id: int, field: Optional[str] = None) -> User:
    """
    Load a user by id.

    Raises:
        NotFoundError: If no such user exists.
    """
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", field=field)
    return user


async def find_by_login(session: AsyncSession, email_or_username: str) -> Optional[User]:
    """Look up a user by email or username."""
    result = await session.execute(
        select(User).where(
            or_(User.email == email_or_username, User.username == email_or_username)
        )
    )
    return result.scalars().first()


async def ensure_unique(
    session: AsyncSession,
    email: Optional[str] = None,
    username: Optional[str] = None,
    exclude_id: Optional[int] = None,
) -> None:
    """
    Reject an email or username already held by another user.

    Raises:
        ConflictError: ``duplicate_key`` naming the taken field.
    """
    for field, value in (("email", email), ("username", username)):
        if value is None:
            continue
        query = select(User.id).where(getattr(User, field) == value)
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        if (await session.execute(query)).first() is not None:
            raise ConflictError(
                f"User with this {field} already exists",
                condition="duplicate_key",
                field=field,
            )


def check_password_strength(password: str, field: str = "password") -> None:
    """
    Enforce the minimum password length.

    Raises:
        ValidationError: If the password is too short.
    """
    if len(password or "") < settings.password_min_length:
        raise ValidationError(
            f"Password must be at least {settings.password_min_length} characters long",
            field=field,
            constraint="min_length",
        )


async def register_user(session: AsyncSession, data: UserRegister) -> User:
    """
    Self-registration: unapproved, base role only.
    """
    check_password_strength(data.password)
    await ensure_unique(session, email=data.email, username=data.username)

    user = User(
        email=data.email,
        username=data.username,
        name=data.name,
        hashed_password=get_password_hash(data.password),
        roles=[Role.STAFF.value],
        approved=False,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info(f"Registered user {user.username} (id={user.id}), pending approval")
    return user


async def create_user(session: AsyncSession, data: UserCreate) -> User:
    """
    Admin user creation with explicit roles and approval.
    """
    role_set = role_model.parse_roles(data.roles)
    check_password_strength(data.password)
    await ensure_unique(session, email=data.email, username=data.username)

    user = User(
        email=data.email,
        username=data.username,
        name=data.name,
        hashed_password=get_password_hash(data.password),
        roles=role_model.serialize(role_set),
        approved=data.approved,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info(f"Created user {user.username} (id={user.id}) with roles {user.roles}")
    return user


async def update_user(session: AsyncSession, user: User, changes: Dict[str, Any]) -> User:
    """
    Apply already-authorized field changes to a user.

    Args:
        session: Database session.
        user: Target user.
        changes: Submitted fields (unset fields excluded).

    Raises:
        ValidationError: If nothing is submitted, a required field is
            nulled or roles are invalid.
        ConflictError: If the new email or username is taken.
    """
    if not changes:
        raise ValidationError("No valid fields to update")
    for key in ("email", "username", "name", "approved"):
        if key in changes and changes[key] is None:
            raise ValidationError(f"{key} cannot be null", field=key, constraint="required")

    if "roles" in changes:
        changes["roles"] = role_model.serialize(role_model.parse_roles(changes["roles"] or []))

    await ensure_unique(
        session,
        email=changes.get("email") if changes.get("email") != user.email else None,
        username=changes.get("username") if changes.get("username") != user.username else None,
        exclude_id=user.id,
    )

    for key, value in changes.items():
        setattr(user, key, value)
    user.updated_at = datetime.utcnow()

    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info(f"Updated user {user.id}: {sorted(changes)}")
    return user


async def approve_user(session: AsyncSession, user: User) -> User:
    """
    Approve a pending user.

    Raises:
        ConflictError: ``already_approved`` if the user is already approved.
    """
    if user.approved:
        raise ConflictError("User is already approved", condition="already_approved")

    user.approved = True
    user.updated_at = datetime.utcnow()
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info(f"Approved user {user.username} (id={user.id})")
    return user


async def reset_password(session: AsyncSession, user: User, new_password: str) -> None:
    """Admin password reset; only the strength rule applies."""
    check_password_strength(new_password, field="new_password")

    user.hashed_password = get_password_hash(new_password)
    user.updated_at = datetime.utcnow()
    session.add(user)
    await session.commit()

    logger.info(f"Password reset for user {user.id}")


async def change_password(
    session: AsyncSession,
    user: User,
    current_password: str,
    new_password: str,
) -> None:
    """
    Self-service password change.

    Raises:
        ValidationError: If the current password does not match or the new
            one is too weak.
    """
    if not verify_password(current_password, user.hashed_password):
        raise ValidationError(
            "Current password is incorrect",
            field="current_password",
            constraint="mismatch",
        )
    check_password_strength(new_password, field="new_password")

    user.hashed_password = get_password_hash(new_password)
    user.updated_at = datetime.utcnow()
    session.add(user)
    await session.commit()

    logger.info(f"User {user.id} changed their password")


async def list_users(
    session: AsyncSession,
    limit: int,
    offset: int,
    role: Optional[Role] = None,
    approved: Optional[bool] = None,
    search: Optional[str] = None,
) -> Tuple[List[User], Pagination]:
    """
    List users, newest first.

    Args:
        role: Only users holding this role.
        approved: Only approved (True) or pending (False) users.
        search: Case-insensitive match on name, email or username.
    """
    query = select(User)
    if approved is not None:
        query = query.where(User.approved == approved)
    if search:
        like = f"%{search}%"
        query = query.where(
            or_(User.name.ilike(like), User.email.ilike(like), User.username.ilike(like))
        )
    query = query.order_by(User.created_at.desc(), User.id.desc())

    if role is None:
        rows, pagination = await paginate(session, query, limit, offset)
        return [row[0] for row in rows], pagination

    # Roles are stored as a JSON array; membership is filtered in Python
    users = [
        user for user in (await session.execute(query)).scalars().all()
        if role in user.role_set
    ]
    total = len(users)
    return users[offset:offset + limit], Pagination(
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + limit < total,
    )
