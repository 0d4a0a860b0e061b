"""
User model for authentication and authorization.
"""

import re
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import EmailStr, field_validator
from sqlmodel import JSON, Column, Field, SQLModel

from projecthub.core.roles import Role, RoleSet, to_role_set

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")


def check_username(value: Optional[str]) -> Optional[str]:
    """Usernames are letters, digits and underscores only."""
    if value is not None and not USERNAME_PATTERN.match(value):
        raise ValueError("Username can only contain letters, numbers, and underscores")
    return value


class UserBase(SQLModel):
    """Base user fields shared across schemas."""
    email: str = Field(unique=True, index=True)
    username: str = Field(unique=True, index=True)
    name: str
    approved: bool = False


class User(UserBase, table=True):
    """
    User database model.

    Attributes:
        id: Primary key.
        email: Unique email address.
        username: Unique login name.
        name: Display name.
        roles: Role values held by the user; always contains "staff".
        approved: Whether the user may authenticate.
        hashed_password: Bcrypt hashed password.
        created_at: Account creation timestamp.
        updated_at: Last update timestamp.
    """

    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    roles: List[str] = Field(default_factory=lambda: [Role.STAFF.value], sa_column=Column(JSON, nullable=False))
    hashed_password: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def role_set(self) -> RoleSet:
        return to_role_set(self.roles or [])


class UserRegister(SQLModel):
    """Schema for self-registration."""
    email: EmailStr
    password: str
    name: str = Field(min_length=2)
    username: str = Field(min_length=3, max_length=50)

    validate_username = field_validator("username")(check_username)


class UserCreate(UserRegister):
    """Schema for admin user creation."""
    roles: List[str]
    approved: bool = True


class UserRead(UserBase):
    """Schema for reading user data (no password)."""
    id: int
    roles: List[Role]
    created_at: datetime
    updated_at: datetime


class UserUpdate(SQLModel):
    """Schema for updating user data."""
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(default=None, min_length=2)
    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    roles: Optional[List[str]] = None
    approved: Optional[bool] = None

    validate_username = field_validator("username")(check_username)


class PasswordReset(SQLModel):
    """Schema for an admin password reset."""
    new_password: str


class PasswordChange(SQLModel):
    """Schema for a self-service password change."""
    current_password: str = Field(min_length=1)
    new_password: str


class LoginRequest(SQLModel):
    """Login by email or username."""
    email_or_username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ProjectCounts(SQLModel):
    """Per-status project counts."""
    total: int = 0
    pending: int = 0
    ongoing: int = 0
    completed: int = 0


class UserDetail(SQLModel):
    """Single user with project statistics for project-role holders."""
    user: UserRead
    project_stats: Optional[ProjectCounts] = None


class UserStats(SQLModel):
    """User counts by approval state and role."""
    total: int = 0
    approved: int = 0
    pending: int = 0
    by_role: Dict[str, int] = Field(default_factory=dict)
    staff_only: int = 0
