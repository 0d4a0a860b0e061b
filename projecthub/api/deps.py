"""
API Dependencies.

Shared dependencies for authentication, database sessions and
resource-level access gates.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.core import access
from projecthub.core.config import settings
from projecthub.core.database import get_db
from projecthub.core.security import decode_access_token
from projecthub.models.user import User

# OAuth2 scheme for token authentication
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency to get the current authenticated user.

    The token only identifies the user; roles and approval are read from
    the stored record so revocations take effect immediately.

    Args:
        token: JWT access token from Authorization header.
        db: Database session.

    Returns:
        User: The authenticated user.

    Raises:
        HTTPException: 401 if the token is missing, invalid or names an
            unknown user; 403 if the user is not approved.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    token_data = decode_access_token(token)
    if token_data is None or token_data.user_id is None:
        raise credentials_exception

    user = await db.get(User, token_data.user_id)
    if user is None:
        raise credentials_exception

    if not user.approved:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account pending admin approval",
        )

    return user


async def get_admin_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Dependency to ensure current user is an admin."""
    access.user_admin(current_user.role_set).enforce()
    return current_user


async def get_project_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Dependency to ensure current user holds a project role."""
    access.project_access(current_user.role_set).enforce()
    return current_user


async def get_billing_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Dependency to ensure current user may see invoices."""
    access.billing_access(current_user.role_set).enforce()
    return current_user


class PageParams:
    """Limit/offset query parameters."""

    def __init__(
        self,
        limit: int = Query(default=settings.default_page_limit, ge=1, le=500),
        offset: int = Query(default=0, ge=0),
    ):
        self.limit = limit
        self.offset = offset


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(get_admin_user)]
ProjectUser = Annotated[User, Depends(get_project_user)]
BillingUser = Annotated[User, Depends(get_billing_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
Paging = Annotated[PageParams, Depends()]
