"""
Authentication endpoints.

Handles registration, login, token verification and password changes.
"""

from datetime import timedelta

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from projecthub.api.deps import CurrentUser, DbSession
from projecthub.core import roles as role_model
from projecthub.core.config import settings
from projecthub.core.security import Token, create_access_token, verify_password
from projecthub.models.common import Message
from projecthub.models.user import LoginRequest, PasswordChange, UserRead, UserRegister
from projecthub.services import users as user_service

router = APIRouter()


class LoginResponse(Token):
    """Access token plus the authenticated user."""
    user: UserRead


class VerifyResponse(BaseModel):
    """Token verification result."""
    valid: bool = True
    user: UserRead


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def register(user_in: UserRegister, db: DbSession):
    """
    Register a new user.

    New accounts hold only the staff role and cannot log in until an
    admin approves them.

    Raises:
        ConflictError: If the email or username is taken.
        ValidationError: If the password is too short.
    """
    return await user_service.register_user(db, user_in)


@router.post("/login", response_model=LoginResponse)
async def login(credentials: LoginRequest, db: DbSession):
    """
    Authenticate by email or username and return an access token.

    Raises:
        HTTPException: 401 for unknown user or wrong password, 403 for an
            account still pending approval.
    """
    user = await user_service.find_by_login(db, credentials.email_or_username)

    if not user or not verify_password(credentials.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.approved:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account pending admin approval. Please wait for approval.",
        )

    access_token = create_access_token(
        data={
            "sub": user.id,
            "email": user.email,
            "username": user.username,
            "roles": role_model.serialize(user.role_set),
        },
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )

    return LoginResponse(access_token=access_token, user=UserRead.model_validate(user))


@router.get("/verify", response_model=VerifyResponse)
async def verify(current_user: CurrentUser):
    """Check the token and return the current user."""
    return VerifyResponse(user=UserRead.model_validate(current_user))


@router.post("/logout", response_model=Message)
async def logout(current_user: CurrentUser):
    """
    Log out.

    Tokens are stateless; clients discard theirs.
    """
    return Message(message="Logged out successfully")


@router.put("/change-password", response_model=Message)
async def change_password(payload: PasswordChange, current_user: CurrentUser, db: DbSession):
    """
    Change the current user's password after verifying the current one.
    """
    await user_service.change_password(
        db, current_user, payload.current_password, payload.new_password
    )
    return Message(message="Password changed successfully")
