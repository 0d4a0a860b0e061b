"""
Main API v1 router.

Aggregates all v1 endpoint routers.
"""

from fastapi import APIRouter

from .auth import router as auth_router
from .invoices import router as invoices_router
from .projects import router as projects_router
from .time_entries import router as time_entries_router
from .users import router as users_router

api_router = APIRouter()

# Public routes
api_router.include_router(
    auth_router,
    prefix="/auth",
    tags=["Authentication"],
)

# Admin only, except own-profile access
api_router.include_router(
    users_router,
    prefix="/users",
    tags=["Users"],
)

# user, madmin and admin
api_router.include_router(
    projects_router,
    prefix="/projects",
    tags=["Projects"],
)

# madmin and admin
api_router.include_router(
    invoices_router,
    prefix="/invoices",
    tags=["Invoices"],
)

# Every authenticated user, own entries only
api_router.include_router(
    time_entries_router,
    prefix="/time-entries",
    tags=["Time Tracking"],
)
