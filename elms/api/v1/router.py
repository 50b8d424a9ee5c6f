from fastapi import APIRouter

from elms.api.v1.endpoints import (
    auth,
    users,
    leaves,
    dashboard,
    notifications,
    ai,
)


# Create main API router
api_router = APIRouter(prefix="/api")

# ==================== Authentication ====================
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"]
)

# ==================== Users & Teams ====================
api_router.include_router(
    users.router,
    prefix="/users",
    tags=["Users"]
)

# ==================== Leaves ====================
api_router.include_router(
    leaves.router,
    prefix="/leaves",
    tags=["Leaves"]
)

# ==================== Dashboard ====================
api_router.include_router(
    dashboard.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)

# ==================== Notifications ====================
api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=["Notifications"]
)

# ==================== AI Assistant ====================
api_router.include_router(
    ai.router,
    prefix="/ai",
    tags=["AI Assistant"]
)
