"""API v1 routes."""

from fastapi import APIRouter

from gatehouse.api.v1 import admin_roles, admin_users, auth, health, password, social, user

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(password.router, prefix="/auth", tags=["auth"])
router.include_router(social.router, prefix="/auth", tags=["oauth"])
router.include_router(user.router, prefix="/user", tags=["user"])
router.include_router(admin_users.router, prefix="/admin/users", tags=["admin"])
router.include_router(admin_roles.router, prefix="/admin/roles", tags=["admin"])
