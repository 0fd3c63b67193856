"""Aggregates all v1 API routers into a single router."""

from fastapi import APIRouter

from streamvault.api.v1.admin import router as admin_router
from streamvault.api.v1.auth import router as auth_router
from streamvault.api.v1.health import router as health_router
from streamvault.api.v1.stream import router as stream_router
from streamvault.api.v1.videos import router as videos_router

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(admin_router)
v1_router.include_router(auth_router)
v1_router.include_router(health_router)
v1_router.include_router(stream_router)
v1_router.include_router(videos_router)
