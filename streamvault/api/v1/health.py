"""Health check endpoints."""

import shutil

from fastapi import APIRouter, Depends

from streamvault.container import AppServices
from streamvault.dependencies import get_services

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check(services: AppServices = Depends(get_services)):
    settings = services.settings
    return {
        "status": "ok",
        "transcoder": settings.TRANSCODER,
        "ffmpeg_available": shutil.which(settings.FFMPEG_BINARY) is not None,
        "background_tasks": services.runner.pending,
    }
