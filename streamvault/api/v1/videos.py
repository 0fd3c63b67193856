"""Video API routes — list, get, edit, delete, thumbnail."""

import uuid

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from streamvault.container import AppServices
from streamvault.dependencies import get_current_user, get_services, require_admin
from streamvault.entities import User
from streamvault.errors import NotFoundError
from streamvault.schemas.common import MessageResponse
from streamvault.schemas.video import VideoListResponse, VideoResponse, VideoUpdateRequest

router = APIRouter(prefix="/videos", tags=["videos"])


@router.get("", response_model=VideoListResponse)
async def list_videos(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    category: str | None = None,
    services: AppServices = Depends(get_services),
):
    videos, total = await services.videos.list_videos(None, page, page_size, category)
    return VideoListResponse(
        items=[VideoResponse.from_video(v) for v in videos],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/mine", response_model=VideoListResponse)
async def list_my_videos(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    services: AppServices = Depends(get_services),
):
    videos, total = await services.videos.list_videos(user.id, page, page_size)
    return VideoListResponse(
        items=[VideoResponse.from_video(v) for v in videos],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{video_id}", response_model=VideoResponse)
async def get_video(video_id: uuid.UUID, services: AppServices = Depends(get_services)):
    return VideoResponse.from_video(await services.videos.get_video(video_id))


@router.get("/{video_id}/thumbnail")
async def get_thumbnail(video_id: uuid.UUID, services: AppServices = Depends(get_services)):
    video = await services.videos.get_video(video_id)
    if not video.thumbnail_path:
        raise NotFoundError("Thumbnail not available")
    try:
        path = services.storage.retrieve(video.thumbnail_path)
    except FileNotFoundError:
        raise NotFoundError("Thumbnail not available")
    return FileResponse(path, media_type="image/jpeg")


@router.patch("/{video_id}", response_model=VideoResponse)
async def update_video(
    video_id: uuid.UUID,
    payload: VideoUpdateRequest,
    _: User = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    video = await services.videos.update_video(video_id, payload.model_dump(exclude_unset=True))
    return VideoResponse.from_video(video)


@router.delete("/{video_id}", response_model=MessageResponse)
async def delete_video(
    video_id: uuid.UUID,
    _: User = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    await services.videos.delete_video(video_id)
    return MessageResponse(message="Video deleted")
