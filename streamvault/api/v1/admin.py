"""Admin API routes — upload videos, manage users."""

import uuid

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from streamvault.container import AppServices
from streamvault.dependencies import get_services, require_admin
from streamvault.entities import User
from streamvault.schemas.auth import UserResponse
from streamvault.schemas.common import MessageResponse
from streamvault.schemas.user import RoleUpdateRequest
from streamvault.schemas.video import VideoResponse

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/upload", response_model=VideoResponse, status_code=status.HTTP_201_CREATED)
async def upload_video(
    video: UploadFile | None = File(None),
    title: str = Form(""),
    category: str = Form(""),
    description: str = Form(""),
    admin: User = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    try:
        metadata = await services.uploads.upload_video(
            video,
            title=title,
            category=category,
            description=description,
            owner_id=admin.id,
        )
    finally:
        if video is not None:
            await video.close()
    return VideoResponse.from_video(metadata)


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    _: User = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    return [UserResponse.model_validate(u) for u in await services.users.list_users()]


@router.patch("/users/{user_id}/role", response_model=MessageResponse)
async def update_user_role(
    user_id: uuid.UUID,
    payload: RoleUpdateRequest,
    admin: User = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    await services.users.update_role(user_id, payload.role, admin)
    return MessageResponse(message="User role updated")


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    await services.users.delete_user(user_id, admin)
    return MessageResponse(message="User deleted")
