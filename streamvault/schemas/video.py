"""Video request/response schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel

from streamvault.entities import VideoMetadata


class VideoResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    category: str
    owner_id: uuid.UUID
    file_size: int
    stream_url: str
    playlist_url: str | None = None
    has_thumbnail: bool = False
    created_at: datetime | None = None

    @classmethod
    def from_video(cls, video: VideoMetadata) -> "VideoResponse":
        playlist_url = None
        if video.playback_manifest_path:
            playlist_name = video.playback_manifest_path.rsplit("/", 1)[-1]
            playlist_url = f"/api/v1/stream/{video.id}/hls/{playlist_name}"
        return cls(
            id=video.id,
            title=video.title,
            description=video.description,
            category=video.category,
            owner_id=video.owner_id,
            file_size=video.file_size,
            stream_url=f"/api/v1/stream/{video.id}",
            playlist_url=playlist_url,
            has_thumbnail=video.thumbnail_path is not None,
            created_at=video.created_at,
        )


class VideoListResponse(BaseModel):
    items: list[VideoResponse]
    total: int
    page: int
    page_size: int


class VideoUpdateRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    category: str | None = None
