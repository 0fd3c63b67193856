"""Video service — list, fetch, edit and delete video metadata and files."""

import logging
import uuid

from streamvault.entities import VideoMetadata
from streamvault.errors import NotFoundError, ValidationError
from streamvault.stores.base import DataStore
from streamvault.utils.storage import LocalStorage

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "category")


class VideoService:
    def __init__(self, store: DataStore, storage: LocalStorage):
        self.store = store
        self.storage = storage

    async def get_video(self, video_id: uuid.UUID) -> VideoMetadata:
        video = await self.store.get_video_by_id(video_id)
        if video is None:
            raise NotFoundError("Video not found")
        return video

    async def list_videos(
        self,
        owner_id: uuid.UUID | None = None,
        page: int = 1,
        page_size: int = 20,
        category: str | None = None,
    ) -> tuple[list[VideoMetadata], int]:
        videos = await self.store.get_all_videos(owner_id)
        if category:
            videos = [v for v in videos if v.category.lower() == category.lower()]
        start = (page - 1) * page_size
        return videos[start:start + page_size], len(videos)

    async def update_video(self, video_id: uuid.UUID, changes: dict) -> VideoMetadata:
        changes = {k: v.strip() for k, v in changes.items() if k in EDITABLE_FIELDS and v is not None}
        for required in ("title", "category"):
            if required in changes and not changes[required]:
                raise ValidationError(f"'{required}' cannot be empty")
        if not changes:
            return await self.get_video(video_id)

        video = await self.store.update_video(video_id, changes)
        if video is None:
            raise NotFoundError("Video not found")
        logger.info("[Video %s] Updated %s", video_id, ", ".join(sorted(changes)))
        return video

    async def delete_video(self, video_id: uuid.UUID) -> VideoMetadata:
        """Remove the metadata row, then the files.

        A file that cannot be removed once the row is gone only produces a
        warning, so operators can reconcile orphans later.
        """
        video = await self.get_video(video_id)
        if not await self.store.delete_video(video_id):
            raise NotFoundError("Video not found")

        if not self.storage.exists(video.encrypted_file_path):
            logger.warning(
                "[Video %s] Encrypted file %s was already missing", video_id, video.encrypted_file_path
            )
        try:
            self.storage.delete(video.encrypted_file_path)
            self.storage.delete_tree(self.storage.video_dir_key(video_id))
        except OSError as e:
            logger.warning("[Video %s] Failed to remove files after deleting metadata: %s", video_id, e)

        logger.info("[Video %s] Deleted '%s'", video_id, video.title)
        return video
