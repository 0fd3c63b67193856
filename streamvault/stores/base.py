"""DataStore contract for user and video metadata."""

import uuid
from abc import ABC, abstractmethod

from streamvault.entities import User, VideoMetadata

VIDEO_UPDATABLE_FIELDS = frozenset(
    {"title", "description", "category", "playback_manifest_path", "thumbnail_path"}
)


class DataStore(ABC):
    """Persistence for users and videos.

    Lookups return None when nothing matches; mutations on a missing row
    return None/False. Implementations raise StorageError on backend failure
    and ConflictError when a unique email is reused. The store sets
    `created_at` on create; the video id comes from the caller, user ids are
    assigned here.
    """

    async def init(self) -> None:
        pass

    async def close(self) -> None:
        pass

    # ── Videos ───────────────────────────────────────────

    @abstractmethod
    async def create_video(self, video: VideoMetadata) -> VideoMetadata: ...

    @abstractmethod
    async def get_video_by_id(self, video_id: uuid.UUID) -> VideoMetadata | None: ...

    @abstractmethod
    async def get_all_videos(self, owner_id: uuid.UUID | None = None) -> list[VideoMetadata]:
        """Newest first, optionally restricted to one owner."""

    @abstractmethod
    async def update_video(self, video_id: uuid.UUID, changes: dict) -> VideoMetadata | None: ...

    @abstractmethod
    async def delete_video(self, video_id: uuid.UUID) -> bool: ...

    # ── Users ────────────────────────────────────────────

    @abstractmethod
    async def create_user(self, user: User) -> User: ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> User | None: ...

    @abstractmethod
    async def get_user_by_id(self, user_id: uuid.UUID) -> User | None: ...

    @abstractmethod
    async def get_all_users(self) -> list[User]: ...

    @abstractmethod
    async def update_user_role(self, user_id: uuid.UUID, role: str) -> bool: ...

    @abstractmethod
    async def delete_user(self, user_id: uuid.UUID) -> bool: ...

    @abstractmethod
    async def verify_user(self, token: str) -> User | None:
        """Mark the user holding `token` as verified and clear the token."""

    @abstractmethod
    async def set_user_verification_status(self, user_id: uuid.UUID, verified: bool) -> bool: ...


def check_video_changes(changes: dict) -> dict:
    unknown = set(changes) - VIDEO_UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    return changes
