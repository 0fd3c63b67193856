"""In-memory DataStore, for tests and local experiments."""

import asyncio
import uuid
from dataclasses import replace
from datetime import datetime, timezone

from streamvault.entities import User, VideoMetadata
from streamvault.errors import ConflictError
from streamvault.stores.base import DataStore, check_video_changes


class InMemoryDataStore(DataStore):
    def __init__(self):
        self._videos: dict[uuid.UUID, VideoMetadata] = {}
        self._users: dict[uuid.UUID, User] = {}
        self._lock = asyncio.Lock()

    async def create_video(self, video: VideoMetadata) -> VideoMetadata:
        async with self._lock:
            if video.id in self._videos:
                raise ConflictError(f"Video {video.id} already exists")
            stored = replace(video, created_at=datetime.now(timezone.utc))
            self._videos[stored.id] = stored
            return replace(stored)

    async def get_video_by_id(self, video_id: uuid.UUID) -> VideoMetadata | None:
        video = self._videos.get(video_id)
        return replace(video) if video else None

    async def get_all_videos(self, owner_id: uuid.UUID | None = None) -> list[VideoMetadata]:
        videos = [
            replace(v) for v in self._videos.values()
            if owner_id is None or v.owner_id == owner_id
        ]
        return sorted(videos, key=lambda v: v.created_at, reverse=True)

    async def update_video(self, video_id: uuid.UUID, changes: dict) -> VideoMetadata | None:
        check_video_changes(changes)
        async with self._lock:
            video = self._videos.get(video_id)
            if video is None:
                return None
            updated = replace(video, **changes)
            self._videos[video_id] = updated
            return replace(updated)

    async def delete_video(self, video_id: uuid.UUID) -> bool:
        async with self._lock:
            return self._videos.pop(video_id, None) is not None

    async def create_user(self, user: User) -> User:
        async with self._lock:
            email = user.email.lower()
            if any(u.email.lower() == email for u in self._users.values()):
                raise ConflictError("Email already registered")
            stored = replace(user, id=uuid.uuid4(), created_at=datetime.now(timezone.utc))
            self._users[stored.id] = stored
            return replace(stored)

    async def get_user_by_email(self, email: str) -> User | None:
        email = email.lower()
        for user in self._users.values():
            if user.email.lower() == email:
                return replace(user)
        return None

    async def get_user_by_id(self, user_id: uuid.UUID) -> User | None:
        user = self._users.get(user_id)
        return replace(user) if user else None

    async def get_all_users(self) -> list[User]:
        return sorted((replace(u) for u in self._users.values()), key=lambda u: u.created_at)

    async def update_user_role(self, user_id: uuid.UUID, role: str) -> bool:
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return False
            user.role = role
            return True

    async def delete_user(self, user_id: uuid.UUID) -> bool:
        async with self._lock:
            return self._users.pop(user_id, None) is not None

    async def verify_user(self, token: str) -> User | None:
        async with self._lock:
            for user in self._users.values():
                if user.verification_token and user.verification_token == token:
                    user.is_verified = True
                    user.verification_token = None
                    return replace(user)
        return None

    async def set_user_verification_status(self, user_id: uuid.UUID, verified: bool) -> bool:
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return False
            user.is_verified = verified
            return True
