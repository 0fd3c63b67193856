"""Plain records exchanged between services and DataStore implementations."""

import uuid
from dataclasses import dataclass
from datetime import datetime

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


@dataclass
class VideoMetadata:
    id: uuid.UUID
    title: str
    category: str
    owner_id: uuid.UUID
    encrypted_file_path: str
    description: str = ""
    file_size: int = 0
    playback_manifest_path: str | None = None
    thumbnail_path: str | None = None
    created_at: datetime | None = None


@dataclass
class User:
    email: str
    username: str
    password_hash: str
    role: str = ROLE_USER
    is_verified: bool = False
    verification_token: str | None = None
    id: uuid.UUID | None = None
    created_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
