"""Relational DataStore on SQLAlchemy's async ORM (PostgreSQL in production)."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from streamvault.db.base import Base
from streamvault.db.session import create_engine, create_session_factory
from streamvault.entities import User, VideoMetadata
from streamvault.errors import ConflictError, StorageError
from streamvault.models import UserRow, VideoRow
from streamvault.stores.base import DataStore, check_video_changes

logger = logging.getLogger(__name__)


def _video_from_row(row: VideoRow) -> VideoMetadata:
    return VideoMetadata(
        id=row.id,
        title=row.title,
        description=row.description,
        category=row.category,
        owner_id=row.owner_id,
        encrypted_file_path=row.encrypted_file_path,
        file_size=row.file_size,
        playback_manifest_path=row.playback_manifest_path,
        thumbnail_path=row.thumbnail_path,
        created_at=row.created_at,
    )


def _user_from_row(row: UserRow) -> User:
    return User(
        id=row.id,
        email=row.email,
        username=row.username,
        password_hash=row.password_hash,
        role=row.role,
        is_verified=row.is_verified,
        verification_token=row.verification_token,
        created_at=row.created_at,
    )


class SqlDataStore(DataStore):
    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory = create_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "SqlDataStore":
        return cls(create_engine(database_url))

    async def init(self) -> None:
        # Create all tables (use migrations in production)
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StorageError("Could not initialise database schema") from e

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Session that commits on success and maps driver errors to StorageError."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConflictError("Record conflicts with an existing one") from e
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Database error: %s", e)
                raise StorageError("Database operation failed") from e

    # ── Videos ───────────────────────────────────────────

    async def create_video(self, video: VideoMetadata) -> VideoMetadata:
        async with self._session() as session:
            row = VideoRow(
                id=video.id,
                owner_id=video.owner_id,
                title=video.title,
                description=video.description,
                category=video.category,
                encrypted_file_path=video.encrypted_file_path,
                file_size=video.file_size,
                playback_manifest_path=video.playback_manifest_path,
                thumbnail_path=video.thumbnail_path,
            )
            session.add(row)
            await session.flush()
            return _video_from_row(row)

    async def get_video_by_id(self, video_id: uuid.UUID) -> VideoMetadata | None:
        async with self._session() as session:
            row = await session.get(VideoRow, video_id)
            return _video_from_row(row) if row else None

    async def get_all_videos(self, owner_id: uuid.UUID | None = None) -> list[VideoMetadata]:
        query = select(VideoRow).order_by(VideoRow.created_at.desc())
        if owner_id is not None:
            query = query.where(VideoRow.owner_id == owner_id)
        async with self._session() as session:
            result = await session.execute(query)
            return [_video_from_row(r) for r in result.scalars()]

    async def update_video(self, video_id: uuid.UUID, changes: dict) -> VideoMetadata | None:
        check_video_changes(changes)
        async with self._session() as session:
            row = await session.get(VideoRow, video_id)
            if row is None:
                return None
            for name, value in changes.items():
                setattr(row, name, value)
            await session.flush()
            return _video_from_row(row)

    async def delete_video(self, video_id: uuid.UUID) -> bool:
        async with self._session() as session:
            result = await session.execute(delete(VideoRow).where(VideoRow.id == video_id))
            return result.rowcount > 0

    # ── Users ────────────────────────────────────────────

    async def create_user(self, user: User) -> User:
        try:
            async with self._session() as session:
                row = UserRow(
                    email=user.email,
                    username=user.username,
                    password_hash=user.password_hash,
                    role=user.role,
                    is_verified=user.is_verified,
                    verification_token=user.verification_token,
                )
                session.add(row)
                await session.flush()
                return _user_from_row(row)
        except ConflictError as e:
            raise ConflictError("Email already registered") from e

    async def get_user_by_email(self, email: str) -> User | None:
        async with self._session() as session:
            result = await session.execute(select(UserRow).where(UserRow.email == email.lower()))
            row = result.scalar_one_or_none()
            return _user_from_row(row) if row else None

    async def get_user_by_id(self, user_id: uuid.UUID) -> User | None:
        async with self._session() as session:
            row = await session.get(UserRow, user_id)
            return _user_from_row(row) if row else None

    async def get_all_users(self) -> list[User]:
        async with self._session() as session:
            result = await session.execute(select(UserRow).order_by(UserRow.created_at))
            return [_user_from_row(r) for r in result.scalars()]

    async def update_user_role(self, user_id: uuid.UUID, role: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                update(UserRow).where(UserRow.id == user_id).values(role=role)
            )
            return result.rowcount > 0

    async def delete_user(self, user_id: uuid.UUID) -> bool:
        async with self._session() as session:
            result = await session.execute(delete(UserRow).where(UserRow.id == user_id))
            return result.rowcount > 0

    async def verify_user(self, token: str) -> User | None:
        async with self._session() as session:
            result = await session.execute(
                select(UserRow).where(UserRow.verification_token == token)
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            row.is_verified = True
            row.verification_token = None
            await session.flush()
            return _user_from_row(row)

    async def set_user_verification_status(self, user_id: uuid.UUID, verified: bool) -> bool:
        async with self._session() as session:
            result = await session.execute(
                update(UserRow).where(UserRow.id == user_id).values(is_verified=verified)
            )
            return result.rowcount > 0
