"""Upload service — receive a video, encrypt it at rest, transcode, record metadata."""

import logging
import uuid
from pathlib import Path
from typing import Awaitable, Callable, Protocol

import aiofiles
import aiofiles.os

from streamvault.entities import VideoMetadata
from streamvault.errors import StorageError, TranscodeError, ValidationError, VideoIOError
from streamvault.services.encryption_service import EncryptionService
from streamvault.services.transcoder import Transcoder
from streamvault.stores.base import DataStore
from streamvault.utils.storage import LocalStorage
from streamvault.workers.background import BackgroundTaskRunner

logger = logging.getLogger(__name__)

UPLOAD_READ_SIZE = 1024 * 1024  # 1MB


class UploadSource(Protocol):
    filename: str | None

    async def read(self, size: int = -1) -> bytes: ...


class UploadService:
    def __init__(
        self,
        store: DataStore,
        storage: LocalStorage,
        encryption: EncryptionService,
        transcoder: Transcoder,
        runner: BackgroundTaskRunner,
        max_upload_bytes: int,
        on_uploaded: Callable[[VideoMetadata], Awaitable[object]] | None = None,
    ):
        self.store = store
        self.storage = storage
        self.encryption = encryption
        self.transcoder = transcoder
        self.runner = runner
        self.max_upload_bytes = max_upload_bytes
        self.on_uploaded = on_uploaded

    async def upload_video(
        self,
        upload: UploadSource | None,
        title: str,
        category: str,
        description: str,
        owner_id: uuid.UUID,
    ) -> VideoMetadata:
        """Store an uploaded video encrypted at rest and return its persisted metadata.

        Steps run strictly in order: temp copy, encryption, transcoding
        (non-fatal), metadata insert. Every failure path removes the temp copy
        and any encrypted or transcoded output, so a failed upload leaves no
        files and no metadata row behind.
        """
        title = (title or "").strip()
        category = (category or "").strip()
        missing = [name for name, value in (("title", title), ("category", category)) if not value]
        if upload is None:
            missing.insert(0, "video")
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}", details={"missing": missing}
            )

        video_id = uuid.uuid4()
        temp_path = self.storage.temp_upload_path(video_id)
        encrypted_key = self.storage.encrypted_key(video_id)

        try:
            size = await self._save_temp(upload, temp_path)
            try:
                await self.encryption.write_encrypted(temp_path, self.storage.resolve(encrypted_key))
                manifest_key = await self._transcode(video_id, temp_path)
                video = await self._persist(
                    VideoMetadata(
                        id=video_id,
                        title=title,
                        description=(description or "").strip(),
                        category=category,
                        owner_id=owner_id,
                        encrypted_file_path=encrypted_key,
                        file_size=size,
                        playback_manifest_path=manifest_key,
                    )
                )
            except BaseException:
                self._discard_video_files(video_id)
                raise
        finally:
            self._remove_temp(temp_path)

        logger.info(
            "[Video %s] Uploaded '%s' (%d bytes) by %s, playlist=%s",
            video.id, video.title, video.file_size, owner_id, bool(video.playback_manifest_path),
        )
        if self.on_uploaded is not None:
            self.runner.submit(f"post-upload:{video.id}", self.on_uploaded(video))
        return video

    async def _save_temp(self, upload: UploadSource, temp_path: Path) -> int:
        size = 0
        try:
            await aiofiles.os.makedirs(temp_path.parent, exist_ok=True)
            async with aiofiles.open(temp_path, "wb") as out:
                while chunk := await upload.read(UPLOAD_READ_SIZE):
                    size += len(chunk)
                    if size > self.max_upload_bytes:
                        raise ValidationError(
                            f"File too large. Max is {self.max_upload_bytes // (1024 * 1024)} MB."
                        )
                    await out.write(chunk)
        except OSError as exc:
            raise VideoIOError("Failed to store uploaded file") from exc
        if size == 0:
            raise ValidationError("Uploaded file is empty")
        return size

    async def _transcode(self, video_id: uuid.UUID, source: Path) -> str | None:
        hls_key = self.storage.hls_key(video_id)
        try:
            playlist = await self.runner.run_blocking(
                self.transcoder.transcode, source, self.storage.resolve(hls_key)
            )
        except TranscodeError as e:
            logger.warning("[Video %s] Transcoding failed, direct streaming only: %s", video_id, e)
            self._cleanup(self.storage.delete_tree, hls_key)
            return None
        except Exception as e:
            logger.warning(
                "[Video %s] Transcoder crashed, direct streaming only: %s", video_id, e, exc_info=True
            )
            self._cleanup(self.storage.delete_tree, hls_key)
            return None
        return self.storage.key_for(playlist)

    async def _persist(self, video: VideoMetadata) -> VideoMetadata:
        try:
            return await self.store.create_video(video)
        except StorageError:
            logger.error("[Video %s] Failed to save metadata", video.id)
            raise
        except Exception as e:
            logger.error("[Video %s] Failed to save metadata: %s", video.id, e)
            raise StorageError("Failed to save video metadata") from e

    def _discard_video_files(self, video_id: uuid.UUID) -> None:
        self._cleanup(self.storage.delete_tree, self.storage.video_dir_key(video_id))

    def _remove_temp(self, temp_path: Path) -> None:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to remove temp upload %s: %s", temp_path, e)

    def _cleanup(self, action: Callable[[str], None], key: str) -> None:
        try:
            action(key)
        except OSError as e:
            logger.warning("Cleanup of %s failed: %s", key, e)
