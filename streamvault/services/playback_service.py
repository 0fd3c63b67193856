"""Playback service — resolve a video and stream its decrypted bytes."""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from streamvault.entities import VideoMetadata
from streamvault.errors import (
    ClientDisconnectedError,
    CorruptFileError,
    CorruptStateError,
    NotFoundError,
    RangeNotSatisfiableError,
    VideoIOError,
)
from streamvault.services.encryption_service import DecryptedStream, EncryptionService, Sink
from streamvault.stores.base import DataStore
from streamvault.utils.cipher import NONCE_SIZE
from streamvault.utils.storage import LocalStorage

logger = logging.getLogger(__name__)


def parse_range_header(header: str, size: int) -> tuple[int, int] | None:
    """Parse a single `bytes=` range into an inclusive (start, end) pair.

    Returns None when the header should be ignored (malformed, multiple ranges,
    other units). Raises RangeNotSatisfiableError when it cannot be served.
    """
    unit, _, ranges = header.strip().partition("=")
    if unit.strip().lower() != "bytes" or "," in ranges:
        return None
    first, sep, last = ranges.strip().partition("-")
    if not sep:
        return None
    try:
        if first:
            start = int(first)
            end = int(last) if last else size - 1
            if start < 0 or end < start:
                return None
        else:
            suffix = int(last)
            if suffix <= 0:
                raise RangeNotSatisfiableError("Empty suffix range", details={"size": size})
            start = max(size - suffix, 0)
            end = size - 1
    except ValueError:
        return None

    if start >= size:
        raise RangeNotSatisfiableError("Range starts beyond end of video", details={"size": size})
    return start, min(end, size - 1)


@dataclass
class PlaybackStream:
    video: VideoMetadata
    stream: DecryptedStream
    total_size: int
    start: int
    length: int
    partial: bool = False

    @property
    def end(self) -> int:
        return self.start + self.length - 1

    @property
    def content_range(self) -> str:
        return f"bytes {self.start}-{self.end}/{self.total_size}"


class PlaybackService:
    def __init__(self, store: DataStore, storage: LocalStorage, encryption: EncryptionService):
        self.store = store
        self.storage = storage
        self.encryption = encryption

    async def get_video(self, video_id: uuid.UUID) -> VideoMetadata:
        video = await self.store.get_video_by_id(video_id)
        if video is None:
            raise NotFoundError("Video not found")
        return video

    def _missing_file(self, video: VideoMetadata) -> CorruptStateError:
        logger.error(
            "[Video %s] Metadata points at missing file %s", video.id, video.encrypted_file_path
        )
        return CorruptStateError(f"Encrypted file for video {video.id} is missing")

    def _encrypted_path(self, video: VideoMetadata) -> Path:
        try:
            return self.storage.retrieve(video.encrypted_file_path)
        except FileNotFoundError:
            raise self._missing_file(video)

    async def _open(self, video: VideoMetadata, path: Path, offset: int = 0, length: int | None = None):
        try:
            return await self.encryption.open_decrypted(path, offset=offset, length=length)
        except CorruptFileError as e:
            logger.error("[Video %s] Corrupt encrypted file: %s", video.id, e.message)
            raise
        except VideoIOError as e:
            # The file can vanish between lookup and open
            if isinstance(e.__cause__, FileNotFoundError):
                raise self._missing_file(video) from e
            raise

    async def open_stream(self, video_id: uuid.UUID, range_header: str | None = None) -> PlaybackStream:
        """Open the decrypted stream for a video, optionally for one byte range.

        The caller owns the returned stream and must exhaust or close it.
        """
        video = await self.get_video(video_id)
        path = self._encrypted_path(video)
        try:
            size = path.stat().st_size - NONCE_SIZE
        except FileNotFoundError:
            raise self._missing_file(video)

        byte_range = parse_range_header(range_header, size) if range_header and size >= 0 else None
        if byte_range is None:
            stream = await self._open(video, path)
            return PlaybackStream(video, stream, stream.plaintext_size, 0, stream.length)

        start, end = byte_range
        stream = await self._open(video, path, offset=start, length=end - start + 1)
        return PlaybackStream(video, stream, stream.plaintext_size, start, stream.length, partial=True)

    async def stream_video(self, video_id: uuid.UUID, sink: Sink) -> int | None:
        """Decrypt a whole video into `sink`.

        Returns the bytes written, or None when the client went away first.
        """
        video = await self.get_video(video_id)
        path = self._encrypted_path(video)
        try:
            return await self.encryption.stream_decrypted(path, sink)
        except ClientDisconnectedError:
            logger.info("[Video %s] Client disconnected during playback", video_id)
            return None
        except VideoIOError as e:
            if isinstance(e.__cause__, FileNotFoundError):
                raise self._missing_file(video) from e
            raise
        except CorruptFileError as e:
            logger.error("[Video %s] Corrupt encrypted file: %s", video.id, e.message)
            raise

    async def hls_file(self, video_id: uuid.UUID, filename: str) -> Path:
        """Path of a playlist or segment from the video's HLS rendition."""
        video = await self.get_video(video_id)
        if not video.playback_manifest_path:
            raise NotFoundError("Video has no HLS rendition")
        if PurePosixPath(filename).name != filename or filename in (".", ".."):
            raise NotFoundError("HLS file not found")
        hls_dir = PurePosixPath(video.playback_manifest_path).parent
        try:
            return self.storage.retrieve(f"{hls_dir}/{filename}")
        except (FileNotFoundError, ValueError):
            raise NotFoundError("HLS file not found")
