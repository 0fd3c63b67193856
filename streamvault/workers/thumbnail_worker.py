"""Post-upload thumbnail extraction, run detached from the upload request."""

import logging
import subprocess
import uuid
from pathlib import Path

from streamvault.stores.base import DataStore
from streamvault.utils.storage import LocalStorage
from streamvault.workers.background import BackgroundTaskRunner

logger = logging.getLogger(__name__)

THUMBNAIL_NAME = "thumb.jpg"


def extract_frame(ffmpeg_binary: str, source: Path, destination: Path) -> None:
    """Grab the frame at 2 seconds, scaled to 640px wide. Raises on failure."""
    subprocess.run(
        [
            ffmpeg_binary, "-y", "-i", str(source),
            "-ss", "2", "-vframes", "1",
            "-vf", "scale=640:-1",
            "-q:v", "3", str(destination),
        ],
        capture_output=True, timeout=60, check=True,
    )
    if not destination.exists():
        raise RuntimeError(f"ffmpeg produced no thumbnail for {source}")


async def generate_thumbnail(
    video_id: uuid.UUID,
    store: DataStore,
    storage: LocalStorage,
    runner: BackgroundTaskRunner,
    ffmpeg_binary: str = "ffmpeg",
) -> str | None:
    """Extract a thumbnail from the HLS rendition and record it on the video.

    The encrypted original is never decrypted here; videos without a playlist
    get no thumbnail.
    """
    video = await store.get_video_by_id(video_id)
    if video is None:
        logger.info("[Video %s] Deleted before thumbnail generation", video_id)
        return None
    if not video.playback_manifest_path:
        logger.info("[Video %s] No HLS playlist, skipping thumbnail", video_id)
        return None

    logger.info("[Video %s] Generating thumbnail...", video_id)
    playlist = storage.retrieve(video.playback_manifest_path)
    thumb_key = f"{storage.video_dir_key(video_id)}/{THUMBNAIL_NAME}"
    await runner.run_blocking(extract_frame, ffmpeg_binary, playlist, storage.resolve(thumb_key))

    await store.update_video(video_id, {"thumbnail_path": thumb_key})
    logger.info("[Video %s] Thumbnail stored at %s", video_id, thumb_key)
    return thumb_key
