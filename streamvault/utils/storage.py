"""File storage abstraction — local filesystem implementation."""

import shutil
import uuid
from pathlib import Path

VIDEOS_DIR = "videos"
TEMP_DIR = "temp"
ENCRYPTED_FILENAME = "video.enc"
HLS_DIR = "hls"


class LocalStorage:
    """Stores files on the local filesystem under a base directory.

    Everything persisted in metadata is a storage key (a path relative to the
    base), never an absolute path.
    """

    def __init__(self, base: Path):
        self.base = Path(base)

    def ensure_layout(self) -> None:
        for subdir in (VIDEOS_DIR, TEMP_DIR):
            (self.base / subdir).mkdir(parents=True, exist_ok=True)

    def resolve(self, key: str) -> Path:
        base = self.base.resolve()
        path = (base / key).resolve()
        if path != base and base not in path.parents:
            raise ValueError(f"Storage key escapes base directory: {key}")
        return path

    def key_for(self, path: Path) -> str:
        return Path(path).resolve().relative_to(self.base.resolve()).as_posix()

    def retrieve(self, key: str) -> Path:
        path = self.resolve(key)
        if not path.is_file():
            raise FileNotFoundError(f"Storage key not found: {key}")
        return path

    def exists(self, key: str) -> bool:
        return self.resolve(key).exists()

    def delete(self, key: str) -> None:
        path = self.resolve(key)
        if path.exists():
            path.unlink()

    def delete_tree(self, key: str) -> None:
        path = self.resolve(key)
        if path.exists():
            shutil.rmtree(path)

    # ── Layout for video assets ──────────────────────────

    def video_dir_key(self, video_id: uuid.UUID) -> str:
        return f"{VIDEOS_DIR}/{video_id}"

    def encrypted_key(self, video_id: uuid.UUID) -> str:
        return f"{self.video_dir_key(video_id)}/{ENCRYPTED_FILENAME}"

    def hls_key(self, video_id: uuid.UUID) -> str:
        return f"{self.video_dir_key(video_id)}/{HLS_DIR}"

    def temp_upload_path(self, video_id: uuid.UUID) -> Path:
        return self.base / TEMP_DIR / f"{video_id}.upload"
