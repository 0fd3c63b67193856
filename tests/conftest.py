import io
import os
import uuid

import pytest

from streamvault.config import Settings
from streamvault.entities import VideoMetadata
from streamvault.services.encryption_service import EncryptionService
from streamvault.stores.memory import InMemoryDataStore
from streamvault.utils.cipher import AESCTRCipher
from streamvault.utils.storage import LocalStorage
from streamvault.workers.background import BackgroundTaskRunner

TEST_KEY = "0123456789abcdef0123456789abcdef"
CHUNK_SIZE = 4096
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Adm1n-Passw0rd!"


class BytesUpload:
    """Minimal async upload source, like FastAPI's UploadFile."""

    def __init__(self, data: bytes, filename: str = "clip.mp4"):
        self.filename = filename
        self._buf = io.BytesIO(data)

    async def read(self, size: int = -1) -> bytes:
        return self._buf.read(size)


class ListSink:
    def __init__(self):
        self.chunks: list[bytes] = []

    async def write(self, data: bytes) -> None:
        self.chunks.append(data)

    @property
    def data(self) -> bytes:
        return b"".join(self.chunks)


class BrokenSink(ListSink):
    """Accepts `limit` writes, then behaves like a disconnected client."""

    def __init__(self, limit: int):
        super().__init__()
        self.limit = limit

    async def write(self, data: bytes) -> None:
        if len(self.chunks) >= self.limit:
            raise BrokenPipeError("client went away")
        await super().write(data)


@pytest.fixture
def key() -> bytes:
    return TEST_KEY.encode()


@pytest.fixture
def cipher(key) -> AESCTRCipher:
    return AESCTRCipher(key)


@pytest.fixture
def encryption(cipher) -> EncryptionService:
    return EncryptionService(cipher, chunk_size=CHUNK_SIZE)


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    storage = LocalStorage(tmp_path / "storage")
    storage.ensure_layout()
    return storage


@pytest.fixture
def store() -> InMemoryDataStore:
    return InMemoryDataStore()


@pytest.fixture
async def runner():
    runner = BackgroundTaskRunner(max_workers=1)
    yield runner
    await runner.shutdown()


@pytest.fixture
def app_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        ENCRYPTION_KEY=TEST_KEY,
        JWT_SECRET_KEY="test-secret",
        STORAGE_LOCAL_PATH=tmp_path / "storage",
        STREAM_CHUNK_SIZE=CHUNK_SIZE,
        TRANSCODER="simulated",
        GENERATE_THUMBNAILS=False,
        ADMIN_EMAIL=ADMIN_EMAIL,
        ADMIN_PASSWORD=ADMIN_PASSWORD,
    )


@pytest.fixture
def make_video(store, storage, encryption):
    """Encrypt `data` into storage and record metadata for it."""

    async def _make(data: bytes, title: str = "Clip", category: str = "Demo", owner_id=None):
        video_id = uuid.uuid4()
        key = storage.encrypted_key(video_id)
        await encryption.write_encrypted_stream(_once(data), storage.resolve(key))
        return await store.create_video(
            VideoMetadata(
                id=video_id,
                title=title,
                category=category,
                owner_id=owner_id or uuid.uuid4(),
                encrypted_file_path=key,
                file_size=len(data),
            )
        )

    return _make


async def _once(data: bytes):
    yield data


def random_bytes(n: int) -> bytes:
    return os.urandom(n)
