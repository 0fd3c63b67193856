"""Builds every service once at startup from the validated settings."""

from dataclasses import dataclass

from streamvault.config import Settings, validate_settings
from streamvault.entities import VideoMetadata
from streamvault.services.auth_service import AuthService
from streamvault.services.encryption_service import EncryptionService
from streamvault.services.playback_service import PlaybackService
from streamvault.services.transcoder import Transcoder, get_transcoder
from streamvault.services.upload_service import UploadService
from streamvault.services.user_service import UserService
from streamvault.services.video_service import VideoService
from streamvault.stores.base import DataStore
from streamvault.stores.sql import SqlDataStore
from streamvault.utils.cipher import AESCTRCipher
from streamvault.utils.security import TokenManager
from streamvault.utils.storage import LocalStorage
from streamvault.workers.background import BackgroundTaskRunner
from streamvault.workers.thumbnail_worker import generate_thumbnail


@dataclass
class AppServices:
    settings: Settings
    store: DataStore
    storage: LocalStorage
    runner: BackgroundTaskRunner
    tokens: TokenManager
    encryption: EncryptionService
    uploads: UploadService
    playback: PlaybackService
    videos: VideoService
    auth: AuthService
    users: UserService

    async def close(self) -> None:
        await self.runner.shutdown()
        await self.store.close()


def build_services(
    settings: Settings,
    store: DataStore | None = None,
    transcoder: Transcoder | None = None,
) -> AppServices:
    """Raises ConfigurationError before anything is created if settings are invalid."""
    key = validate_settings(settings)

    if store is None:
        store = SqlDataStore.from_url(settings.DATABASE_URL)
    storage = LocalStorage(settings.STORAGE_LOCAL_PATH)
    runner = BackgroundTaskRunner(max_workers=settings.MAX_CONCURRENT_JOBS)
    tokens = TokenManager(
        settings.JWT_SECRET_KEY,
        settings.JWT_ALGORITHM,
        settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
    )
    encryption = EncryptionService(AESCTRCipher(key), chunk_size=settings.STREAM_CHUNK_SIZE)
    if transcoder is None:
        transcoder = get_transcoder(
            settings.TRANSCODER, settings.FFMPEG_BINARY, settings.TRANSCODE_TIMEOUT_SECONDS
        )

    on_uploaded = None
    if settings.GENERATE_THUMBNAILS:
        def on_uploaded(video: VideoMetadata):
            return generate_thumbnail(video.id, store, storage, runner, settings.FFMPEG_BINARY)

    return AppServices(
        settings=settings,
        store=store,
        storage=storage,
        runner=runner,
        tokens=tokens,
        encryption=encryption,
        uploads=UploadService(
            store,
            storage,
            encryption,
            transcoder,
            runner,
            max_upload_bytes=settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024,
            on_uploaded=on_uploaded,
        ),
        playback=PlaybackService(store, storage, encryption),
        videos=VideoService(store, storage),
        auth=AuthService(
            store,
            tokens,
            runner,
            require_verification=settings.REQUIRE_EMAIL_VERIFICATION,
            public_base_url=settings.PUBLIC_BASE_URL,
        ),
        users=UserService(store),
    )
