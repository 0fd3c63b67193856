import logging
import uuid

import pytest

from streamvault.entities import VideoMetadata
from streamvault.errors import CorruptFileError, CorruptStateError, NotFoundError, RangeNotSatisfiableError
from streamvault.services.playback_service import PlaybackService, parse_range_header
from streamvault.services.transcoder import SimulatedTranscoder

from conftest import CHUNK_SIZE, BrokenSink, ListSink, random_bytes


class UntouchableStorage:
    def __getattr__(self, name):
        raise AssertionError(f"storage.{name} must not be used")


@pytest.fixture
def playback(store, storage, encryption):
    return PlaybackService(store, storage, encryption)


async def read_all(stream) -> bytes:
    return b"".join([chunk async for chunk in stream])


async def test_unknown_video_touches_no_files(store, encryption):
    playback = PlaybackService(store, UntouchableStorage(), encryption)
    with pytest.raises(NotFoundError):
        await playback.stream_video(uuid.uuid4(), ListSink())
    with pytest.raises(NotFoundError):
        await playback.open_stream(uuid.uuid4())


async def test_stream_whole_video(playback, make_video):
    data = random_bytes(3 * CHUNK_SIZE + 7)
    video = await make_video(data)

    sink = ListSink()
    assert await playback.stream_video(video.id, sink) == len(data)
    assert sink.data == data


async def test_open_stream_without_range(playback, make_video):
    data = random_bytes(10_000)
    video = await make_video(data)

    playback_stream = await playback.open_stream(video.id)
    assert not playback_stream.partial
    assert playback_stream.length == playback_stream.total_size == len(data)
    assert await read_all(playback_stream.stream) == data


async def test_open_stream_with_range(playback, make_video):
    data = random_bytes(10_000)
    video = await make_video(data)

    playback_stream = await playback.open_stream(video.id, "bytes=1000-1999")
    assert playback_stream.partial
    assert playback_stream.content_range == "bytes 1000-1999/10000"
    assert await read_all(playback_stream.stream) == data[1000:2000]


async def test_malformed_range_serves_everything(playback, make_video):
    data = random_bytes(500)
    video = await make_video(data)

    playback_stream = await playback.open_stream(video.id, "bytes=oops")
    assert not playback_stream.partial
    assert await read_all(playback_stream.stream) == data


async def test_unsatisfiable_range(playback, make_video):
    video = await make_video(random_bytes(500))
    with pytest.raises(RangeNotSatisfiableError):
        await playback.open_stream(video.id, "bytes=500-")


async def test_missing_file_is_corrupt_state(playback, store, storage, make_video, caplog):
    video = await make_video(b"payload")
    storage.delete(video.encrypted_file_path)

    with pytest.raises(CorruptStateError):
        await playback.stream_video(video.id, ListSink())
    with pytest.raises(CorruptStateError):
        await playback.open_stream(video.id)
    assert "missing file" in caplog.text


async def test_truncated_file_is_corrupt(playback, store, storage):
    video_id = uuid.uuid4()
    key = storage.encrypted_key(video_id)
    path = storage.resolve(key)
    path.parent.mkdir(parents=True)
    path.write_bytes(b"tiny")
    await store.create_video(
        VideoMetadata(id=video_id, title="t", category="c", owner_id=uuid.uuid4(), encrypted_file_path=key)
    )

    with pytest.raises(CorruptFileError):
        await playback.stream_video(video_id, ListSink())


async def test_client_disconnect_is_not_an_error(playback, make_video, caplog):
    video = await make_video(random_bytes(4 * CHUNK_SIZE))

    with caplog.at_level(logging.INFO):
        assert await playback.stream_video(video.id, BrokenSink(limit=1)) is None
    assert "disconnected" in caplog.text


async def test_hls_files(playback, store, storage, make_video):
    video = await make_video(b"frames")
    hls_dir = storage.resolve(storage.hls_key(video.id))
    playlist = SimulatedTranscoder().transcode(storage.temp_upload_path(video.id), hls_dir)
    await store.update_video(video.id, {"playback_manifest_path": storage.key_for(playlist)})

    assert (await playback.hls_file(video.id, "playlist.m3u8")).read_text().startswith("#EXTM3U")
    assert (await playback.hls_file(video.id, "segment1.ts")).read_bytes() == b"Segment 1 data"
    for name in ("segment9.ts", "..", "../video.enc"):
        with pytest.raises(NotFoundError):
            await playback.hls_file(video.id, name)


async def test_hls_without_rendition(playback, make_video):
    video = await make_video(b"frames")
    with pytest.raises(NotFoundError):
        await playback.hls_file(video.id, "playlist.m3u8")


@pytest.mark.parametrize(
    "header,expected",
    [
        ("bytes=0-99", (0, 99)),
        ("bytes=900-", (900, 999)),
        ("bytes=-100", (900, 999)),
        ("bytes=-5000", (0, 999)),
        ("bytes=990-2000", (990, 999)),
        ("BYTES=1-1", (1, 1)),
        ("items=0-1", None),
        ("bytes=0-1,5-6", None),
        ("bytes=abc", None),
        ("bytes=5-1", None),
        ("bytes=", None),
    ],
)
def test_parse_range_header(header, expected):
    assert parse_range_header(header, 1000) == expected


@pytest.mark.parametrize("header", ["bytes=1000-", "bytes=5000-6000", "bytes=-0"])
def test_unsatisfiable_range_header(header):
    with pytest.raises(RangeNotSatisfiableError):
        parse_range_header(header, 1000)


async def test_file_vanishing_after_lookup_is_corrupt_state(playback, storage, make_video, monkeypatch):
    video = await make_video(b"payload")
    path = storage.retrieve(video.encrypted_file_path)
    path.unlink()
    monkeypatch.setattr(storage, "retrieve", lambda key: path)

    with pytest.raises(CorruptStateError):
        await playback.open_stream(video.id)
    with pytest.raises(CorruptStateError):
        await playback.stream_video(video.id, ListSink())


async def test_file_vanishing_before_open_is_corrupt_state(playback, encryption, make_video, monkeypatch):
    video = await make_video(b"payload")
    open_decrypted = encryption.open_decrypted

    async def open_after_delete(path, **kwargs):
        path.unlink()
        return await open_decrypted(path, **kwargs)

    monkeypatch.setattr(encryption, "open_decrypted", open_after_delete)
    with pytest.raises(CorruptStateError):
        await playback.open_stream(video.id)
