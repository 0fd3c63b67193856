import aiofiles.os
import pytest

from streamvault.errors import (
    ClientDisconnectedError,
    CorruptFileError,
    RangeNotSatisfiableError,
    VideoIOError,
)
from streamvault.services.encryption_service import EncryptionService
from streamvault.utils.cipher import NONCE_SIZE

from conftest import CHUNK_SIZE, BrokenSink, ListSink, random_bytes


async def chunked(data: bytes, size: int):
    for i in range(0, len(data), size):
        yield data[i:i + size]


async def read_all(stream) -> bytes:
    return b"".join([chunk async for chunk in stream])


@pytest.mark.parametrize(
    "length",
    [0, 1, 15, 16, 17, CHUNK_SIZE - 1, CHUNK_SIZE, CHUNK_SIZE + 1, 3 * CHUNK_SIZE + 5],
)
async def test_round_trip(encryption, cipher, tmp_path, length):
    data = random_bytes(length)
    dest = tmp_path / "videos" / "a" / "video.enc"

    written = await encryption.write_encrypted_stream(chunked(data, 1000), dest)

    assert written == length
    raw = dest.read_bytes()
    assert len(raw) == length + NONCE_SIZE
    assert cipher.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:]) == data

    stream = await encryption.open_decrypted(dest)
    assert stream.plaintext_size == length
    assert await read_all(stream) == data


async def test_stream_chunks_are_bounded(encryption, tmp_path):
    data = random_bytes(5 * CHUNK_SIZE + 123)
    dest = tmp_path / "video.enc"
    await encryption.write_encrypted_stream(chunked(data, 50_000), dest)

    sink = ListSink()
    assert await encryption.stream_decrypted(dest, sink) == len(data)
    assert sink.data == data
    assert all(len(c) <= CHUNK_SIZE for c in sink.chunks)
    assert len(sink.chunks) == 6


async def test_write_from_file(encryption, tmp_path):
    source = tmp_path / "clip.mp4"
    source.write_bytes(random_bytes(20_000))
    dest = tmp_path / "out" / "video.enc"

    assert await encryption.write_encrypted(source, dest) == 20_000
    sink = ListSink()
    await encryption.stream_decrypted(dest, sink)
    assert sink.data == source.read_bytes()


async def test_same_plaintext_gets_fresh_nonce(encryption, tmp_path):
    data = random_bytes(1000)
    first, second = tmp_path / "one.enc", tmp_path / "two.enc"
    await encryption.write_encrypted_stream(chunked(data, 100), first)
    await encryption.write_encrypted_stream(chunked(data, 100), second)

    a, b = first.read_bytes(), second.read_bytes()
    assert a[:NONCE_SIZE] != b[:NONCE_SIZE]
    assert a[NONCE_SIZE:] != b[NONCE_SIZE:]


@pytest.mark.parametrize("size", [0, 1, NONCE_SIZE - 1])
async def test_file_shorter_than_nonce_is_corrupt(encryption, tmp_path, size):
    path = tmp_path / "broken.enc"
    path.write_bytes(b"\x00" * size)
    with pytest.raises(CorruptFileError):
        await encryption.open_decrypted(path)
    with pytest.raises(CorruptFileError):
        await encryption.stream_decrypted(path, ListSink())


async def test_nonce_only_file_is_empty_video(encryption, tmp_path):
    path = tmp_path / "empty.enc"
    path.write_bytes(b"\x01" * NONCE_SIZE)
    sink = ListSink()
    assert await encryption.stream_decrypted(path, sink) == 0
    assert sink.chunks == []


async def test_missing_file_is_io_error(encryption, tmp_path):
    with pytest.raises(VideoIOError):
        await encryption.open_decrypted(tmp_path / "nope.enc")


async def test_failed_source_leaves_nothing_behind(encryption, tmp_path):
    async def failing():
        yield b"a" * 100
        raise OSError("disk unplugged")

    dest = tmp_path / "vid" / "video.enc"
    with pytest.raises(VideoIOError):
        await encryption.write_encrypted_stream(failing(), dest)
    assert not dest.exists()
    assert list(dest.parent.iterdir()) == []


async def test_unexpected_error_propagates_and_cleans_up(encryption, tmp_path):
    async def failing():
        yield b"a" * 100
        raise RuntimeError("boom")

    dest = tmp_path / "video.enc"
    with pytest.raises(RuntimeError):
        await encryption.write_encrypted_stream(failing(), dest)
    assert list(tmp_path.iterdir()) == []


async def test_failed_rename_leaves_nothing_behind(encryption, tmp_path, monkeypatch):
    async def broken_replace(*args, **kwargs):
        raise OSError("read-only filesystem")

    monkeypatch.setattr(aiofiles.os, "replace", broken_replace)
    dest = tmp_path / "video.enc"
    with pytest.raises(VideoIOError):
        await encryption.write_encrypted_stream(chunked(b"data" * 100, 64), dest)
    assert list(tmp_path.iterdir()) == []


async def test_unwritable_directory(encryption, tmp_path):
    blocker = tmp_path / "file"
    blocker.write_bytes(b"")
    with pytest.raises(VideoIOError):
        await encryption.write_encrypted_stream(chunked(b"x", 1), blocker / "video.enc")


async def test_sink_failure_is_client_disconnect(encryption, tmp_path):
    data = random_bytes(10 * CHUNK_SIZE)
    dest = tmp_path / "video.enc"
    await encryption.write_encrypted_stream(chunked(data, CHUNK_SIZE), dest)

    sink = BrokenSink(limit=2)
    with pytest.raises(ClientDisconnectedError):
        await encryption.stream_decrypted(dest, sink)
    assert sink.data == data[:2 * CHUNK_SIZE]


@pytest.mark.parametrize("offset,length", [(0, 10), (5000, 100), (4095, 2), (17, 3 * CHUNK_SIZE)])
async def test_open_range(encryption, tmp_path, offset, length):
    data = random_bytes(4 * CHUNK_SIZE)
    dest = tmp_path / "video.enc"
    await encryption.write_encrypted_stream(chunked(data, 999), dest)

    stream = await encryption.open_decrypted(dest, offset=offset, length=length)
    assert stream.length == length
    assert await read_all(stream) == data[offset:offset + length]


async def test_range_length_is_clamped(encryption, tmp_path):
    data = random_bytes(100)
    dest = tmp_path / "video.enc"
    await encryption.write_encrypted_stream(chunked(data, 100), dest)

    stream = await encryption.open_decrypted(dest, offset=90, length=50)
    assert await read_all(stream) == data[90:]


async def test_early_close_releases_stream(encryption, tmp_path):
    dest = tmp_path / "video.enc"
    await encryption.write_encrypted_stream(chunked(random_bytes(5 * CHUNK_SIZE), CHUNK_SIZE), dest)

    async with await encryption.open_decrypted(dest) as stream:
        async for _ in stream:
            break
    assert stream.bytes_read == CHUNK_SIZE
    await stream.aclose()


def test_chunk_size_must_be_positive(cipher):
    with pytest.raises(ValueError):
        EncryptionService(cipher, chunk_size=0)


@pytest.mark.parametrize("offset", [-1, 101, 5000])
async def test_offset_outside_file(encryption, tmp_path, offset):
    dest = tmp_path / "video.enc"
    await encryption.write_encrypted_stream(chunked(random_bytes(100), 100), dest)

    with pytest.raises(RangeNotSatisfiableError):
        await encryption.open_decrypted(dest, offset=offset)


async def test_stream_reports_closed(encryption, tmp_path):
    dest = tmp_path / "video.enc"
    await encryption.write_encrypted_stream(chunked(random_bytes(3 * CHUNK_SIZE), CHUNK_SIZE), dest)

    stream = await encryption.open_decrypted(dest)
    assert not stream.closed
    await stream.aclose()
    assert stream.closed
