"""
Encryption service — write nonce-prefixed encrypted files and stream them
back decrypted, one bounded chunk at a time.

On-disk format:
  [16-byte nonce][ciphertext, same length as the plaintext]
"""

import asyncio
import logging
import os
import uuid
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, Protocol

import aiofiles
import aiofiles.os
from cryptography.hazmat.primitives.ciphers import CipherContext

from streamvault.errors import (
    ClientDisconnectedError,
    CorruptFileError,
    RangeNotSatisfiableError,
    VideoIOError,
)
from streamvault.utils.cipher import NONCE_SIZE, AESCTRCipher, generate_nonce

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


class Sink(Protocol):
    async def write(self, data: bytes) -> object: ...


class DecryptedStream:
    """Async iterator over the decrypted bytes of one encrypted file.

    Holds an open file handle and a single keystream context for the whole
    read, so the CTR counter carries across chunk boundaries. Use as an async
    context manager, or exhaust it; either way the file gets closed.
    """

    def __init__(
        self,
        handle,
        decryptor: CipherContext,
        source_path: Path,
        plaintext_size: int,
        chunk_size: int,
        offset: int = 0,
        length: int | None = None,
    ):
        self._handle = handle
        self._decryptor = decryptor
        self.source_path = source_path
        self.plaintext_size = plaintext_size
        self.offset = offset
        self.length = plaintext_size - offset if length is None else length
        self._chunk_size = chunk_size
        self._closed = False
        self.bytes_read = 0
        self._iterator = self._chunks()

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterator

    async def __aenter__(self) -> "DecryptedStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    @property
    def closed(self) -> bool:
        return self._closed

    async def _chunks(self) -> AsyncIterator[bytes]:
        remaining = self.length
        try:
            while remaining > 0:
                try:
                    chunk = await self._handle.read(min(self._chunk_size, remaining))
                except OSError as exc:
                    raise VideoIOError(f"Failed reading {self.source_path.name}") from exc
                if not chunk:
                    break
                remaining -= len(chunk)
                self.bytes_read += len(chunk)
                yield self._decryptor.update(chunk)
        finally:
            await self._close_handle()

    async def _close_handle(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._handle.close()
        if self.bytes_read < self.length:
            logger.debug(
                "Closed %s early after %d of %d bytes",
                self.source_path.name, self.bytes_read, self.length,
            )
        else:
            logger.debug("Finished streaming %s (%d bytes)", self.source_path.name, self.bytes_read)

    async def aclose(self) -> None:
        await self._iterator.aclose()
        await self._close_handle()


class EncryptionService:
    def __init__(self, cipher: AESCTRCipher, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.cipher = cipher
        self.chunk_size = chunk_size

    # ── Writer ───────────────────────────────────────────

    async def write_encrypted(self, source_path: Path, destination: Path) -> int:
        """Encrypt a plaintext file into `destination`. Returns plaintext size."""
        return await self.write_encrypted_stream(self._iter_file(Path(source_path)), destination)

    async def write_encrypted_stream(self, chunks: AsyncIterable[bytes], destination: Path) -> int:
        """Encrypt a stream of plaintext chunks into `destination`.

        The bytes go to a hidden `.part` file beside the destination, which is
        fsynced and renamed into place only once complete. On any failure the
        `.part` file is removed and nothing exists at `destination`.
        """
        destination = Path(destination)
        try:
            await aiofiles.os.makedirs(destination.parent, exist_ok=True)
        except OSError as exc:
            raise VideoIOError(f"Cannot create directory for {destination.name}") from exc

        part = destination.with_name(f".{destination.name}.{uuid.uuid4().hex}.part")
        nonce = generate_nonce()
        encryptor = self.cipher.encryptor(nonce)
        written = 0
        try:
            async with aiofiles.open(part, "wb") as out:
                await out.write(nonce)
                async for chunk in chunks:
                    await out.write(encryptor.update(chunk))
                    written += len(chunk)
                await out.write(encryptor.finalize())
                await out.flush()
                await asyncio.to_thread(os.fsync, out.fileno())
            await aiofiles.os.replace(part, destination)
        except OSError as exc:
            await self._discard(part)
            raise VideoIOError(f"Failed writing encrypted file {destination.name}") from exc
        except BaseException:
            await self._discard(part)
            raise

        logger.debug("Encrypted %d bytes into %s", written, destination)
        return written

    async def _iter_file(self, path: Path) -> AsyncIterator[bytes]:
        async with aiofiles.open(path, "rb") as f:
            while chunk := await f.read(self.chunk_size):
                yield chunk

    async def _discard(self, part: Path) -> None:
        try:
            await aiofiles.os.remove(part)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to remove partial file %s: %s", part, e)

    # ── Reader ───────────────────────────────────────────

    async def open_decrypted(
        self,
        source_path: Path,
        offset: int = 0,
        length: int | None = None,
    ) -> DecryptedStream:
        """Open an encrypted file and validate its nonce header.

        `offset`/`length` select a plaintext byte range; the default is the
        whole file.
        """
        source_path = Path(source_path)
        try:
            handle = await aiofiles.open(source_path, "rb")
        except OSError as exc:
            raise VideoIOError(f"Cannot open {source_path.name}") from exc

        try:
            nonce = await handle.read(NONCE_SIZE)
            if len(nonce) < NONCE_SIZE:
                raise CorruptFileError(
                    f"{source_path.name} is {len(nonce)} bytes, too short to contain a nonce"
                )
            stat = await aiofiles.os.stat(source_path)
            plaintext_size = stat.st_size - NONCE_SIZE
            if offset < 0 or offset > plaintext_size:
                raise RangeNotSatisfiableError(
                    f"offset {offset} outside 0..{plaintext_size}", details={"size": plaintext_size}
                )
            if length is None:
                length = plaintext_size - offset
            length = max(0, min(length, plaintext_size - offset))
            if offset:
                await handle.seek(NONCE_SIZE + offset)
            decryptor = self.cipher.decryptor(nonce, offset)
        except OSError as exc:
            await handle.close()
            raise VideoIOError(f"Failed reading {source_path.name}") from exc
        except BaseException:
            await handle.close()
            raise

        logger.debug("Opened %s for decryption (offset=%d, length=%d)", source_path.name, offset, length)
        return DecryptedStream(
            handle,
            decryptor,
            source_path,
            plaintext_size,
            self.chunk_size,
            offset=offset,
            length=length,
        )

    async def stream_decrypted(self, source_path: Path, sink: Sink) -> int:
        """Decrypt `source_path` into `sink` chunk by chunk. Returns bytes written.

        Raises ClientDisconnectedError as soon as the sink refuses a write.
        """
        written = 0
        async with await self.open_decrypted(source_path) as stream:
            async for chunk in stream:
                try:
                    await sink.write(chunk)
                except OSError as exc:
                    logger.info(
                        "Sink closed after %d bytes of %s: %s",
                        written, Path(source_path).name, exc,
                    )
                    raise ClientDisconnectedError("Client disconnected during playback") from exc
                written += len(chunk)
        return written
