"""
AES-256-CTR codec for video files at rest.

CTR mode turns AES into a keystream generator, so ciphertext has exactly the
length of the plaintext and encrypt/decrypt are the same XOR transform. The
16-byte nonce is the initial counter block; the counter is incremented as one
128-bit big-endian integer, which lets a decryptor start at any byte offset.

There is no authentication tag: a flipped ciphertext bit decrypts to a flipped
plaintext bit without any error.
"""

import os

from cryptography.hazmat.primitives.ciphers import Cipher, CipherContext, algorithms, modes

from streamvault.errors import ConfigurationError

KEY_SIZE = 32
NONCE_SIZE = 16  # AES block size
_COUNTER_MODULUS = 1 << (8 * NONCE_SIZE)


def generate_nonce() -> bytes:
    """Fresh random nonce from the OS CSPRNG."""
    return os.urandom(NONCE_SIZE)


class AESCTRCipher:
    """Stateless apart from the key; safe to share between requests."""

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise ConfigurationError(f"Encryption key must be {KEY_SIZE} bytes, got {len(key)}")
        self._key = bytes(key)

    def _cipher(self, nonce: bytes) -> Cipher:
        if len(nonce) != NONCE_SIZE:
            raise ValueError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
        return Cipher(algorithms.AES(self._key), modes.CTR(nonce))

    def encryptor(self, nonce: bytes) -> CipherContext:
        """One continuous keystream; feed every chunk of a file through the same context."""
        return self._cipher(nonce).encryptor()

    def decryptor(self, nonce: bytes, offset: int = 0) -> CipherContext:
        """Keystream positioned at plaintext byte `offset`."""
        if offset < 0:
            raise ValueError("offset must be non-negative")
        if len(nonce) != NONCE_SIZE:
            raise ValueError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
        block, skip = divmod(offset, NONCE_SIZE)
        counter = (int.from_bytes(nonce, "big") + block) % _COUNTER_MODULUS
        context = self._cipher(counter.to_bytes(NONCE_SIZE, "big")).decryptor()
        if skip:
            context.update(bytes(skip))
        return context

    def encrypt(self, nonce: bytes, plaintext: bytes) -> bytes:
        context = self.encryptor(nonce)
        return context.update(plaintext) + context.finalize()

    def decrypt(self, nonce: bytes, ciphertext: bytes) -> bytes:
        context = self.decryptor(nonce)
        return context.update(ciphertext) + context.finalize()
