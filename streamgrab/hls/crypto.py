"""
AES-128-CBC support for encrypted HLS segments: key retrieval, IV derivation
and per-segment decryption.
"""

import asyncio
import logging
import struct
from dataclasses import dataclass

import aiohttp
from Crypto.Cipher import AES
from Crypto.Util.Padding import unpad

from streamgrab.exceptions import DecryptError, KeyFetchError
from streamgrab.models.manifest import Manifest
from streamgrab.utils.cancellation import CancellationToken

log = logging.getLogger(__name__)

IV_SIZE = 16


def parse_hex_iv(iv_hex: str) -> bytes:
    """
    Parses an IV attribute such as '0x0123456789abcdef0123456789abcdef'.

    Missing or malformed byte pairs become zero rather than failing.
    """
    hex_str = iv_hex[2:] if iv_hex[:2].lower() == "0x" else iv_hex
    iv = bytearray(IV_SIZE)
    for i in range(IV_SIZE):
        pair = hex_str[i * 2 : i * 2 + 2]
        try:
            iv[i] = int(pair, 16)
        except ValueError:
            iv[i] = 0
    return bytes(iv)


def sequence_iv(sequence_number: int) -> bytes:
    """Builds the default IV: twelve zero bytes followed by a big-endian uint32."""
    return struct.pack(">12xI", sequence_number & 0xFFFFFFFF)


def decrypt_segment(ciphertext: bytes, key: bytes, iv: bytes) -> bytes:
    """
    Decrypts one AES-128-CBC segment and strips its PKCS#7 padding.

    Raises:
        DecryptError: If the key, IV, length or padding is invalid.
    """
    try:
        cipher = AES.new(key, AES.MODE_CBC, iv=iv)
        return unpad(cipher.decrypt(ciphertext), AES.block_size)
    except (ValueError, TypeError) as e:
        raise DecryptError(f"Decryption failed: {e}") from e


@dataclass(frozen=True)
class EncryptionContext:
    """Imported key material plus the rule for choosing each segment's IV."""

    key: bytes
    media_sequence: int = 0
    explicit_iv: bytes | None = None

    def iv_for(self, index: int) -> bytes:
        # An explicit IV is shared by every segment of the playlist.
        if self.explicit_iv is not None:
            return self.explicit_iv
        return sequence_iv(self.media_sequence + index)


class KeyResolver:
    """Fetches the key referenced by a media playlist."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        cancel_token: CancellationToken | None = None,
    ):
        self.session = session
        self.cancel_token = cancel_token

    async def fetch_key(self, key_url: str) -> bytes:
        """
        Downloads raw key bytes. The length is not checked here; a bad key
        surfaces later as a DecryptError.
        """
        if self.cancel_token:
            self.cancel_token.raise_if_cancelled()
        try:
            async with self.session.get(key_url) as response:
                if not response.ok:
                    raise KeyFetchError(f"Key fetch failed: {response.status}")
                return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise KeyFetchError(f"Key fetch failed: {e}") from e

    async def resolve(self, manifest: Manifest) -> EncryptionContext | None:
        """Returns the decryption context for `manifest`, or None if it is clear."""
        if not manifest.is_encrypted:
            return None

        encryption = manifest.encryption
        key = await self.fetch_key(encryption.key_url)
        log.debug(f"Fetched {len(key)}-byte key from {encryption.key_url}")

        explicit_iv = parse_hex_iv(encryption.iv_hex) if encryption.iv_hex else None
        return EncryptionContext(
            key=key,
            media_sequence=manifest.media_sequence,
            explicit_iv=explicit_iv,
        )

