"""
Structured representation of a parsed HLS playlist.
"""

from dataclasses import dataclass, field
from enum import Enum


class EncryptionMethod(Enum):
    """Segment encryption methods understood by the downloader."""

    NONE = "NONE"
    AES128 = "AES-128"


@dataclass(frozen=True)
class Variant:
    """One quality option listed by a master playlist."""

    bandwidth: int
    url: str
    resolution: str | None = None

    @property
    def kbps(self) -> int:
        return round(self.bandwidth / 1000)


@dataclass(frozen=True)
class EncryptionInfo:
    """The active #EXT-X-KEY of a media playlist."""

    method: EncryptionMethod
    key_url: str
    iv_hex: str | None = None


@dataclass
class Manifest:
    """
    A parsed playlist. Either a master (variants populated) or a media
    playlist (segments populated); a malformed playlist can carry both.
    """

    is_master: bool = False
    variants: list[Variant] = field(default_factory=list)
    segments: list[str] = field(default_factory=list)
    encryption: EncryptionInfo | None = None
    media_sequence: int = 0

    @property
    def is_encrypted(self) -> bool:
        return (
            self.encryption is not None
            and self.encryption.method == EncryptionMethod.AES128
        )
