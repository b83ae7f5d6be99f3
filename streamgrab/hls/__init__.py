"""
HLS Layer.

This package understands the playlist side of a stream: parsing M3U8 text,
choosing a quality variant and resolving AES-128 key material.
"""

from .crypto import EncryptionContext, KeyResolver, decrypt_segment
from .parser import fetch_manifest, parse_manifest
from .variants import select_variant

__all__ = [
    "EncryptionContext",
    "KeyResolver",
    "decrypt_segment",
    "fetch_manifest",
    "parse_manifest",
    "select_variant",
]
