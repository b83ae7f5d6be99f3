"""
Parses HLS playlists (master and media) into Manifest objects.

Parsing is done by the `m3u8` library. Before the text is handed over, each
line is normalized so that:

    tag names match case-insensitively
    a non-numeric #EXT-X-MEDIA-SEQUENCE counts as 0
    a bare URL line without #EXTINF is still a segment

The library result is then reduced to what the downloader needs: variants,
segment URLs, the media sequence and the active AES-128 key.
"""

import asyncio
import logging
import re

import aiohttp
import m3u8

from streamgrab.exceptions import ManifestFetchError
from streamgrab.models.manifest import (
    EncryptionInfo,
    EncryptionMethod,
    Manifest,
    Variant,
)
from streamgrab.utils.cancellation import CancellationToken

log = logging.getLogger(__name__)

EXTINF_TAG = "#EXTINF"
STREAM_INF_TAG = "#EXT-X-STREAM-INF"
MEDIA_SEQUENCE_TAG = "#EXT-X-MEDIA-SEQUENCE"

MEDIA_SEQUENCE_RE = re.compile(r"\s*(\d+)")


def _normalize_playlist(text: str) -> str:
    lines = []
    awaiting_uri = False
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        if line.startswith("#"):
            tag, sep, value = line.partition(":")
            if tag.upper().startswith("#EXT"):
                tag = tag.upper()
                if tag == MEDIA_SEQUENCE_TAG:
                    match = MEDIA_SEQUENCE_RE.match(value)
                    value = match.group(1) if match else "0"
                elif tag in (EXTINF_TAG, STREAM_INF_TAG):
                    awaiting_uri = True
                line = f"{tag}{sep}{value}"
        else:
            if not awaiting_uri:
                lines.append(f"{EXTINF_TAG}:0,")
            awaiting_uri = False
        lines.append(line)
    return "\n".join(lines) + "\n"


def _apply_key(key: m3u8.Key | None, current: EncryptionInfo | None):
    """Returns the encryption state after a segment's key."""
    if key is None:
        return current

    method = (key.method or "NONE").strip().upper()
    if method == EncryptionMethod.AES128.value:
        if not key.uri:
            return current
        return EncryptionInfo(
            method=EncryptionMethod.AES128,
            key_url=key.absolute_uri,
            iv_hex=key.iv.strip() if key.iv else None,
        )
    if method == EncryptionMethod.NONE.value:
        return None

    # SAMPLE-AES and friends are not supported; the segments are passed through.
    log.debug(f"Ignoring unsupported key method '{method}'.")
    return current


def _format_resolution(resolution: tuple[int, int] | None) -> str | None:
    if not resolution:
        return None
    width, height = resolution
    return f"{width}x{height}"


def parse_manifest(text: str, base_url: str) -> Manifest:
    """
    Parses playlist text into a Manifest.

    Args:
        text: The raw playlist.
        base_url: The URL the playlist was fetched from. Relative variant,
            key and segment URLs are resolved against it.

    Raises:
        ManifestFetchError: If an attribute value cannot be parsed.
    """
    try:
        playlist = m3u8.loads(_normalize_playlist(text), uri=base_url)
    except (ValueError, KeyError, IndexError) as e:
        raise ManifestFetchError(f"Playlist could not be parsed: {e}") from e

    manifest = Manifest(
        is_master=playlist.is_variant,
        media_sequence=playlist.media_sequence or 0,
    )
    for variant in playlist.playlists:
        info = variant.stream_info
        manifest.variants.append(
            Variant(
                bandwidth=info.bandwidth or 0,
                url=variant.absolute_uri,
                resolution=_format_resolution(info.resolution),
            )
        )
    for segment in playlist.segments:
        manifest.segments.append(segment.absolute_uri)
        manifest.encryption = _apply_key(segment.key, manifest.encryption)

    return manifest


async def fetch_manifest(
    session: aiohttp.ClientSession,
    url: str,
    label: str = "Playlist",
    cancel_token: CancellationToken | None = None,
) -> Manifest:
    """
    Downloads and parses the playlist at `url`.

    Raises:
        ManifestFetchError: On a non-success status or a transport failure.
    """
    if cancel_token:
        cancel_token.raise_if_cancelled()
    try:
        async with session.get(url) as response:
            if not response.ok:
                raise ManifestFetchError(f"{label} fetch failed: {response.status}")
            text = await response.text(errors="replace")
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise ManifestFetchError(f"{label} fetch failed: {e}") from e

    log.debug(f"Fetched {label.lower()} from {url} ({len(text)} chars)")
    return parse_manifest(text, url)
