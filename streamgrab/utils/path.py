"""
Utilities for handling file names, output paths and source URL classification.
"""

import re
import time
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

from pathvalidate import sanitize_filename

MEDIA_EXTENSIONS = ("mp4", "webm", "mkv", "avi", "flv", "m4v")
URL_FILENAME_RE = re.compile(r"\.(mp4|webm|m3u8|mkv|avi|flv)$", re.IGNORECASE)
CONTENT_DISPOSITION_RE = re.compile(
    r"filename\*?=(?:UTF-8'')?[\"']?([^\"';\n]+)", re.IGNORECASE
)


def is_manifest_url(url: str) -> bool:
    """True when the URL points at an HLS playlist rather than a media file."""
    return ".m3u8" in url.lower()


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def filename_from_content_disposition(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    match = CONTENT_DISPOSITION_RE.search(header)
    if match:
        return unquote(match.group(1).strip())
    return None


def filename_from_url(url: str) -> Optional[str]:
    """Returns the last path component if it looks like a media file name."""
    segments = [s for s in urlparse(url).path.split("/") if s]
    if not segments:
        return None
    name = unquote(segments[-1])
    return name if URL_FILENAME_RE.search(name) else None


def ensure_media_extension(filename: str) -> str:
    """Forces a video extension, swapping whatever extension was there for .mp4."""
    stem, dot, ext = filename.rpartition(".")
    if dot and ext.lower() in MEDIA_EXTENSIONS:
        return filename
    return f"{stem}.mp4" if dot and stem else f"{filename}.mp4"


def direct_download_filename(
    url: str,
    suggested: Optional[str] = None,
    content_disposition: Optional[str] = None,
) -> str:
    """
    Chooses a name for a direct download: the caller's suggestion, then the
    server's Content-Disposition, then the URL, then a timestamped fallback.
    """
    filename = (
        suggested
        or filename_from_content_disposition(content_disposition)
        or filename_from_url(url)
        or f"direct_{int(time.time() * 1000)}.mp4"
    )
    return ensure_media_extension(filename)


def unique_output_path(directory: Path, filename: str) -> Path:
    """
    Sanitizes `filename` and returns a path inside `directory` that does not
    exist yet, appending ' (1)', ' (2)', ... when needed.
    """
    safe_name = sanitize_filename(filename, platform="auto") or "download.mp4"
    candidate = directory / safe_name
    stem, suffix = candidate.stem, candidate.suffix
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem} ({counter}){suffix}"
        counter += 1
    return candidate
