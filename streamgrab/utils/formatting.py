"""
Helper functions for formatting data into human-readable strings.
"""


def format_size(bytes_size: int) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    return f"{bytes_size:.1f} {units[i]}"


def format_megabytes(bytes_size: float) -> str:
    """Formats bytes as megabytes with one decimal, e.g. '12.3'."""
    return f"{bytes_size / (1024 * 1024):.1f}"


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2h 34m 12s').
    """
    s = int(seconds)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def percent_of(done: float, total: float) -> int:
    """Whole-number percentage, rounding halves up."""
    if total <= 0:
        return 0
    return int(done * 100 / total + 0.5)


def format_eta(eta_seconds: int | None) -> str:
    return "?" if eta_seconds is None else str(eta_seconds)
