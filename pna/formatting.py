"""Human-readable formatting of byte counts, durations, and percentages."""

from datetime import UTC, datetime

_BYTE_UNITS = ("B", "KB", "MB", "GB", "TB", "PB")


def format_bytes(num_bytes: int | float, decimals: int = 2) -> str:
    """Format a byte count using 1024-based units.

    Trailing zeros are dropped, so ``1536`` becomes ``"1.5 KB"`` and
    ``1048576`` becomes ``"1 MB"``.  Values beyond petabytes stay in PB.

    Args:
        num_bytes: Byte count.  Zero and negative values render as ``"0 B"``.
        decimals: Maximum number of fractional digits.

    Returns:
        The formatted string, e.g. ``"1.23 GB"``.
    """
    if num_bytes <= 0:
        return "0 B"

    digits = max(decimals, 0)
    index = 0
    value = float(num_bytes)
    while value >= 1024 and index < len(_BYTE_UNITS) - 1:
        value /= 1024
        index += 1

    text = f"{value:.{digits}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {_BYTE_UNITS[index]}"


def format_uptime(seconds: int) -> str:
    """Format an uptime in seconds as ``"3d 4h"``, ``"4h 12m"`` or ``"12m"``."""
    seconds = max(int(seconds), 0)
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes = rest // 60

    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_relative_time(timestamp: int, now: int) -> str:
    """Describe how long ago *timestamp* was, relative to *now*.

    Both arguments are epoch seconds.  Anything older than a week is shown
    as an ISO date.
    """
    diff = now - timestamp
    if diff < 60:
        return "just now"
    if diff < 3600:
        return f"{diff // 60}m ago"
    if diff < 86400:
        return f"{diff // 3600}h ago"
    if diff < 604800:
        return f"{diff // 86400}d ago"
    return datetime.fromtimestamp(timestamp, UTC).date().isoformat()


def format_percent(value: float, decimals: int = 1) -> str:
    return f"{value:.{decimals}f}%"


def truncate_middle(text: str, start_chars: int = 6, end_chars: int = 4) -> str:
    """Shorten a long identifier (pubkey, address) to ``"abcdef...wxyz"``."""
    if len(text) <= start_chars + end_chars:
        return text
    return f"{text[:start_chars]}...{text[-end_chars:]}"


def calculate_percent(value: float, total: float) -> float:
    """Return *value* as a percentage of *total*, or 0 when *total* is 0."""
    if total == 0:
        return 0.0
    return value * 100 / total
