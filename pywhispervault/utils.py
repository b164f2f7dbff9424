"""Utility functions for the WhisperVault client."""

from datetime import datetime, timezone
from typing import Any, Optional

# =============================================================================
# Constants for remote operations
# =============================================================================

# Retry configuration for idempotent requests
DEFAULT_MAX_RETRIES: int = 2
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Request timeout
DEFAULT_TIMEOUT: float = 30.0  # seconds

# Sort key for items the server never reported an access time for
EPOCH: datetime = datetime.min.replace(tzinfo=timezone.utc)


# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_iso_timestamp(value: Any) -> Optional[datetime]:
    """Parse a timestamp from the WhisperVault API.

    The server sends ISO 8601 strings (``"2025-01-15T10:30:00.000Z"``).
    Millisecond epoch numbers are accepted as well, since that is what a
    JavaScript ``Date`` serializes to in some code paths.

    Args:
        value: ISO string, epoch milliseconds, datetime or None

    Returns:
        Timezone-aware datetime (naive inputs are assumed to be UTC),
        or None if the value is missing or cannot be parsed
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, bool):
        return None
    elif isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        timestamp_str = value.strip()
        # The 'Z' suffix indicates UTC time
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(timestamp_str)
        except ValueError:
            # Older interpreters reject fractional seconds that are not
            # 3 or 6 digits long
            if "." not in timestamp_str:
                return None
            head, _, tail = timestamp_str.partition(".")
            offset = ""
            for sign in ("+", "-"):
                if sign in tail:
                    offset = sign + tail.split(sign, 1)[1]
                    break
            try:
                dt = datetime.fromisoformat(head + offset)
            except ValueError:
                return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_timestamp(value: Optional[datetime]) -> str:
    """Format a timestamp for display in local time.

    Args:
        value: Aware datetime or None

    Returns:
        String like ``"2025-01-15 11:30"``, or ``"-"`` when unknown
    """
    if value is None or value == EPOCH:
        return "-"
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
