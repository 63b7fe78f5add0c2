"""Centralized Timezone Utilities - All datetime operations should use these functions."""

from datetime import datetime, timezone

UTC = timezone.utc


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)
