"""
Timestamps for rows stored in naive UTC ``TIMESTAMP`` columns.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current UTC time without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
