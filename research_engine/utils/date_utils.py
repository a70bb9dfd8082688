"""
Date helpers shared by models and vendor mappers.
"""

from datetime import datetime, timezone
from typing import Optional


def get_current_utc() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def safe_parse_date(raw: Optional[str]) -> Optional[datetime]:
    """
    Parse ISO-8601-ish date strings returned by search APIs.

    Accepts full timestamps (with ``Z`` or offsets) and bare ``YYYY-MM-DD``
    dates. Returns None when the value is missing or unparseable.
    """
    if not raw or not isinstance(raw, str):
        return None

    value = raw.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        try:
            parsed = datetime.strptime(value[:10], "%Y-%m-%d")
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
