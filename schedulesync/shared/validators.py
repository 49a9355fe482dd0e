"""Shared validation utilities"""

import re
from datetime import datetime
from typing import Optional

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")


def email_domain(email: Optional[str]) -> str:
    """Lowercased domain part of an email, or an empty string"""
    if not email or "@" not in email:
        return ""
    return email.split("@", 1)[1].strip().lower()


def to_local_naive(value: datetime) -> datetime:
    """
    Normalize a datetime to naive server-local time.

    Bookings are stored as naive local timestamps, so aware values coming from
    clients are converted before comparison or persistence.
    """
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def parse_datetime(value) -> Optional[datetime]:
    """Parse an ISO 8601 string (or pass through a datetime). Returns None if unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_local_naive(value)
    try:
        return to_local_naive(datetime.fromisoformat(str(value).strip().replace("Z", "+00:00")))
    except ValueError:
        return None


LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_leading_int(value) -> Optional[int]:
    """Leading integer of a rule value ("17:00" -> 17, "9am" -> 9). None when there is none."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    match = LEADING_INT.match(str(value or ""))
    return int(match.group(1)) if match else None
