"""
Join-window and presence rules for telehealth appointments.

Pure functions over timestamps. Anything that cannot be read as a timestamp is
treated as "not eligible" / "not present" rather than raising, so a bad value
degrades a request to "not ready" instead of failing it.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

JOIN_WINDOW = timedelta(hours=2)
PRESENCE_WINDOW = timedelta(seconds=15)

_TIMESTAMP_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M")

BUTTON_ACTIVE = "active"
BUTTON_COMPLETED = "completed"
BUTTON_EXPIRED = "expired"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: Any) -> Optional[datetime]:
    """Coerce a datetime or timestamp string to an aware UTC datetime, or None."""
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        parsed = None
        for fmt in _TIMESTAMP_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                return None
        value = parsed
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        # Stored timestamps are UTC; some backends drop the offset.
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_within_join_window(scheduled_at: Any, now: Any) -> bool:
    """True iff scheduled_at is within two hours either side of now, bounds included."""
    scheduled = to_utc(scheduled_at)
    current = to_utc(now)
    if scheduled is None or current is None:
        return False
    return current - JOIN_WINDOW <= scheduled <= current + JOIN_WINDOW


def is_presence_fresh(last_seen_at: Any, now: Any) -> bool:
    """True iff now is strictly before last_seen_at + 15 seconds."""
    last_seen = to_utc(last_seen_at)
    current = to_utc(now)
    if last_seen is None or current is None:
        return False
    return current < last_seen + PRESENCE_WINDOW


def is_provider_present(session, now: Any) -> bool:
    """Whether the provider on a session record has sent a heartbeat recently."""
    if session is None:
        return False
    return is_presence_fresh(getattr(session, "provider_last_update", None), now)


def can_show_telehealth(appointment, now: Any) -> bool:
    """Patient portal rule: joinable now, and neither checked out nor pending."""
    if not is_within_join_window(appointment.starts_at, now):
        return False
    return not (appointment.is_checked_out() or appointment.is_pending())


def launch_button_state(appointment, now: Any) -> str:
    """Calendar launch button: completed once checked out, else active inside the window."""
    if appointment.is_checked_out():
        return BUTTON_COMPLETED
    if is_within_join_window(appointment.starts_at, now):
        return BUTTON_ACTIVE
    return BUTTON_EXPIRED
