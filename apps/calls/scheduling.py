"""
Time helpers for scheduled calls.

Scheduled times arrive as wall-clock times plus an IANA timezone name and are
stored in UTC.
"""
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apps.core.exceptions import ValidationError


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown timezone: {name}") from e


def to_utc(local_time: datetime, timezone_name: str) -> datetime:
    """
    Convert a scheduled time to an aware UTC datetime.

    Naive values are interpreted in ``timezone_name``; aware values keep their
    own offset and are only converted.
    """
    tz = resolve_timezone(timezone_name)
    if local_time.tzinfo is None:
        local_time = local_time.replace(tzinfo=tz)
    return local_time.astimezone(dt_timezone.utc)


def validate_schedule(scheduled_at: datetime, now: datetime, recurrence_end: Optional[datetime] = None) -> None:
    """Both datetimes must already be aware; ``recurrence_end`` too when given."""
    if scheduled_at <= now:
        raise ValidationError(
            f"Scheduled time must be in the future (got {scheduled_at.isoformat()}, now {now.isoformat()})"
        )

    if recurrence_end is not None and recurrence_end <= scheduled_at:
        raise ValidationError("Recurrence end date must be after the scheduled time")


def reminder_time(scheduled_at: datetime, minutes_before: int) -> datetime:
    return scheduled_at - timedelta(minutes=minutes_before)
