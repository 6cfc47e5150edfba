"""Calendar-day parsing and zone-stable day bounds."""

import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from care_log import config
from care_log.errors import ValidationError

DAY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Fixed width so that text comparison in SQL matches chronological order
STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def parse_day(value: str | date | None, field: str = "date") -> date:
    """Parse a YYYY-MM-DD calendar day, raising ValidationError otherwise."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = (value or "").strip()
    if not DAY_PATTERN.match(text):
        raise ValidationError(f"{field} must be YYYY-MM-DD", {"field": field, "value": value})
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"{field} must be YYYY-MM-DD", {"field": field, "value": value})


def reference_zone(tz_name: str | None = None) -> ZoneInfo:
    return ZoneInfo(tz_name or config.TIMEZONE)


def day_bounds(day: date, tz_name: str | None = None) -> tuple[datetime, datetime]:
    """Return the UTC instants of the first and last microsecond of `day` in the reference zone.

    The end bound is the instant before the next local midnight, so days that
    are 23 or 25 hours long around DST changes are covered exactly.
    """
    zone = reference_zone(tz_name)
    start = datetime.combine(day, time.min, tzinfo=zone)
    next_start = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    start_utc = start.astimezone(timezone.utc)
    end_utc = next_start.astimezone(timezone.utc) - timedelta(microseconds=1)
    return start_utc, end_utc


def start_of_day(day: date, tz_name: str | None = None) -> datetime:
    return day_bounds(day, tz_name)[0]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_storage(moment: datetime) -> str:
    """Format an aware datetime for storage (naive values are taken as UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(STORAGE_FORMAT)


def from_storage(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.strptime(value, STORAGE_FORMAT).replace(tzinfo=timezone.utc)


def day_to_storage(day: date | str, tz_name: str | None = None) -> str:
    """Store a POC boundary given as a calendar day as the start of that local day."""
    return to_storage(start_of_day(parse_day(day), tz_name))


def storage_to_day(value: str | None, tz_name: str | None = None) -> date | None:
    """Inverse of day_to_storage: the local calendar day of a stored instant."""
    moment = from_storage(value)
    if moment is None:
        return None
    return moment.astimezone(reference_zone(tz_name)).date()
