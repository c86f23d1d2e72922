from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from queuedesk.config import settings


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def iso_now() -> str:
    return utc_now().isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    raw = value.strip()
    if raw.endswith('Z'):
        raw = raw[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def local_date(moment: datetime, tz_name: str | None = None) -> date:
    return moment.astimezone(ZoneInfo(tz_name or settings.display_timezone)).date()


def _raw_day_diff(value: str | None, now: datetime | None, tz_name: str | None) -> int | None:
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    current = now or utc_now()
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return local_date(current, tz_name).toordinal() - local_date(parsed, tz_name).toordinal()


def day_diff(value: str | None, now: datetime | None = None, tz_name: str | None = None) -> int:
    """Whole calendar days between ``value`` and ``now`` in the display timezone.

    Both instants are mapped to local calendar dates before subtracting, so crossing
    local midnight counts as a day even when less than 24 hours have passed.
    Unparseable input and future timestamps yield 0.
    """
    diff = _raw_day_diff(value, now, tz_name)
    if diff is None:
        return 0
    return max(0, diff)


def export_day_diff(value: str | None, now: datetime | None = None, tz_name: str | None = None) -> int | str:
    diff = _raw_day_diff(value, now, tz_name)
    if diff is None or diff < 0:
        return ''
    return diff


def export_local_date(value: str | None, tz_name: str | None = None) -> str:
    parsed = parse_timestamp(value)
    if parsed is None:
        return ''
    return local_date(parsed, tz_name).isoformat()
