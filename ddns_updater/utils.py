# /ddns-updater/ddns_updater/utils.py
import re
import logging
from datetime import datetime, timedelta, timezone as dt_timezone
import pytz

module_logger = logging.getLogger("ddns_updater.utils")

_DURATION_PART = re.compile(r"(\d+)\s*(d|h|m|s)")
_UNIT_SECONDS = {'d': 86400, 'h': 3600, 'm': 60, 's': 1}


def parse_duration(duration_str, allow_zero=False):
    """
    Duration string (e.g., '1h', '30m', '10s', '1h30m', '90') to seconds (integer).
    Returns None if parsing fails, or if the result is 0 and allow_zero is False.
    """
    if isinstance(duration_str, int):
        duration_str = str(duration_str)
    if not isinstance(duration_str, str):
        module_logger.warning(f"Invalid duration type (expected string): {duration_str!r}")
        return None

    cleaned = duration_str.lower().strip()
    if not cleaned:
        return None

    if cleaned.isdigit():
        total_seconds = int(cleaned)
    else:
        parts = _DURATION_PART.findall(cleaned)
        remainder = _DURATION_PART.sub("", cleaned).strip()
        if not parts or remainder:
            module_logger.warning(f"Invalid duration format: '{duration_str}'")
            return None
        total_seconds = sum(int(value) * _UNIT_SECONDS[unit] for value, unit in parts)

    if total_seconds == 0 and not allow_zero:
        return None
    return total_seconds


def format_timedelta(td):
    if not isinstance(td, timedelta):
        return ""

    total_seconds = int(td.total_seconds())
    if total_seconds <= 0:
        return "0s"

    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds or not parts:
        parts.append(f"{seconds}s")
    return "".join(parts)


def get_timezone(tz_name):
    try:
        return pytz.timezone(tz_name or 'Etc/UTC')
    except pytz.UnknownTimeZoneError:
        module_logger.warning(f"Unknown timezone '{tz_name}'. Using UTC.")
        return pytz.utc


def format_local_time(value: datetime | None, tz_name: str = 'Etc/UTC', fmt: str = '%Y-%m-%d %H:%M:%S %Z') -> str:
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt_timezone.utc)
    return value.astimezone(get_timezone(tz_name)).strftime(fmt)


def utc_now() -> datetime:
    return datetime.now(dt_timezone.utc)
