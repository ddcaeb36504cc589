"""UNIX timestamp <-> readable date conversion."""

from datetime import datetime, timezone as dt_timezone
from typing import Dict, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tools.exceptions import ToolInputError

TIMEZONES = [
    'UTC',
    'Asia/Shanghai',
    'Asia/Tokyo',
    'Asia/Kolkata',
    'Europe/London',
    'Europe/Berlin',
    'America/New_York',
    'America/Los_Angeles',
    'Australia/Sydney',
]

UNITS = ('seconds', 'milliseconds')


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name or 'UTC')
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ToolInputError(f'Unknown timezone: {name}', field='timezone') from exc


def describe_moment(moment: datetime, timezone: str = 'UTC') -> Dict[str, str]:
    local = moment.astimezone(_zone(timezone))
    millis = int(moment.timestamp() * 1000)
    return {
        'human': local.strftime('%Y-%m-%d %H:%M:%S'),
        'seconds': str(millis // 1000),
        'milliseconds': str(millis),
        'iso': moment.astimezone(dt_timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z'),
    }


def timestamp_to_date(value: Union[str, int, float], unit: str = 'seconds',
                      timezone: str = 'UTC') -> Dict[str, str]:
    if unit not in UNITS:
        raise ToolInputError(f"unit must be one of: {', '.join(UNITS)}", field='unit')
    try:
        number = float(str(value).strip())
    except ValueError as exc:
        raise ToolInputError('Enter a numeric timestamp', field='timestamp') from exc
    seconds = number if unit == 'seconds' else number / 1000
    try:
        moment = datetime.fromtimestamp(seconds, tz=dt_timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise ToolInputError('Timestamp is out of range', field='timestamp') from exc
    return describe_moment(moment, timezone)


def date_to_timestamp(value: Optional[str], timezone: str = 'UTC') -> Dict[str, str]:
    """Parse an ISO-8601 date; naive values are read in ``timezone``. Empty means now."""
    zone = _zone(timezone)
    if not value or not value.strip():
        return describe_moment(datetime.now(zone), timezone)
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        moment = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ToolInputError('Enter a valid date and time', field='date') from exc
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=zone)
    return describe_moment(moment, timezone)
