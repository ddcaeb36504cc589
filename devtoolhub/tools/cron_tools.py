"""Cron expression builder and next-run preview backed by APScheduler's CronTrigger."""

from datetime import datetime
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.triggers.cron import CronTrigger

from tools.exceptions import ToolInputError

FIELDS = ('minute', 'hour', 'day_of_month', 'month', 'day_of_week')
MAX_RUNS = 20
DEFAULT_TIMEZONE = 'UTC'

# crontab counts weekdays from Sunday, APScheduler from Monday
_WEEKDAY_NAMES = ('sun', 'mon', 'tue', 'wed', 'thu', 'fri', 'sat', 'sun')

CRON_TEMPLATES = [
    {'label': 'Every minute', 'value': '* * * * *'},
    {'label': 'Every hour', 'value': '0 * * * *'},
    {'label': 'Every day at 09:30', 'value': '30 9 * * *'},
    {'label': 'Every Monday at 10:00', 'value': '0 10 * * 1'},
    {'label': 'First day of every month', 'value': '0 0 1 * *'},
]

_DESCRIPTIONS = {
    '* * * * *': 'Runs every minute',
    '0 * * * *': 'Runs at the start of every hour',
    '0 0 * * *': 'Runs every day at midnight',
    '30 9 * * *': 'Runs every day at 09:30',
    '0 10 * * 1': 'Runs every Monday at 10:00',
    '0 0 1 * *': 'Runs at 00:00 on the first day of every month',
}


def split_expression(expression: str) -> Dict[str, str]:
    parts = (expression or '').split()
    if len(parts) != len(FIELDS):
        raise ToolInputError('A cron expression needs exactly 5 fields', field='expression')
    return dict(zip(FIELDS, parts))


def build_expression(fields: Dict[str, str]) -> str:
    return ' '.join(str(fields.get(name) or '*').strip() or '*' for name in FIELDS)


def describe(expression: str) -> str:
    return _DESCRIPTIONS.get(' '.join((expression or '').split()), '')


def _translate_day_of_week(field: str) -> str:
    if field in ('*', '?'):
        return '*'
    names: List[str] = []
    for part in field.split(','):
        base, _, step = part.partition('/')
        try:
            if base == '*':
                start, end = 0, 6
            elif '-' in base:
                low, high = base.split('-', 1)
                start, end = int(low), int(high)
            else:
                start = int(base)
                end = 6 if step else start
            values = range(start, end + 1, int(step) if step else 1)
        except ValueError:
            # names such as mon-fri mean the same thing to both
            names.append(part)
            continue
        for value in values:
            if not 0 <= value <= 7:
                raise ToolInputError(f'Day of week out of range: {value}', field='expression')
            if _WEEKDAY_NAMES[value] not in names:
                names.append(_WEEKDAY_NAMES[value])
    return ','.join(names)


def _zone(timezone: str) -> ZoneInfo:
    try:
        return ZoneInfo(timezone or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ToolInputError(f'Unknown timezone: {timezone}', field='timezone') from exc


def build_trigger(expression: str, timezone: str = DEFAULT_TIMEZONE) -> CronTrigger:
    fields = split_expression(expression)
    try:
        return CronTrigger(
            minute=fields['minute'],
            hour=fields['hour'],
            day=fields['day_of_month'],
            month=fields['month'],
            day_of_week=_translate_day_of_week(fields['day_of_week']),
            timezone=_zone(timezone),
        )
    except ValueError as exc:
        raise ToolInputError(f'Invalid cron expression: {exc}', field='expression') from exc


def next_runs(expression: str, timezone: str = DEFAULT_TIMEZONE, count: int = 5,
              start: Optional[datetime] = None) -> List[Dict[str, str]]:
    """Upcoming fire times after ``start`` (defaults to now) in ``timezone``."""
    if isinstance(count, bool) or not isinstance(count, int) or not 1 <= count <= MAX_RUNS:
        raise ToolInputError(f'count must be between 1 and {MAX_RUNS}', field='count')
    zone = _zone(timezone)
    trigger = build_trigger(expression, timezone)
    now = (start or datetime.now(zone)).astimezone(zone)

    runs = []
    previous = None
    for _ in range(count):
        fire_time = trigger.get_next_fire_time(previous, previous or now)
        if fire_time is None:
            break
        runs.append({
            'iso': fire_time.isoformat(),
            'display': fire_time.strftime('%Y-%m-%d %H:%M:%S'),
        })
        previous = fire_time
    return runs
