"""Turns a day of a weekly availability template into bookable start times."""

import re
from collections.abc import Mapping
from datetime import date

SLOT_INTERVAL_MINUTES = 30
WEEKDAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')

_TIME_OF_DAY_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')


def to_minutes(value: str) -> int:
    """Convert a zero-padded 24h ``HH:MM`` string to minutes since midnight."""
    match = _TIME_OF_DAY_PATTERN.match(value or '')
    if match is None:
        raise ValueError('Times must use the 24-hour HH:MM format.')

    return int(match.group(1)) * 60 + int(match.group(2))


def format_minutes(minutes: int) -> str:
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def weekday_name(slot_date: date) -> str:
    return WEEKDAYS[slot_date.weekday()]


def opening_window(template: Mapping, weekday: str) -> tuple[int, int] | None:
    """Return ``(start, end)`` minutes for ``weekday``, or None when the doctor is off.

    Day entries may be ``DayHours`` models or the raw ``{'start', 'end',
    'available'}`` mappings stored on the doctor.
    """
    day = template.get(weekday)
    if day is None:
        return None

    if isinstance(day, Mapping):
        if not day.get('available'):
            return None
        start, end = day.get('start'), day.get('end')
    else:
        if not day.available:
            return None
        start, end = day.start, day.end

    return to_minutes(start), to_minutes(end)


def generate_slots(template: Mapping, weekday: str) -> list[str]:
    window = opening_window(template, weekday)
    if window is None:
        return []

    slots: list[str] = []
    current, end_minutes = window

    # the closing time itself is never a valid start
    while current < end_minutes:
        slots.append(format_minutes(current))
        current += SLOT_INTERVAL_MINUTES

    return slots


def is_within_hours(template: Mapping, weekday: str, slot_time: str) -> bool:
    window = opening_window(template, weekday)
    if window is None:
        return False

    start_minutes, end_minutes = window
    return start_minutes <= to_minutes(slot_time) < end_minutes
