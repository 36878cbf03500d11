"""
Recurring booking generation.

A request holds a date range, an every-N-weeks frequency and one or more
schedules (start/end time, selected weekdays, optional service). Each
schedule yields one booking per matching date in the range.
"""
import logging
import re
from datetime import datetime, timedelta

from django.utils import timezone

logger = logging.getLogger('medinfinite.bookings')

# Python weekday() order
DAY_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']
DAY_KEYS = ['mon', 'tue', 'wed', 'thu', 'fri', 'sat', 'sun']
TIME_RE = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)$')


def is_valid_time(value):
    return isinstance(value, str) and bool(TIME_RE.match(value.strip()))


def parse_time(value):
    hours, minutes = value.strip().split(':')
    return int(hours), int(minutes)


def selected_weekdays(days):
    """
    Accept {'mon': True, ...}, ['mon', 'Tuesday', ...] or weekday numbers
    (0 = Monday) and return sorted weekday numbers.
    """
    if not days:
        return []
    selected = set()
    if isinstance(days, dict):
        for key, enabled in days.items():
            index = _day_index(key)
            if enabled and index is not None:
                selected.add(index)
    else:
        for value in days:
            index = value if isinstance(value, int) and 0 <= value <= 6 else _day_index(value)
            if index is not None:
                selected.add(index)
    return sorted(selected)


def _day_index(value):
    key = str(value).strip().lower()[:3]
    return DAY_KEYS.index(key) if key in DAY_KEYS else None


def dates_for_weekday(from_date, until_date, weekday, every_weeks=1):
    """
    Dates between ``from_date`` and ``until_date`` inclusive falling on
    ``weekday``, keeping one week in every ``every_weeks`` counted from the
    first occurrence.
    """
    if until_date < from_date:
        raise ValueError('Until date must be on or after from date')
    every_weeks = max(1, int(every_weeks or 1))
    current = from_date + timedelta(days=(weekday - from_date.weekday()) % 7)
    dates = []
    while current <= until_date:
        dates.append(current)
        current += timedelta(weeks=every_weeks)
    return dates


def _aware(day, hours, minutes):
    return timezone.make_aware(datetime(day.year, day.month, day.day, hours, minutes))


def generate_recurring_bookings(from_date, until_date, schedules, every_weeks=1, client=None, staff=None, notes=''):
    """
    Expand schedules into booking payloads.

    Returns a dict with ``bookings`` (dicts ready for Booking(**payload)),
    ``errors``, ``warnings``, ``success`` and a ``summary``.
    """
    bookings, errors, warnings = [], [], []
    all_days = set()

    if until_date < from_date:
        errors.append('Until date must be on or after from date')
        schedules = []
    elif not schedules:
        errors.append('At least one schedule is required')

    for index, schedule in enumerate(schedules, start=1):
        start, end = schedule.get('start_time'), schedule.get('end_time')
        if not is_valid_time(start) or not is_valid_time(end):
            errors.append(f'Schedule {index}: Invalid time format')
            continue

        start_hm, end_hm = parse_time(start), parse_time(end)
        if end_hm <= start_hm:
            errors.append(f'Schedule {index}: End time must be after start time')
            continue

        days = selected_weekdays(schedule.get('days'))
        if not days:
            days = selected_weekdays({key: schedule.get(key) for key in DAY_KEYS})
        if not days:
            warnings.append(f'Schedule {index}: No days selected, defaulting to all days')
            days = list(range(7))
        all_days.update(days)

        for weekday in days:
            for day in dates_for_weekday(from_date, until_date, weekday, every_weeks):
                bookings.append({
                    'client': client,
                    'staff': staff,
                    'service_id': schedule.get('service'),
                    'start_time': _aware(day, *start_hm),
                    'end_time': _aware(day, *end_hm),
                    'notes': notes or '',
                })

    bookings.sort(key=lambda payload: payload['start_time'])
    logger.debug(f"Generated {len(bookings)} recurring bookings between {from_date} and {until_date}")
    return {
        'success': not errors and bool(bookings),
        'bookings': bookings,
        'errors': errors,
        'warnings': warnings,
        'summary': {
            'total_bookings': len(bookings),
            'date_range': {'start': from_date.isoformat(), 'end': until_date.isoformat()},
            'selected_days': sorted(all_days),
            'recurrence_weeks': max(1, int(every_weeks or 1)),
        },
    }


def preview_recurring_bookings(from_date, until_date, schedules, every_weeks=1):
    """Dates, totals and a per-weekday breakdown without creating anything"""
    result = generate_recurring_bookings(from_date, until_date, schedules, every_weeks)
    if not result['success']:
        return {'dates': [], 'total_bookings': 0, 'errors': result['errors'],
                'warnings': result['warnings'], 'day_breakdown': []}

    dates = sorted({timezone.localtime(payload['start_time']).date() for payload in result['bookings']})
    breakdown = []
    for weekday, name in enumerate(DAY_NAMES):
        day_dates = [day.isoformat() for day in dates if day.weekday() == weekday]
        if day_dates:
            breakdown.append({'day': name, 'dates': day_dates})
    return {
        'dates': [day.isoformat() for day in dates],
        'total_bookings': len(result['bookings']),
        'errors': result['errors'],
        'warnings': result['warnings'],
        'day_breakdown': breakdown,
    }
