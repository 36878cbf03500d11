"""
Visit billing calculator.

Turns completed bookings into invoice lines using the client's rate
schedules. A visit is billed with the first active rate that covers its
date, weekday (or bank holiday) and planned start time; visits without a
matching rate are skipped.
"""
import logging
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Set

from django.utils import timezone

logger = logging.getLogger('medinfinite.billing')

DEFAULT_VAT_RATE = Decimal('0.20')
CENT = Decimal('0.01')
FLAT_BANDS = ((15, 'rate_15_minutes'), (30, 'rate_30_minutes'), (45, 'rate_45_minutes'), (60, 'rate_60_minutes'))


def money(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _local(value):
    return timezone.localtime(value) if timezone.is_aware(value) else value


def duration_minutes(start, end) -> int:
    return max(0, int((end - start).total_seconds() / 60 + 0.5))


def billing_minutes(minutes: int) -> int:
    """Anything over an hour is billed in whole hours, rounded up"""
    if minutes > 60:
        return math.ceil(minutes / 60) * 60
    return minutes


def covers_day(rate, visit_date, is_bank_holiday=False) -> bool:
    days = {str(day).lower() for day in (rate.days_covered or [])}
    full = visit_date.strftime('%A').lower()
    return full in days or full[:3] in days or (is_bank_holiday and 'bank_holiday' in days)


def find_applicable_rate(rates: Iterable, visit_date, start_time, is_bank_holiday=False, service_id=None):
    for rate in rates:
        if not rate.is_active:
            continue
        if visit_date < rate.start_date or (rate.end_date and visit_date > rate.end_date):
            continue
        if rate.service_id and service_id and rate.service_id != service_id:
            continue
        if not covers_day(rate, visit_date, is_bank_holiday):
            continue
        if rate.time_from <= start_time <= rate.time_until:
            return rate
    return None


def unit_rate(rate, minutes: int) -> Decimal:
    """Hourly rate; flat rates use the 15/30/45/60 minute band when one is set"""
    if rate.charge_type == 'flat_rate':
        for limit, field in FLAT_BANDS:
            band = getattr(rate, field)
            if minutes <= limit and band:
                return Decimal(band)
    return Decimal(rate.base_rate)


def calculate_visit(booking, rates, bank_holidays: Optional[Set] = None, use_actual_time=False,
                    vat_rate: Decimal = DEFAULT_VAT_RATE) -> Optional[Dict[str, Any]]:
    """
    Price one booking.

    Args:
        booking: Booking (its ``visit_record`` is used for actual times)
        rates: Candidate rate schedules in priority order
        bank_holidays: Set of bank holiday dates
        use_actual_time: Bill the recorded visit duration when there is one
        vat_rate: VAT applied to vatable rates

    Returns:
        Line dict, or None when no rate applies
    """
    start = _local(booking.start_time)
    visit_date = start.date()
    is_bank_holiday = visit_date in (bank_holidays or set())

    rate = find_applicable_rate(rates, visit_date, start.time(), is_bank_holiday, booking.service_id)
    if rate is None:
        logger.warning(f"No applicable rate for booking {booking.pk} on {visit_date} at {start:%H:%M}")
        return None

    planned = duration_minutes(booking.start_time, booking.end_time)
    actual = planned
    visit = getattr(booking, 'visit_record', None)
    if visit is not None and visit.visit_end_time:
        actual = duration_minutes(visit.visit_start_time, visit.visit_end_time)
    minutes = billing_minutes(actual if use_actual_time else planned)

    multiplier = Decimal(rate.bank_holiday_multiplier or 1) if is_bank_holiday else Decimal('1')
    price = unit_rate(rate, minutes)
    line_total = money(price * minutes / 60 * multiplier)
    vat = money(line_total * vat_rate) if rate.is_vatable else Decimal('0.00')

    description = (f"Service on {visit_date:%d/%m/%Y} {start:%H:%M} - {_local(booking.end_time):%H:%M} "
                   f"({minutes} mins {'actual' if use_actual_time and visit is not None else 'planned'})")
    if is_bank_holiday:
        description += f" - Bank Holiday ({multiplier}x)"

    return {
        'booking': booking,
        'description': description,
        'visit_date': visit_date,
        'planned_minutes': planned,
        'actual_minutes': actual,
        'billing_minutes': minutes,
        'rate': rate,
        'charge_type': rate.charge_type,
        'unit_price': money(price),
        'multiplier': multiplier,
        'line_total': line_total,
        'is_vatable': rate.is_vatable,
        'vat_amount': vat,
        'is_bank_holiday': is_bank_holiday,
        'applies_hourly_rounding': minutes != (actual if use_actual_time else planned),
    }


def calculate_visits(bookings, rates, bank_holidays: Optional[Set] = None, use_actual_time=False,
                     vat_rate: Decimal = DEFAULT_VAT_RATE) -> Dict[str, Any]:
    """Price every booking and total the result; unpriced bookings are listed in ``skipped``"""
    rates = list(rates)
    lines: List[Dict[str, Any]] = []
    skipped = []
    for booking in bookings:
        line = calculate_visit(booking, rates, bank_holidays, use_actual_time, vat_rate)
        if line is None:
            skipped.append(booking.pk)
        else:
            lines.append(line)

    net = sum((line['line_total'] for line in lines), Decimal('0.00'))
    vat = sum((line['vat_amount'] for line in lines), Decimal('0.00'))
    minutes = sum(line['billing_minutes'] for line in lines)
    return {
        'line_items': lines,
        'skipped': skipped,
        'net_amount': net,
        'vat_amount': vat,
        'total_amount': net + vat,
        'total_billable_minutes': minutes,
        'total_billable_hours': minutes // 60,
    }
