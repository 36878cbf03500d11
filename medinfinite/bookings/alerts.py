"""
Late start and missed booking processing.

Run periodically (``manage.py process_late_bookings``). A booking that is
assigned or confirmed, past its start time and not cancelled gets a late
start alert once it is ``first_alert_delay_minutes`` late and a missed
booking alert once it passes ``missed_booking_threshold_minutes``. Each
alert goes to every super admin and the branch's admins exactly once.
"""
import logging
import math

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from medinfinite.branches.access import branch_admin_users
from medinfinite.notifications.services import notify_users
from .models import Booking, BookingAlertSettings

logger = logging.getLogger('medinfinite.bookings')

LATE_START_TITLE = 'Booking Not Started On Time'
MISSED_TITLE = 'Missed Booking Alert'
PUNCTUALITY_STATUSES = (
    Booking.STATUS_COMPLETED, Booking.STATUS_IN_PROGRESS, Booking.STATUS_CONFIRMED, Booking.STATUS_ASSIGNED,
)


def punctuality_score(total_bookings, late_count):
    """max(0, round((total - late) / total * 100)), rounding halves up"""
    total = total_bookings or 1
    return max(0, math.floor((total - late_count) / total * 100 + 0.5))


def _alert_details(booking, minutes_late):
    client_name = booking.client.full_name if booking.client_id else 'Unknown Client'
    carer_name = booking.staff.full_name if booking.staff_id else 'Unassigned'
    start = timezone.localtime(booking.start_time)
    end = timezone.localtime(booking.end_time)
    return {
        'booking_id': booking.id,
        'client_name': client_name,
        'carer_name': carer_name,
        'service': booking.service.title if booking.service_id else 'Care Service',
        'location': booking.client.address or 'Address not provided',
        'scheduled_time': f"{start:%H:%M} - {end:%H:%M}",
        'minutes_late': minutes_late,
    }


def _notify(booking, kind, minutes_late):
    details = _alert_details(booking, minutes_late)
    if kind == 'late_start':
        title = LATE_START_TITLE
        message = (f"{details['carer_name']} has not started the visit for {details['client_name']} "
                   f"scheduled at {timezone.localtime(booking.start_time):%H:%M}")
        priority = 'high'
    else:
        title = MISSED_TITLE
        message = (f"{details['carer_name']} missed the booking for {details['client_name']} - "
                   f"Grace period exceeded ({minutes_late} minutes late)")
        priority = 'critical'

    return notify_users(
        branch_admin_users(booking.branch_id),
        title,
        message,
        type='booking',
        category=kind,
        priority=priority,
        branch=booking.branch,
        data=details,
    )


def _record_missed_for_staff(staff):
    staff.late_arrival_count += 1
    staff.missed_booking_count += 1
    total = Booking.objects.filter(staff=staff, status__in=PUNCTUALITY_STATUSES).count()
    staff.punctuality_score = punctuality_score(total, staff.late_arrival_count)
    staff.save(update_fields=['late_arrival_count', 'missed_booking_count', 'punctuality_score', 'updated_at'])


def process_late_bookings(now=None):
    """Raise late start and missed alerts; returns counters"""
    now = now or timezone.now()
    candidates = Booking.objects.filter(
        Q(late_start_notified_at__isnull=True) | Q(missed_notified_at__isnull=True),
        status__in=Booking.NOT_STARTED_STATUSES,
        start_time__lt=now,
        cancelled_at__isnull=True,
    ).select_related('client', 'staff', 'service', 'branch').order_by('start_time')

    result = {'processed': 0, 'late_alerts': 0, 'missed_alerts': 0, 'staff_updated': 0}
    settings_cache = {}

    for booking in candidates:
        result['processed'] += 1
        alert_settings = settings_cache.get(booking.branch_id)
        if alert_settings is None:
            alert_settings = settings_cache[booking.branch_id] = BookingAlertSettings.for_branch(booking.branch_id)

        minutes_late = int((now - booking.start_time).total_seconds() // 60)

        with transaction.atomic():
            if (alert_settings.enable_late_start_alerts and
                    minutes_late >= alert_settings.first_alert_delay_minutes and
                    booking.late_start_notified_at is None):
                _notify(booking, 'late_start', minutes_late)
                booking.is_late_start = True
                booking.late_start_notified_at = now
                booking.late_start_minutes = minutes_late
                booking.save(update_fields=['is_late_start', 'late_start_notified_at', 'late_start_minutes', 'updated_at'])
                result['late_alerts'] += 1

            if (alert_settings.enable_missed_booking_alerts and
                    minutes_late >= alert_settings.missed_booking_threshold_minutes and
                    booking.missed_notified_at is None):
                _notify(booking, 'missed_booking', minutes_late)
                booking.is_missed = True
                booking.missed_notified_at = now
                booking.save(update_fields=['is_missed', 'missed_notified_at', 'updated_at'])
                if booking.staff_id:
                    _record_missed_for_staff(booking.staff)
                    result['staff_updated'] += 1
                result['missed_alerts'] += 1

    logger.info(f"Late booking check at {now.isoformat()}: {result}")
    return result
