"""
Booking overlap validation.

A carer cannot hold two intersecting bookings on the same branch. Two
bookings intersect when ``start < other.end and end > other.start``, so
back-to-back visits are allowed. Cancelled bookings never conflict.
"""
import logging

from django.utils import timezone

from medinfinite.staff.models import Staff
from .models import Booking

logger = logging.getLogger('medinfinite.bookings')


class BookingConflictError(ValueError):
    """Raised when a carer is already booked for part of the requested slot"""

    def __init__(self, message, conflicts, available_carers=None):
        super().__init__(message)
        self.conflicts = conflicts
        self.available_carers = available_carers or []

    def as_dict(self):
        return {
            'error': str(self),
            'conflicting_bookings': self.conflicts,
            'available_carers': self.available_carers,
        }


def overlapping_bookings(branch_id, staff_id, start_time, end_time, exclude_id=None):
    queryset = Booking.objects.filter(
        branch_id=branch_id,
        staff_id=staff_id,
        start_time__lt=end_time,
        end_time__gt=start_time,
    ).exclude(status=Booking.STATUS_CANCELLED).select_related('client')
    if exclude_id is not None:
        queryset = queryset.exclude(pk=exclude_id)
    return queryset


def _describe(booking):
    start = timezone.localtime(booking.start_time)
    end = timezone.localtime(booking.end_time)
    return {
        'id': booking.id,
        'client_name': booking.client.full_name if booking.client_id else 'Unknown Client',
        'date': start.date().isoformat(),
        'start_time': start.strftime('%H:%M'),
        'end_time': end.strftime('%H:%M'),
        'status': booking.status,
    }


def available_carers(branch_id, start_time, end_time, exclude_staff_id=None):
    """Active carers of the branch with no booking intersecting the slot"""
    busy = Booking.objects.filter(
        branch_id=branch_id,
        staff__isnull=False,
        start_time__lt=end_time,
        end_time__gt=start_time,
    ).exclude(status=Booking.STATUS_CANCELLED).values_list('staff_id', flat=True)
    carers = Staff.objects.filter(branch_id=branch_id, status='active').exclude(pk__in=busy)
    if exclude_staff_id is not None:
        carers = carers.exclude(pk=exclude_staff_id)
    return [
        {'id': carer.id, 'name': carer.full_name,
         'initials': f"{carer.first_name[:1]}{carer.last_name[:1]}".upper()}
        for carer in carers.order_by('last_name', 'first_name')
    ]


def validate_booking_slot(branch_id, staff_id, start_time, end_time, exclude_id=None, suggest_carers=False):
    """Raise BookingConflictError when the carer is already booked during the slot"""
    if end_time <= start_time:
        raise ValueError('End time must be after start time')
    if not staff_id:
        return

    conflicts = [_describe(booking) for booking in overlapping_bookings(branch_id, staff_id, start_time, end_time, exclude_id)]
    if not conflicts:
        return

    first = conflicts[0]
    message = (
        f"Carer is already booked for {first['client_name']} on {first['date']} "
        f"from {first['start_time']} to {first['end_time']} ({first['status']})"
    )
    if len(conflicts) > 1:
        message += f" and {len(conflicts) - 1} other booking(s)"
    logger.warning(f"Booking conflict for staff {staff_id}: {message}")

    suggestions = available_carers(branch_id, start_time, end_time, staff_id) if suggest_carers else []
    raise BookingConflictError(message, conflicts, suggestions)
