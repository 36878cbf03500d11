"""Carer schedule email"""
from django.utils import timezone
from django.utils.html import escape

from medinfinite.notifications.emails import wrap_html

STATUS_COLORS = {
    'assigned': '#2563eb',
    'confirmed': '#16a34a',
    'in_progress': '#9333ea',
    'completed': '#6b7280',
    'unassigned': '#ea580c',
}


def format_duration(minutes):
    hours, mins = divmod(int(minutes), 60)
    if hours and mins:
        return f"{hours}h {mins}m"
    if hours:
        return f"{hours}h"
    return f"{mins}m"


def date_range_display(start_date, end_date):
    return f"{start_date.day} {start_date:%B %Y} - {end_date.day} {end_date:%B %Y}"


def schedule_subject(start_date, end_date):
    return f"Your Booking Schedule - {date_range_display(start_date, end_date)}"


def render_carer_schedule_email(staff, bookings, start_date, end_date, sender_name):
    """HTML schedule of ``bookings`` for one carer"""
    total_minutes = sum(booking.duration_minutes for booking in bookings)
    rows = []
    for booking in bookings:
        start = timezone.localtime(booking.start_time)
        end = timezone.localtime(booking.end_time)
        colour = STATUS_COLORS.get(booking.status, '#2563eb')
        rows.append(
            f"<tr><td>{start:%d/%m/%Y}</td><td>{start:%H:%M} - {end:%H:%M}</td>"
            f"<td><strong>{escape(booking.client.full_name)}</strong></td>"
            f"<td>{escape(booking.client.address or 'No address')}</td>"
            f"<td>{escape(booking.service.title if booking.service_id else 'N/A')}</td>"
            f"<td>{format_duration(booking.duration_minutes)}</td>"
            f"<td><span style=\"color: white; background-color: {colour}; padding: 2px 6px; border-radius: 4px;\">"
            f"{escape(booking.get_status_display())}</span></td></tr>"
        )

    if rows:
        table = (
            '<table style="border-collapse: collapse; width: 100%;" cellpadding="6">'
            '<tr style="background-color: #f3f4f6;"><th align="left">Date</th><th align="left">Time</th>'
            '<th align="left">Client</th><th align="left">Address</th><th align="left">Service(s)</th>'
            '<th align="left">Duration</th><th align="left">Status</th></tr>'
            f"{''.join(rows)}</table>"
        )
    else:
        table = ('<p style="background-color: #fef3c7; border: 1px solid #f59e0b; padding: 12px;">'
                 'No bookings found for this date range.</p>')

    period = date_range_display(start_date, end_date)
    body = f"""
<p>Dear {escape(staff.full_name)},</p>
<p>Here is your booking schedule for <strong>{period}</strong>:</p>
<p>Total Bookings: <strong>{len(bookings)}</strong> &nbsp; Total Hours: <strong>{total_minutes / 60:.1f}h</strong></p>
{table}
<p style="color: #6b7280;">This schedule was sent by <strong>{escape(sender_name)}</strong> from <strong>{escape(staff.branch.name)}</strong>.</p>
<p style="color: #6b7280;">If you have any questions about your schedule, please contact your branch administrator.</p>
"""
    return wrap_html(schedule_subject(start_date, end_date), body)
