"""
HTML email rendering and delivery through Django's email backend
"""
import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.utils.html import escape, strip_tags

logger = logging.getLogger('medinfinite.notifications')

PRIORITY_COLORS = {
    'critical': '#991b1b',
    'urgent': '#dc2626',
    'high': '#ea580c',
    'medium': '#eab308',
    'low': '#6b7280',
}

# (type, message keyword or None, subject, path, action text, heading colour)
EMAIL_RULES = [
    ('booking', 'unassigned', 'Unassigned Bookings Require Staff Allocation', '/bookings', 'Assign Staff', '#ea580c'),
    ('booking', 'not started', 'Booking Not Started On Time', '/bookings', 'View Booking', '#ea580c'),
    ('booking', 'missed', 'Missed Booking Alert', '/bookings', 'View Booking', '#dc2626'),
    ('booking', 'rescheduled', 'Booking Rescheduled', '/bookings', 'View Updated Booking', '#1e40af'),
    ('booking', 'assigned', 'New Booking Assigned', '/bookings', 'View Booking', '#1e40af'),
    ('booking', None, 'Booking Update', '/bookings', 'View Booking', '#1e40af'),
    ('staff', 'document', 'Staff Document Expiring Soon', '/staff', 'View Documents', '#ea580c'),
    ('training', None, 'Training Alert', '/training', 'View Training', '#1e40af'),
    ('client', None, 'Client Update', '/clients', 'View Client', '#1e40af'),
    ('care_plan', None, 'Care Plan Update', '/care-plans', 'View Care Plan', '#1e40af'),
    ('medication', None, 'Medication Alert', '/medications', 'View Medication', '#dc2626'),
    ('message', None, 'New Message', '/messages', 'Read Message', '#1e40af'),
    ('clinical', None, 'Clinical Alert', '/clients', 'View Observation', '#dc2626'),
    ('billing', None, 'Billing Update', '/billing', 'View Invoice', '#1e40af'),
    ('system', None, 'System Alert', '', 'View Details', '#1e40af'),
]


def _match_rule(notification_type, message):
    lowered = (message or '').lower()
    for rule_type, keyword, subject, path, action_text, colour in EMAIL_RULES:
        if rule_type != notification_type:
            continue
        if keyword is None or keyword in lowered:
            return subject, path, action_text, colour
    return None


def render_notification_email(notification, user_name):
    """Return (subject, html) for a notification"""
    site_url = settings.SITE_URL.rstrip('/')
    rule = _match_rule(notification.type, notification.message)
    if rule:
        subject, path, action_text, colour = rule
    else:
        subject, path, action_text, colour = notification.title, '', 'View Details', '#1e40af'

    badge_colour = PRIORITY_COLORS.get(notification.priority, PRIORITY_COLORS['medium'])
    html = f"""
<p style="font-size: 16px; color: #374151;">Hi {escape(user_name)},</p>
<div style="display: inline-block; background-color: {badge_colour}; color: #ffffff; padding: 4px 12px; border-radius: 12px; font-size: 12px; font-weight: 600; text-transform: uppercase;">
  {escape(notification.priority)} Priority
</div>
<h2 style="color: {colour}; font-size: 20px;">{escape(notification.title)}</h2>
<p style="font-size: 16px; color: #374151;">{escape(notification.message)}</p>
<div style="margin: 32px 0;">
  <a href="{escape(site_url + path)}" style="background-color: #2563eb; color: #ffffff; padding: 14px 32px; border-radius: 8px; text-decoration: none; font-weight: 600;">{escape(action_text)}</a>
</div>
<p style="font-size: 14px; color: #6b7280; border-top: 1px solid #e5e7eb; padding-top: 16px;">
  <strong>Need help?</strong> Contact your administrator.
</p>
"""
    return subject, wrap_html(subject, html)


def wrap_html(title, body):
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{escape(title)}</title></head>
<body style="font-family: Arial, sans-serif; background-color: #f9fafb; padding: 24px;">
<div style="max-width: 640px; margin: 0 auto; background-color: #ffffff; padding: 32px; border-radius: 8px;">
{body}
</div>
</body>
</html>"""


def send_html_email(subject, html, recipients, attachments=None):
    """
    Send an HTML email with a plain-text alternative.

    attachments is a list of (filename, content, mimetype) tuples.
    Returns the number of messages sent.
    """
    recipients = [address for address in recipients if address]
    if not recipients:
        raise ValueError('At least one recipient email address is required')

    message = EmailMultiAlternatives(
        subject=subject,
        body=strip_tags(html),
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=recipients,
    )
    message.attach_alternative(html, 'text/html')
    for filename, content, mimetype in attachments or []:
        message.attach(filename, content, mimetype)

    sent = message.send()
    logger.info(f"Sent email '{subject}' to {len(recipients)} recipient(s)")
    return sent
