"""Helpers other apps use to raise notifications"""
import logging

from django.utils import timezone

from .emails import render_notification_email, send_html_email
from .models import Notification

logger = logging.getLogger('medinfinite.notifications')


def notify_users(users, title, message, type='system', priority='medium', branch=None,
                 category='', data=None, expires_at=None, send_email=False):
    """Create one notification per user; returns the created notifications"""
    notifications = [
        Notification(
            user=user,
            branch=branch,
            title=title,
            message=message,
            type=type,
            category=category,
            priority=priority,
            data=data or {},
            expires_at=expires_at,
        )
        for user in users
    ]
    if not notifications:
        return []

    created = Notification.objects.bulk_create(notifications)
    logger.info(f"Created {len(created)} '{type}' notification(s): {title}")

    if send_email:
        for notification in created:
            try:
                send_notification_email(notification)
            except Exception as e:
                logger.error(f"Failed to email notification {notification.pk}: {str(e)}", exc_info=True)
    return created


def notify_branch_admins(branch, title, message, **kwargs):
    from medinfinite.branches.access import branch_admin_users
    return notify_users(branch_admin_users(branch.id), title, message, branch=branch, **kwargs)


def send_notification_email(notification):
    """Email a notification to its user and stamp email_sent_at"""
    user = notification.user
    if not user.email:
        raise ValueError(f'User {user.username} has no email address')

    subject, html = render_notification_email(notification, user.first_name or user.username)
    sent = send_html_email(subject, html, [user.email])
    if sent:
        Notification.objects.filter(pk=notification.pk).update(email_sent_at=timezone.now())
    return sent
