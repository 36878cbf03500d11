"""
Staff document notifications.

Uploads notify the carer's branch admins and every super admin. The
expiring documents pass (``manage.py notify_expiring_documents``) tells
the same admins and the carer once per document, expiry date and state.
"""
import logging
from datetime import timedelta

from django.utils import timezone

from medinfinite.branches.access import branch_admin_users
from medinfinite.notifications.models import Notification
from medinfinite.notifications.services import notify_users
from .compliance import classify_document, expiring_soon_days
from .models import StaffDocument

logger = logging.getLogger('medinfinite.staff')

UPLOAD_CATEGORY = 'staff_document_uploaded'
EXPIRY_CATEGORIES = {
    'expiring-soon': 'staff_document_expiring',
    'expired': 'staff_document_expired',
}


def notify_document_uploaded(document):
    staff = document.staff
    return notify_users(
        branch_admin_users(staff.branch_id),
        'Staff Document Uploaded',
        f"{staff.full_name} uploaded a new document: {document.document_type}.",
        type='staff',
        branch=staff.branch,
        category=UPLOAD_CATEGORY,
        data={'document_id': document.id, 'staff_id': staff.id},
    )


def _already_notified(document, category):
    return Notification.objects.filter(
        category=category,
        data__document_id=document.id,
        data__expiry_date=document.expiry_date.isoformat(),
    ).exists()


def _expiry_message(document, state, today):
    days_left = (document.expiry_date - today).days
    name = document.staff.full_name
    if state == 'expired':
        return (f"{name}'s document {document.document_type} expired on "
                f"{document.expiry_date.strftime('%d/%m/%Y')}.")
    when = 'today' if days_left == 0 else f"in {days_left} day{'s' if days_left != 1 else ''}"
    return f"{name}'s document {document.document_type} expires {when}."


def process_expiring_documents(today=None, send_email=False):
    """Notify about expiring and expired staff documents; returns counters"""
    today = today or timezone.localdate()
    window = expiring_soon_days()
    candidates = StaffDocument.objects.filter(
        expiry_date__isnull=False,
        expiry_date__lte=today + timedelta(days=window),
    ).exclude(status='rejected').exclude(
        staff__status__in=('inactive', 'terminated'),
    ).select_related('staff', 'staff__branch', 'staff__user')

    result = {'checked': 0, 'expiring': 0, 'expired': 0, 'notifications': 0}
    for document in candidates:
        result['checked'] += 1
        state = classify_document(document, today=today, window=window)
        category = EXPIRY_CATEGORIES.get(state)
        if category is None or _already_notified(document, category):
            continue

        staff = document.staff
        recipients = list(branch_admin_users(staff.branch_id))
        if staff.user_id and staff.user.is_active and staff.user not in recipients:
            recipients.append(staff.user)
        created = notify_users(
            recipients,
            'Staff Document Expired' if state == 'expired' else 'Staff Document Expiring Soon',
            _expiry_message(document, state, today),
            type='staff',
            priority='high' if state == 'expired' else 'medium',
            branch=staff.branch,
            category=category,
            data={'document_id': document.id, 'staff_id': staff.id,
                  'expiry_date': document.expiry_date.isoformat()},
            send_email=send_email,
        )
        result['expired' if state == 'expired' else 'expiring'] += 1
        result['notifications'] += len(created)

    logger.info(f"Staff document expiry check for {today.isoformat()}: {result}")
    return result
