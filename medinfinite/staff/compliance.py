"""
Training and document compliance for carers.

Training items are classified as compliant, expiring-soon, expired or
not-started; documents as valid, expiring-soon, expired or missing.
"""
import calendar
from collections import defaultdict
from datetime import date

from django.utils import timezone

from medinfinite.core.utils import get_int_setting
from .models import Staff, TrainingRecord

EXPIRING_SOON_DAYS = 30
INCIDENT_KEYWORDS = ('incident', 'issue', 'concern')


def add_months(value: date, months: int) -> date:
    """Add calendar months, clamping the day to the end of the target month"""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def expiring_soon_days():
    return get_int_setting('expiring_soon_days', EXPIRING_SOON_DAYS)


def classify_training(record, today=None, window=EXPIRING_SOON_DAYS):
    today = today or timezone.localdate()
    if record.status == TrainingRecord.STATUS_EXPIRED:
        return 'expired'
    if record.status != TrainingRecord.STATUS_COMPLETED:
        return 'not-started'
    if record.expiry_date:
        days_left = (record.expiry_date - today).days
        if days_left < 0:
            return 'expired'
        if days_left <= window:
            return 'expiring-soon'
    return 'compliant'


def classify_document(document, today=None, window=EXPIRING_SOON_DAYS):
    today = today or timezone.localdate()
    if not document.file:
        return 'missing'
    if document.expiry_date:
        days_left = (document.expiry_date - today).days
        if days_left < 0:
            return 'expired'
        if days_left <= window:
            return 'expiring-soon'
    return 'valid'


def staff_compliance(staff, today=None):
    """Full compliance picture for one carer"""
    from medinfinite.bookings.models import Booking
    from medinfinite.visits.models import VisitRecord

    today = today or timezone.localdate()
    window = expiring_soon_days()

    training = []
    training_counts = defaultdict(int)
    for record in staff.training_records.select_related('course').order_by('course__title'):
        state = classify_training(record, today, window)
        training_counts[state] += 1
        training.append({
            'id': record.id,
            'course_id': record.course_id,
            'course': record.course.title,
            'category': record.course.category,
            'is_mandatory': record.course.is_mandatory,
            'status': record.status,
            'compliance_status': state,
            'completion_date': record.completion_date,
            'expiry_date': record.expiry_date,
            'days_until_expiry': (record.expiry_date - today).days if record.expiry_date else None,
        })

    documents = []
    document_counts = defaultdict(int)
    for document in staff.documents.all():
        state = classify_document(document, today, window)
        document_counts[state] += 1
        documents.append({
            'id': document.id,
            'document_type': document.document_type,
            'status': document.status,
            'compliance_status': state,
            'expiry_date': document.expiry_date,
        })

    cancelled = Booking.objects.filter(staff=staff, status=Booking.STATUS_CANCELLED).select_related('client').order_by('-start_time')
    missed_calls = [{
        'booking_id': booking.id,
        'client': booking.client.full_name,
        'start_time': booking.start_time,
        'reason': booking.cancellation_reason,
    } for booking in cancelled[:20]]

    incidents = []
    for visit in VisitRecord.objects.filter(staff=staff).exclude(visit_notes='').select_related('client').order_by('-visit_start_time')[:200]:
        notes = visit.visit_notes.lower()
        if any(keyword in notes for keyword in INCIDENT_KEYWORDS):
            incidents.append({
                'visit_id': visit.id,
                'client': visit.client.full_name,
                'date': visit.visit_start_time,
                'notes': visit.visit_notes,
            })

    total_items = len(training) + len(documents)
    good_items = training_counts['compliant'] + training_counts['expiring-soon'] + document_counts['valid'] + document_counts['expiring-soon']
    overall_score = round(good_items / total_items * 100) if total_items else 0

    return {
        'staff_id': staff.id,
        'staff_name': staff.full_name,
        'dbs_status': staff.dbs_status,
        'training': training,
        'training_summary': {
            'total': len(training),
            'compliant': training_counts['compliant'],
            'expiring_soon': training_counts['expiring-soon'],
            'expired': training_counts['expired'],
            'not_started': training_counts['not-started'],
        },
        'documents': documents,
        'document_summary': {
            'total': len(documents),
            'valid': document_counts['valid'],
            'expiring_soon': document_counts['expiring-soon'],
            'expired': document_counts['expired'],
            'missing': document_counts['missing'],
        },
        'missed_calls': missed_calls,
        'missed_calls_count': cancelled.count(),
        'incidents': incidents,
        'punctuality_score': staff.punctuality_score,
        'overall_score': overall_score,
    }


def compliance_class(rate):
    if rate >= 80:
        return 'high'
    if rate >= 60:
        return 'medium'
    return 'low'


def branch_training_metrics(branch, today=None):
    """Per-staff and per-category training compliance for a branch"""
    today = today or timezone.localdate()
    window = expiring_soon_days()

    records_by_staff = defaultdict(list)
    records = TrainingRecord.objects.filter(branch=branch).select_related('course', 'staff')
    for record in records:
        records_by_staff[record.staff_id].append(record)

    staff_rows = []
    category_totals = defaultdict(lambda: {'total': 0, 'completed': 0})
    total_records = total_completed = total_overdue = total_expiring = completed_this_month = 0

    for staff in Staff.objects.filter(branch=branch, status='active'):
        staff_records = records_by_staff.get(staff.id, [])
        completed = overdue = expiring = 0
        for record in staff_records:
            state = classify_training(record, today, window)
            category = category_totals[record.course.category]
            category['total'] += 1
            if state in ('compliant', 'expiring-soon'):
                completed += 1
                category['completed'] += 1
            if state == 'expired':
                overdue += 1
            if state == 'expiring-soon':
                expiring += 1
            if record.completion_date and (record.completion_date.year, record.completion_date.month) == (today.year, today.month):
                completed_this_month += 1

        rate = round(completed / len(staff_records) * 100) if staff_records else 0
        staff_rows.append({
            'staff_id': staff.id,
            'name': staff.full_name,
            'total': len(staff_records),
            'completed': completed,
            'overdue': overdue,
            'expiring': expiring,
            'compliance_rate': rate,
            'compliance_class': compliance_class(rate),
        })
        total_records += len(staff_records)
        total_completed += completed
        total_overdue += overdue
        total_expiring += expiring

    categories = []
    for name, counts in sorted(category_totals.items()):
        rate = round(counts['completed'] / counts['total'] * 100) if counts['total'] else 0
        categories.append({'category': name, **counts, 'compliance_rate': rate, 'compliance_class': compliance_class(rate)})

    overall = round(total_completed / total_records * 100) if total_records else 0
    return {
        'branch_id': branch.id,
        'branch_name': branch.name,
        'report_date': today,
        'summary': {
            'total_staff': len(staff_rows),
            'total_records': total_records,
            'overall_compliance': overall,
            'compliance_class': compliance_class(overall),
            'overdue': total_overdue,
            'expiring_soon': total_expiring,
            'completed_this_month': completed_this_month,
        },
        'staff': staff_rows,
        'categories': categories,
    }
