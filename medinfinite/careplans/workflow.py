"""
Care plan lifecycle: draft auto-save, status transitions, approvals and
the medication administration record (MAR) chart.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from medinfinite.clients.statuses import CARE_PLAN_STATUSES, normalize_status, client_status_for_care_plan
from medinfinite.visits.signature import signature_from_payload
from .completion import completion_percentage, completed_steps
from .models import CarePlan, CarePlanStatusHistory, MedicationAdministration

logger = logging.getLogger('medinfinite.careplans')


def autosave_interval():
    return timedelta(seconds=getattr(settings, 'CARE_PLAN_AUTOSAVE_INTERVAL', 30))


def autosave(care_plan, wizard_data, step=None, force=False, now=None):
    """
    Store the wizard's draft on the care plan.

    Returns (saved, percentage). Saves arriving within the auto-save
    interval of the previous one are accepted but not written unless
    ``force`` is set.
    """
    now = now or timezone.now()
    percentage = completion_percentage(wizard_data, care_plan.is_child)

    last = care_plan.last_autosaved_at
    if not force and last is not None and now - last < autosave_interval():
        logger.debug(f"Auto-save of care plan {care_plan.pk} skipped, last save at {last}")
        return False, percentage

    care_plan.wizard_data = wizard_data
    care_plan.completion_percentage = percentage
    if step is not None:
        care_plan.last_step_completed = max(care_plan.last_step_completed, int(step))
    else:
        steps = completed_steps(wizard_data, care_plan.is_child)
        care_plan.last_step_completed = max(steps) if steps else 0
    care_plan.last_autosaved_at = now
    if isinstance(wizard_data, dict) and isinstance(wizard_data.get('title'), str) and wizard_data['title'].strip():
        care_plan.title = wizard_data['title'].strip()[:255]
    care_plan.save(update_fields=['wizard_data', 'completion_percentage', 'last_step_completed',
                                  'last_autosaved_at', 'title', 'updated_at'])
    return True, percentage


@transaction.atomic
def change_status(care_plan, new_status, user=None, reason=''):
    """
    Move a care plan to ``new_status``, record the transition and keep the
    client's status in step with it. Returns the history row, or None when
    the status is unchanged.
    """
    target = normalize_status(new_status)
    if target not in CARE_PLAN_STATUSES:
        raise ValueError(f"'{new_status}' is not a valid care plan status")

    previous = care_plan.status
    if previous == target:
        return None

    care_plan.status = target
    care_plan.save(update_fields=['status', 'updated_at'])
    history = CarePlanStatusHistory.objects.create(
        care_plan=care_plan,
        from_status=previous,
        to_status=target,
        changed_by=user,
        reason=reason or '',
    )

    client_status = client_status_for_care_plan(target)
    client = care_plan.client
    if client_status and client.status != client_status:
        client.status = client_status
        client.save(update_fields=['status', 'updated_at'])
        logger.info(f"Client {client.pk} status set to '{client_status}' from care plan {care_plan.display_id}")
    return history


@transaction.atomic
def submit_for_approval(care_plan, user=None):
    if care_plan.approval_status == CarePlan.APPROVAL_APPROVED:
        raise ValueError('Care plan is already approved')
    care_plan.approval_status = CarePlan.APPROVAL_PENDING
    care_plan.rejection_reason = ''
    care_plan.save(update_fields=['approval_status', 'rejection_reason', 'updated_at'])
    change_status(care_plan, 'Under Review', user, 'Submitted for approval')


def approve(care_plan, user, require_client_approval=False):
    """Approve a care plan, optionally handing it to the client for sign-off"""
    if care_plan.approval_status not in (CarePlan.APPROVAL_PENDING, CarePlan.APPROVAL_REJECTED,
                                         CarePlan.APPROVAL_NOT_SUBMITTED):
        raise ValueError(f"Cannot approve a care plan that is {care_plan.get_approval_status_display().lower()}")

    with transaction.atomic():
        care_plan.approved_by = user
        care_plan.approved_at = timezone.now()
        care_plan.rejection_reason = ''
        if require_client_approval:
            care_plan.approval_status = CarePlan.APPROVAL_PENDING_CLIENT
        else:
            care_plan.approval_status = CarePlan.APPROVAL_APPROVED
        care_plan.save(update_fields=['approved_by', 'approved_at', 'rejection_reason', 'approval_status', 'updated_at'])
        if not require_client_approval:
            change_status(care_plan, 'Active', user, 'Approved')


def reject(care_plan, user, reason):
    reason = '' if reason is None else str(reason).strip()
    if not reason:
        raise ValueError('A rejection reason is required')
    with transaction.atomic():
        care_plan.approval_status = CarePlan.APPROVAL_REJECTED
        care_plan.rejection_reason = reason
        care_plan.approved_by = None
        care_plan.approved_at = None
        care_plan.save(update_fields=['approval_status', 'rejection_reason', 'approved_by', 'approved_at', 'updated_at'])
        change_status(care_plan, 'Draft', user, f'Rejected: {reason}')


def client_approve(care_plan, user, signature):
    """Record the client's signed acknowledgement and activate the plan"""
    if care_plan.approval_status != CarePlan.APPROVAL_PENDING_CLIENT:
        raise ValueError('Care plan is not awaiting client approval')
    if not signature:
        raise ValueError('A client signature is required')
    signature = signature_from_payload(signature)
    with transaction.atomic():
        care_plan.client_signature = signature
        care_plan.client_acknowledged_at = timezone.now()
        care_plan.approval_status = CarePlan.APPROVAL_APPROVED
        care_plan.save(update_fields=['client_signature', 'client_acknowledged_at', 'approval_status', 'updated_at'])
        change_status(care_plan, 'Active', user, 'Approved by client')


def mar_chart(care_plan, start, end):
    """
    Medication administration chart for ``start``..``end`` inclusive.

    One row per medication, one cell per day listing the administrations
    recorded that day. Days the medication was due but has no entry are
    flagged ``missing``.
    """
    if end < start:
        raise ValueError('End date must be on or after start date')

    days = [start + timedelta(days=offset) for offset in range((end - start).days + 1)]
    medications = list(care_plan.medications.all())
    records = MedicationAdministration.objects.filter(
        medication__in=medications,
        administered_at__date__gte=start,
        administered_at__date__lte=end,
    ).select_related('administered_by').order_by('administered_at')

    by_key = {}
    for record in records:
        local = timezone.localtime(record.administered_at)
        day = local.date()
        by_key.setdefault((record.medication_id, day), []).append({
            'id': record.id,
            'time': local.strftime('%H:%M'),
            'status': record.status,
            'administered_by': record.administered_by.display_name if record.administered_by else None,
            'notes': record.notes,
        })

    rows = []
    for medication in medications:
        cells = []
        for day in days:
            entries = by_key.get((medication.id, day), [])
            cells.append({
                'date': day.isoformat(),
                'entries': entries,
                'missing': medication.is_active_on(day) and not entries,
            })
        rows.append({
            'medication_id': medication.id,
            'name': medication.name,
            'dosage': medication.dosage,
            'frequency': medication.frequency,
            'route': medication.route,
            'days': cells,
        })
    return {'start_date': start.isoformat(), 'end_date': end.isoformat(),
            'dates': [day.isoformat() for day in days], 'medications': rows}
