import logging
from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Count, F, Q, Sum, DecimalField
from django.http import HttpResponse
from django.utils import timezone

from medinfinite.billing.models import Invoice
from medinfinite.bookings.models import Booking
from medinfinite.branches.access import can_manage_branch, is_admin
from medinfinite.branches.models import AdminBranch, Branch
from medinfinite.careplans.models import CarePlan
from medinfinite.clients.models import Client
from medinfinite.core.cache_utils import get_cached_dashboard_kpis, cache_dashboard_kpis
from medinfinite.staff.compliance import classify_training, expiring_soon_days
from medinfinite.staff.models import Staff, TrainingRecord
from medinfinite.visits.models import News2Observation
from .generator import summarize, to_csv, to_pdf

logger = logging.getLogger('medinfinite.reports')

UNPAID_STATUSES = ['draft', 'sent', 'partial', 'overdue']


class ReportAccessError(Exception):
    pass


def _report_branch_ids(request):
    """
    Branch ids the caller may report on, or None for every branch.
    Raises ReportAccessError when reports are not available to the caller.
    """
    user = request.user
    branch = request.query_params.get('branch')
    if branch:
        try:
            branch_id = int(branch)
        except ValueError:
            raise ReportAccessError('Invalid branch')
        if not can_manage_branch(user, branch_id, 'reports'):
            raise ReportAccessError('You cannot view reports for this branch')
        return [branch_id]
    if user.is_super_admin:
        return None
    if not is_admin(user):
        raise ReportAccessError('Only administrators can view reports')
    return [link.branch_id for link in AdminBranch.objects.filter(admin=user) if (link.permissions or {}).get('reports')]


def _scope(queryset, branch_ids, field='branch'):
    if branch_ids is None:
        return queryset
    return queryset.filter(**{f'{field}__in': branch_ids})


def _period(request, default_days=30):
    """(date_from, date_to) from the query string; raises ValueError on bad dates"""
    params = request.query_params
    date_to = datetime.strptime(params['date_to'], '%Y-%m-%d').date() if params.get('date_to') else timezone.localdate()
    if params.get('date_from'):
        date_from = datetime.strptime(params['date_from'], '%Y-%m-%d').date()
    else:
        date_from = date_to - timedelta(days=default_days)
    if date_to < date_from:
        raise ValueError('date_to must be on or after date_from')
    return date_from, date_to


def _organisation(branch_ids):
    if branch_ids and len(branch_ids) == 1:
        branch = Branch.objects.select_related('organization').filter(pk=branch_ids[0]).first()
        if branch is not None:
            return f"{branch.organization.name} - {branch.name}" if branch.organization_id else branch.name
    return None


def _export(request, title, columns, rows, summary, branch_ids, filename):
    """CSV / PDF download when ``export`` is requested, otherwise None"""
    export = request.query_params.get('export')
    if not export:
        return None
    stamp = timezone.localdate().strftime('%Y-%m-%d')
    if export == 'csv':
        response = HttpResponse(to_csv(rows, columns), content_type='text/csv')
        response['Content-Disposition'] = f'attachment; filename="{filename}-{stamp}.csv"'
        return response
    if export == 'pdf':
        response = HttpResponse(to_pdf(title, columns, rows, summary, _organisation(branch_ids)),
                                content_type='application/pdf')
        response['Content-Disposition'] = f'attachment; filename="{filename}-{stamp}.pdf"'
        return response
    return Response({'error': "export must be 'csv' or 'pdf'"}, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_kpis(request):
    """Headline numbers for the dashboard of the visible branches"""
    try:
        branch_ids = _report_branch_ids(request)
    except ReportAccessError as e:
        return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)

    today = timezone.localdate()
    cached, cache_key = get_cached_dashboard_kpis(branch_ids, today)
    if cached is not None:
        return Response(cached)

    try:
        clients = _scope(Client.objects.all(), branch_ids)
        clients_by_status = {row['status']: row['count'] for row in clients.values('status').annotate(count=Count('id'))}

        todays_bookings = _scope(Booking.objects.filter(start_time__date=today), branch_ids)
        bookings_by_status = {row['status']: row['count']
                              for row in todays_bookings.values('status').annotate(count=Count('id'))}

        unpaid = _scope(Invoice.objects.filter(status__in=UNPAID_STATUSES), branch_ids).aggregate(
            total=Sum(F('total_amount') - F('paid_amount'), output_field=DecimalField()),
            count=Count('id'),
        )

        training = _scope(TrainingRecord.objects.all(), branch_ids)
        expired_training = training.filter(
            Q(status=TrainingRecord.STATUS_EXPIRED) | Q(status=TrainingRecord.STATUS_COMPLETED, expiry_date__lt=today)
        ).count()

        high_risk_news2 = _scope(News2Observation.objects.filter(
            risk_level='high', recorded_at__gte=timezone.now() - timedelta(days=7)
        ), branch_ids, field='client__branch').values('client').distinct().count()

        data = {
            'date': today.isoformat(),
            'kpis': {
                'total_clients': sum(clients_by_status.values()),
                'active_clients': clients_by_status.get('Active', 0),
                'active_staff': _scope(Staff.objects.filter(status='active'), branch_ids).count(),
                'todays_bookings': todays_bookings.exclude(status=Booking.STATUS_CANCELLED).count(),
                'late_starts_today': todays_bookings.filter(is_late_start=True).count(),
                'missed_today': todays_bookings.filter(is_missed=True).count(),
                'unassigned_today': bookings_by_status.get(Booking.STATUS_UNASSIGNED, 0),
                'unpaid_invoices_count': unpaid['count'],
                'unpaid_invoice_total': float(unpaid['total'] or Decimal('0.00')),
                'expired_training': expired_training,
                'high_risk_clients': high_risk_news2,
            },
            'clients_by_status': clients_by_status,
            'bookings_by_status': bookings_by_status,
        }
    except Exception as e:
        logger.error(f"Error building dashboard KPIs: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to load dashboard'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    cache_dashboard_kpis(cache_key, data)
    response = Response(data)
    response['Cache-Control'] = 'private, max-age=60'
    return response


BOOKING_COLUMNS = [
    ('date', 'Date'),
    ('start', 'Start'),
    ('end', 'End'),
    ('client', 'Client'),
    ('carer', 'Carer'),
    ('service', 'Service'),
    ('status', 'Status'),
    ('hours', 'Hours'),
]


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def bookings_report(request):
    """Bookings in a date range with a status breakdown and hours per carer"""
    try:
        branch_ids = _report_branch_ids(request)
        date_from, date_to = _period(request)
    except ReportAccessError as e:
        return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    bookings = _scope(Booking.objects.filter(start_time__date__gte=date_from, start_time__date__lte=date_to),
                      branch_ids).select_related('client', 'staff', 'service').order_by('start_time')
    if request.query_params.get('status'):
        bookings = bookings.filter(status=request.query_params['status'])

    rows = []
    carer_hours = defaultdict(Decimal)
    for booking in bookings:
        start = timezone.localtime(booking.start_time)
        hours = (Decimal(booking.duration_minutes) / 60).quantize(Decimal('0.01'))
        carer = booking.staff.full_name if booking.staff_id else 'Unassigned'
        rows.append({
            'date': start.date(),
            'start': f"{start:%H:%M}",
            'end': f"{timezone.localtime(booking.end_time):%H:%M}",
            'client': booking.client.full_name,
            'carer': carer,
            'service': booking.service.title if booking.service_id else '',
            'status': booking.get_status_display(),
            'hours': hours,
        })
        if booking.status != Booking.STATUS_CANCELLED:
            carer_hours[carer] += hours

    summary = summarize(rows, value_key='hours', group_key='status')
    pdf_summary = {'period': f"{date_from:%d/%m/%Y} - {date_to:%d/%m/%Y}", 'total_bookings': summary['count'],
                   'total_hours': summary['total'], 'by_status': summary['groups']}
    exported = _export(request, 'Bookings Report', BOOKING_COLUMNS, rows, pdf_summary, branch_ids, 'bookings-report')
    if exported is not None:
        return exported

    return Response({
        'period': {'from': date_from.isoformat(), 'to': date_to.isoformat()},
        'summary': summary,
        'carer_hours': [{'carer': name, 'hours': hours}
                        for name, hours in sorted(carer_hours.items(), key=lambda item: -item[1])],
        'results': rows,
    })


TRAINING_COLUMNS = [
    ('staff', 'Staff'),
    ('course', 'Course'),
    ('category', 'Category'),
    ('mandatory', 'Mandatory'),
    ('status', 'Status'),
    ('completion_date', 'Completed'),
    ('expiry_date', 'Expires'),
    ('compliance', 'Compliance'),
]


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def training_report(request):
    """Training records of active staff classified by compliance"""
    try:
        branch_ids = _report_branch_ids(request)
    except ReportAccessError as e:
        return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)

    today = timezone.localdate()
    window = expiring_soon_days()
    records = _scope(TrainingRecord.objects.filter(staff__status='active'), branch_ids) \
        .select_related('staff', 'course').order_by('staff__last_name', 'staff__first_name', 'course__title')

    rows = [
        {
            'staff': record.staff.full_name,
            'course': record.course.title,
            'category': record.course.category,
            'mandatory': record.course.is_mandatory,
            'status': record.get_status_display(),
            'completion_date': record.completion_date,
            'expiry_date': record.expiry_date,
            'compliance': classify_training(record, today, window),
        }
        for record in records
    ]
    if request.query_params.get('compliance'):
        rows = [row for row in rows if row['compliance'] == request.query_params['compliance']]

    summary = summarize(rows, group_key='compliance')
    compliant = summary['groups'].get('compliant', 0) + summary['groups'].get('expiring-soon', 0)
    compliance_rate = int(compliant / summary['count'] * 100 + 0.5) if summary['count'] else 0
    exported = _export(request, 'Training Compliance Report', TRAINING_COLUMNS, rows,
                       {'total_records': summary['count'], 'compliance_rate': f'{compliance_rate}%',
                        'by_compliance': summary['groups']}, branch_ids, 'training-report')
    if exported is not None:
        return exported

    return Response({'summary': {**summary, 'compliance_rate': compliance_rate}, 'results': rows})


CARE_PLAN_COLUMNS = [
    ('display_id', 'Care Plan'),
    ('client', 'Client'),
    ('status', 'Status'),
    ('completion_percentage', 'Completion %'),
    ('last_step_completed', 'Last Step'),
    ('review_date', 'Review Date'),
]


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def care_plan_report(request):
    """Care plan completion across the visible clients"""
    try:
        branch_ids = _report_branch_ids(request)
    except ReportAccessError as e:
        return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)

    care_plans = _scope(CarePlan.objects.select_related('client'), branch_ids, field='client__branch') \
        .order_by('completion_percentage', 'client__last_name')
    if request.query_params.get('status'):
        care_plans = care_plans.filter(status=request.query_params['status'])

    rows = [
        {
            'id': care_plan.id,
            'display_id': care_plan.display_id,
            'client': care_plan.client.full_name,
            'status': care_plan.status,
            'completion_percentage': care_plan.completion_percentage,
            'last_step_completed': care_plan.last_step_completed,
            'review_date': care_plan.review_date,
        }
        for care_plan in care_plans
    ]
    summary = summarize(rows, value_key='completion_percentage', group_key='status')
    overdue_reviews = sum(1 for row in rows if row['review_date'] and row['review_date'] < timezone.localdate())
    exported = _export(request, 'Care Plan Completion Report', CARE_PLAN_COLUMNS, rows,
                       {'care_plans': summary['count'], 'average_completion': f"{summary['average']}%",
                        'overdue_reviews': overdue_reviews, 'by_status': summary['groups']},
                       branch_ids, 'care-plan-report')
    if exported is not None:
        return exported

    return Response({'summary': {**summary, 'overdue_reviews': overdue_reviews}, 'results': rows})


NEWS2_COLUMNS = [
    ('client', 'Client'),
    ('recorded_at', 'Recorded'),
    ('total_score', 'NEWS2 Score'),
    ('risk_level', 'Risk'),
    ('recorded_by', 'Recorded By'),
]


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def news2_report(request):
    """Latest NEWS2 score per client and the high risk list"""
    try:
        branch_ids = _report_branch_ids(request)
        date_from, date_to = _period(request, default_days=7)
    except ReportAccessError as e:
        return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    observations = _scope(News2Observation.objects.filter(
        recorded_at__date__gte=date_from, recorded_at__date__lte=date_to
    ), branch_ids, field='client__branch').select_related('client', 'recorded_by').order_by('client_id', '-recorded_at')

    latest = {}
    for observation in observations:
        latest.setdefault(observation.client_id, observation)

    rows = sorted(
        (
            {
                'client_id': observation.client_id,
                'client': observation.client.full_name,
                'recorded_at': observation.recorded_at,
                'total_score': observation.total_score,
                'risk_level': observation.risk_level,
                'recorded_by': observation.recorded_by.display_name if observation.recorded_by else '',
            }
            for observation in latest.values()
        ),
        key=lambda row: (-row['total_score'], row['client']),
    )
    summary = summarize(rows, value_key='total_score', group_key='risk_level')
    exported = _export(request, 'NEWS2 Report', NEWS2_COLUMNS, rows,
                       {'period': f"{date_from:%d/%m/%Y} - {date_to:%d/%m/%Y}", 'clients': summary['count'],
                        'average_score': summary['average'], 'by_risk': summary['groups']},
                       branch_ids, 'news2-report')
    if exported is not None:
        return exported

    return Response({
        'period': {'from': date_from.isoformat(), 'to': date_to.isoformat()},
        'summary': summary,
        'high_risk': [row for row in rows if row['risk_level'] == 'high'],
        'results': rows,
    })
