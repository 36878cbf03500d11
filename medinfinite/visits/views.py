import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.core.files.base import ContentFile
from django.db import transaction, IntegrityError
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date

from medinfinite.bookings.models import Booking
from medinfinite.branches.access import scope_queryset, can_access_branch, can_manage_branch
from medinfinite.clients.models import Client
from medinfinite.core.utils import paginate, create_audit_log
from medinfinite.notifications.services import notify_branch_admins
from medinfinite.reports.generator import summarize, to_csv, to_pdf
from .ai import generate_recommendations
from .body_map import render_body_map_images, SIDES
from .models import VisitRecord, News2Observation, EventLog
from .serializers import (
    VisitRecordSerializer, StartVisitSerializer, CompleteVisitSerializer,
    News2ObservationSerializer, EventLogSerializer
)
from .signature import signature_from_payload

logger = logging.getLogger('medinfinite.visits')

EVENT_EXPORT_COLUMNS = [
    ('title', 'Title'),
    ('client_name', 'Client'),
    ('event_type', 'Type'),
    ('category', 'Category'),
    ('severity', 'Severity'),
    ('status', 'Status'),
    ('reporter', 'Reporter'),
    ('location', 'Location'),
    ('event_date', 'Event Date'),
    ('action_required', 'Action Required'),
    ('follow_up_date', 'Follow-up Date'),
]


def _works_booking(user, booking):
    """The assigned carer or an administrator of the booking's branch"""
    if booking.staff_id and booking.staff.user_id == user.id:
        return True
    return can_manage_branch(user, booking.branch_id, 'bookings')


def _visible_visits(user):
    queryset = scope_queryset(VisitRecord.objects.select_related('booking', 'client', 'staff'), user)
    if user.role == user.ROLE_CARER:
        queryset = queryset.filter(staff__user=user)
    elif user.role == user.ROLE_CLIENT:
        queryset = queryset.filter(client__user=user)
    return queryset


# Visit views
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def visit_list(request):
    queryset = _visible_visits(request.user)
    params = request.query_params
    if params.get('client'):
        queryset = queryset.filter(client_id=params['client'])
    if params.get('staff'):
        queryset = queryset.filter(staff_id=params['staff'])
    if params.get('status'):
        queryset = queryset.filter(status=params['status'])
    return Response(paginate(queryset, request, VisitRecordSerializer))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def visit_start(request, booking_id):
    """Start the visit of a booking; starting an already running visit returns it"""
    booking = get_object_or_404(Booking.objects.select_related('client', 'staff'), pk=booking_id)
    if not _works_booking(request.user, booking):
        return Response({'error': 'Only the assigned carer can start this visit'}, status=status.HTTP_403_FORBIDDEN)

    existing = VisitRecord.objects.filter(booking=booking).first()
    if existing is not None:
        if existing.status == VisitRecord.STATUS_IN_PROGRESS:
            return Response(VisitRecordSerializer(existing).data)
        return Response({'error': f'Visit is already {existing.status}'}, status=status.HTTP_400_BAD_REQUEST)

    if booking.status not in (Booking.STATUS_ASSIGNED, Booking.STATUS_CONFIRMED):
        return Response({'error': f'Cannot start a visit for a {booking.status} booking'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = StartVisitSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    tasks = [dict(task) for task in serializer.validated_data.get('tasks', [])]

    try:
        with transaction.atomic():
            visit = VisitRecord(
                booking=booking,
                branch_id=booking.branch_id,
                client=booking.client,
                staff=booking.staff,
                visit_notes=serializer.validated_data['visit_notes'],
                tasks=tasks,
            )
            visit.completion_percentage = visit.task_completion()
            visit.save()
            booking.status = Booking.STATUS_IN_PROGRESS
            booking.save(update_fields=['status', 'updated_at'])
    except IntegrityError as e:
        logger.error(f"IntegrityError starting visit for booking {booking.id}: {str(e)}", exc_info=True)
        return Response({'error': 'Visit could not be started'}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request, 'visit_start', 'VisitRecord', visit.id, object_name=booking.client.full_name)
    logger.info(f"Visit {visit.id} started for booking {booking.id} by {request.user.username}")
    return Response(VisitRecordSerializer(visit).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def visit_detail(request, pk):
    visit = get_object_or_404(VisitRecord.objects.select_related('booking', 'booking__staff', 'client', 'staff'), pk=pk)
    if not can_access_branch(request.user, visit.branch_id):
        return Response({'error': 'You do not have access to this visit'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(VisitRecordSerializer(visit).data)

    if not _works_booking(request.user, visit.booking):
        return Response({'error': 'Only the assigned carer can update this visit'}, status=status.HTTP_403_FORBIDDEN)
    if visit.status != VisitRecord.STATUS_IN_PROGRESS:
        return Response({'error': 'Only visits in progress can be updated'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = VisitRecordSerializer(visit, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def visit_complete(request, pk):
    """
    Sign off a visit.

    A client signature is required (a PNG data URL or raw strokes) and every
    required task must be done. The visit duration is stored and the
    booking is marked completed.
    """
    visit = get_object_or_404(VisitRecord.objects.select_related('booking', 'booking__staff', 'client'), pk=pk)
    if not _works_booking(request.user, visit.booking):
        return Response({'error': 'Only the assigned carer can complete this visit'}, status=status.HTTP_403_FORBIDDEN)
    if visit.status != VisitRecord.STATUS_IN_PROGRESS:
        return Response({'error': f'Visit is already {visit.status}'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = CompleteVisitSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    outstanding = visit.outstanding_required_tasks()
    if outstanding:
        return Response({'error': 'Required tasks are not completed', 'outstanding_tasks': outstanding},
                        status=status.HTTP_400_BAD_REQUEST)

    try:
        client_signature = signature_from_payload(data['client_signature'])
        staff_signature = signature_from_payload(data['staff_signature']) if data.get('staff_signature') else ''
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    now = timezone.now()
    visit.client_signature = client_signature
    visit.staff_signature = staff_signature
    visit.visit_summary = data['visit_summary']
    if 'visit_notes' in data:
        visit.visit_notes = data['visit_notes']
    visit.visit_end_time = now
    visit.actual_duration_minutes = max(0, int((now - visit.visit_start_time).total_seconds() // 60))
    visit.completion_percentage = visit.task_completion() if visit.tasks else 100
    visit.status = VisitRecord.STATUS_COMPLETED

    with transaction.atomic():
        visit.save()
        Booking.objects.filter(pk=visit.booking_id).update(status=Booking.STATUS_COMPLETED, updated_at=now)

    create_audit_log(request, 'visit_complete', 'VisitRecord', visit.id,
                     {'duration_minutes': visit.actual_duration_minutes}, object_name=visit.client.full_name)
    logger.info(f"Visit {visit.id} completed in {visit.actual_duration_minutes} minutes by {request.user.username}")
    return Response(VisitRecordSerializer(visit).data)


# NEWS2 views
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def news2_create(request):
    """Record a NEWS2 observation; high risk scores alert the branch admins"""
    try:
        serializer = News2ObservationSerializer(data=request.data)
        if not serializer.is_valid():
            logger.warning(f"NEWS2 validation failed: {serializer.errors}")
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        client = serializer.validated_data['client']
        if request.user.role == request.user.ROLE_CLIENT or not can_access_branch(request.user, client.branch_id):
            return Response({'error': 'You cannot record observations for this client'}, status=status.HTTP_403_FORBIDDEN)

        observation = serializer.save(recorded_by=request.user)
        logger.info(f"NEWS2 {observation.total_score} ({observation.risk_level}) recorded for client {client.pk}")

        if observation.risk_level == 'high':
            notify_branch_admins(
                client.branch,
                'High NEWS2 Score',
                f"{client.full_name} scored {observation.total_score} on NEWS2 and needs urgent clinical review.",
                type='clinical',
                priority='critical',
                category='news2_high_risk',
                data={'client_id': client.id, 'observation_id': observation.id, 'total_score': observation.total_score},
            )
        return Response(News2ObservationSerializer(observation).data, status=status.HTTP_201_CREATED)
    except Exception as e:
        logger.error(f"Unexpected error in news2_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def client_news2_history(request, client_id):
    client = get_object_or_404(Client, pk=client_id)
    if not can_access_branch(request.user, client.branch_id):
        return Response({'error': 'You do not have access to this client'}, status=status.HTTP_403_FORBIDDEN)
    if request.user.role == request.user.ROLE_CLIENT and client.user_id != request.user.id:
        return Response({'error': 'You do not have access to this client'}, status=status.HTTP_403_FORBIDDEN)

    observations = client.news2_observations.select_related('recorded_by')
    start = parse_date(request.query_params.get('start_date', '') or '')
    end = parse_date(request.query_params.get('end_date', '') or '')
    if start:
        observations = observations.filter(recorded_at__date__gte=start)
    if end:
        observations = observations.filter(recorded_at__date__lte=end)
    return Response(paginate(observations, request, News2ObservationSerializer))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def news2_recommendations(request, pk):
    """Generate (or regenerate) AI recommendations and store them on the observation"""
    observation = get_object_or_404(News2Observation.objects.select_related('client'), pk=pk)
    if request.user.role == request.user.ROLE_CLIENT or not can_access_branch(request.user, observation.client.branch_id):
        return Response({'error': 'You do not have access to this observation'}, status=status.HTTP_403_FORBIDDEN)

    if observation.ai_recommendations and not request.data.get('regenerate'):
        return Response({'recommendations': observation.ai_recommendations, 'cached': True})

    recommendations = generate_recommendations(observation)
    News2Observation.objects.filter(pk=observation.pk).update(ai_recommendations=recommendations)
    return Response({'recommendations': recommendations, 'cached': False})


# Event log views
def _visible_events(user):
    queryset = scope_queryset(EventLog.objects.select_related('client', 'recorded_by'), user)
    if user.role == user.ROLE_CLIENT:
        queryset = queryset.filter(client__user=user)
    return queryset


def _filter_events(queryset, params):
    if params.get('client'):
        queryset = queryset.filter(client_id=params['client'])
    for field in ('severity', 'status', 'event_type', 'category'):
        if params.get(field):
            queryset = queryset.filter(**{field: params[field]})
    start = parse_date(params.get('start_date', '') or '')
    end = parse_date(params.get('end_date', '') or '')
    if start:
        queryset = queryset.filter(event_date__date__gte=start)
    if end:
        queryset = queryset.filter(event_date__date__lte=end)
    return queryset


def _attach_body_map(event):
    """Render the body map PNGs and store them on the event"""
    images = render_body_map_images(event.body_map_points)
    for side in SIDES:
        field = getattr(event, f'body_map_{side}_image')
        if side in images:
            field.save(f'event-{event.pk}-{side}.png', ContentFile(images[side]), save=False)
        elif field:
            field.delete(save=False)
    event.save(update_fields=['body_map_front_image', 'body_map_back_image', 'updated_at'])


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def event_list_create(request):
    if request.method == 'GET':
        queryset = _filter_events(_visible_events(request.user), request.query_params)
        return Response(paginate(queryset, request, EventLogSerializer, context={'request': request}))

    try:
        serializer = EventLogSerializer(data=request.data, context={'request': request})
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        client = serializer.validated_data['client']
        if request.user.role == request.user.ROLE_CLIENT or not can_access_branch(request.user, client.branch_id):
            return Response({'error': 'You cannot log events for this client'}, status=status.HTTP_403_FORBIDDEN)

        with transaction.atomic():
            event = serializer.save(branch=client.branch, recorded_by=request.user,
                                    reporter=serializer.validated_data.get('reporter') or request.user.display_name)
            if event.body_map_points:
                _attach_body_map(event)

        if event.severity in ('high', 'critical'):
            notify_branch_admins(client.branch, f'{event.severity.title()} Severity Event',
                                 f"{event.title} was logged for {client.full_name}.",
                                 type='client', priority='high' if event.severity == 'high' else 'critical',
                                 category='event_log', data={'event_id': event.id, 'client_id': client.id})
        create_audit_log(request, 'create', 'EventLog', event.id, object_name=event.title)
        logger.info(f"Event {event.id} logged for client {client.pk} by {request.user.username}")
        return Response(EventLogSerializer(event, context={'request': request}).data, status=status.HTTP_201_CREATED)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.error(f"Unexpected error in event_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def event_detail(request, pk):
    event = get_object_or_404(EventLog.objects.select_related('client'), pk=pk)
    if not can_access_branch(request.user, event.branch_id):
        return Response({'error': 'You do not have access to this event'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(EventLogSerializer(event, context={'request': request}).data)

    if request.method == 'DELETE':
        if not can_manage_branch(request.user, event.branch_id, 'clients'):
            return Response({'error': 'Only administrators of this branch can delete events'}, status=status.HTTP_403_FORBIDDEN)
        create_audit_log(request, 'delete', 'EventLog', event.id, object_name=event.title)
        event.body_map_front_image.delete(save=False)
        event.body_map_back_image.delete(save=False)
        event.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    if request.user.role == request.user.ROLE_CLIENT:
        return Response({'error': 'Clients cannot edit events'}, status=status.HTTP_403_FORBIDDEN)

    serializer = EventLogSerializer(event, data=request.data, partial=request.method == 'PATCH',
                                    context={'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        with transaction.atomic():
            event = serializer.save()
            if 'body_map_points' in serializer.validated_data:
                _attach_body_map(event)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request, 'update', 'EventLog', event.id, object_name=event.title)
    return Response(EventLogSerializer(event, context={'request': request}).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def event_export(request):
    """Export the filtered events as CSV (default) or PDF"""
    export = request.query_params.get('export', 'csv')
    if export not in ('csv', 'pdf'):
        return Response({'error': "export must be 'csv' or 'pdf'"}, status=status.HTTP_400_BAD_REQUEST)

    queryset = _filter_events(_visible_events(request.user), request.query_params).order_by('-event_date')
    rows = [
        {
            'title': event.title,
            'client_name': event.client.full_name,
            'event_type': event.event_type,
            'category': event.category,
            'severity': event.get_severity_display(),
            'status': event.get_status_display(),
            'reporter': event.reporter,
            'location': event.location,
            'event_date': event.event_date,
            'action_required': event.action_required,
            'follow_up_date': event.follow_up_date,
        }
        for event in queryset
    ]
    filename = f"events-logs-{timezone.localdate():%Y-%m-%d}"
    logger.info(f"{len(rows)} events exported as {export} by {request.user.username}")

    if export == 'csv':
        response = HttpResponse(to_csv(rows, EVENT_EXPORT_COLUMNS), content_type='text/csv')
        response['Content-Disposition'] = f'attachment; filename="{filename}.csv"'
        return response

    summary = summarize(rows, group_key='severity')
    pdf = to_pdf('Events & Logs Report', EVENT_EXPORT_COLUMNS, rows,
                 summary={'total_events': summary['count'], 'by_severity': summary['groups']})
    response = HttpResponse(pdf, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{filename}.pdf"'
    return response
