import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.conf import settings
from django.db import transaction, IntegrityError
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from medinfinite.branches.access import scope_queryset, can_access_branch, can_manage_branch, is_admin
from medinfinite.clients.models import Client
from medinfinite.core.cache_signals import suspend_cache_signals
from medinfinite.core.cache_utils import invalidate_dashboard_cache
from medinfinite.core.utils import paginate, create_audit_log
from medinfinite.notifications.emails import send_html_email
from medinfinite.staff.models import Staff
from .alerts import process_late_bookings
from .emails import render_carer_schedule_email, schedule_subject
from .filters import BookingFilter
from .models import Service, Booking, BookingAlertSettings
from .recurrence import generate_recurring_bookings, preview_recurring_bookings
from .serializers import (
    ServiceSerializer, BookingSerializer, RecurringBookingSerializer, BulkBookingSerializer,
    AssignCarerSerializer, CancelBookingSerializer, BookingAlertSettingsSerializer, CarerScheduleEmailSerializer
)
from .validation import BookingConflictError, validate_booking_slot, available_carers

logger = logging.getLogger('medinfinite.bookings')


def _conflict_response(error):
    return Response(error.as_dict(), status=status.HTTP_409_CONFLICT)


def _wants_suggestions(request):
    value = request.data.get('suggest_carers') if hasattr(request.data, 'get') else None
    return str(value).lower() in ('1', 'true', 'yes')


# Service views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def service_list_create(request):
    if request.method == 'GET':
        services = Service.objects.all()
        if request.query_params.get('active') in ('1', 'true'):
            services = services.filter(is_active=True)
        return Response(ServiceSerializer(services, many=True).data)

    if not request.user.is_super_admin:
        return Response({'error': 'Only super admins can manage services'}, status=status.HTTP_403_FORBIDDEN)
    serializer = ServiceSerializer(data=request.data)
    if serializer.is_valid():
        service = serializer.save()
        create_audit_log(request, 'create', 'Service', service.id, object_name=service.title)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def service_detail(request, pk):
    service = get_object_or_404(Service, pk=pk)
    if request.method == 'GET':
        return Response(ServiceSerializer(service).data)

    if not request.user.is_super_admin:
        return Response({'error': 'Only super admins can manage services'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'DELETE':
        if service.bookings.exists():
            service.is_active = False
            service.save(update_fields=['is_active'])
            return Response({'message': 'Service is in use and has been deactivated'})
        create_audit_log(request, 'delete', 'Service', service.id, object_name=service.title)
        service.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = ServiceSerializer(service, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Booking views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def booking_list_create(request):
    """List bookings of the visible branches or create one with overlap validation"""
    try:
        if request.method == 'GET':
            queryset = scope_queryset(
                Booking.objects.select_related('client', 'staff', 'service'), request.user
            )
            if request.user.role == request.user.ROLE_CLIENT:
                queryset = queryset.filter(client__user=request.user)
            queryset = BookingFilter(request.query_params, queryset=queryset).qs.order_by('start_time', 'id')
            return Response(paginate(queryset, request, BookingSerializer, default_limit=100))

        serializer = BookingSerializer(data=request.data)
        if not serializer.is_valid():
            logger.warning(f"Booking creation validation failed: {serializer.errors}")
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        client = data['client']
        if not can_manage_branch(request.user, client.branch_id, 'bookings'):
            return Response({'error': 'Only administrators of this branch can create bookings'}, status=status.HTTP_403_FORBIDDEN)

        staff = data.get('staff')
        validate_booking_slot(client.branch_id, staff.id if staff else None, data['start_time'], data['end_time'],
                              suggest_carers=_wants_suggestions(request))

        try:
            booking = serializer.save(branch=client.branch, created_by=request.user)
        except IntegrityError as e:
            logger.error(f"IntegrityError creating booking: {str(e)}", exc_info=True)
            return Response({'error': 'Booking could not be saved'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request, 'create', 'Booking', booking.id, object_name=client.full_name)
        logger.info(f"Booking {booking.id} created for client {client.pk} by {request.user.username}")
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)
    except BookingConflictError as e:
        return _conflict_response(e)
    except Exception as e:
        logger.error(f"Unexpected error in booking_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def booking_detail(request, pk):
    booking = get_object_or_404(Booking.objects.select_related('client', 'staff', 'service'), pk=pk)
    if not can_access_branch(request.user, booking.branch_id):
        return Response({'error': 'You do not have access to this booking'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(BookingSerializer(booking).data)

    if not can_manage_branch(request.user, booking.branch_id, 'bookings'):
        return Response({'error': 'Only administrators of this branch can modify bookings'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'DELETE':
        create_audit_log(request, 'delete', 'Booking', booking.id, object_name=booking.client.full_name)
        logger.info(f"User {request.user.username} deleting booking {pk}")
        booking.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    if booking.status == Booking.STATUS_CANCELLED:
        return Response({'error': 'Cancelled bookings cannot be edited'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = BookingSerializer(booking, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    staff = data.get('staff', booking.staff)
    try:
        validate_booking_slot(booking.branch_id, staff.id if staff else None,
                              data.get('start_time', booking.start_time), data.get('end_time', booking.end_time),
                              exclude_id=booking.id, suggest_carers=_wants_suggestions(request))
    except BookingConflictError as e:
        return _conflict_response(e)

    serializer.save()
    create_audit_log(request, 'update', 'Booking', booking.id, dict(request.data), object_name=booking.client.full_name)
    return Response(serializer.data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def booking_recurring(request):
    """
    Preview or create recurring bookings.

    Every generated booking is checked for overlaps before anything is
    written; the whole batch is created in one transaction.
    """
    serializer = RecurringBookingSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    schedules = [dict(schedule) for schedule in data['schedules']]

    if data['preview']:
        return Response(preview_recurring_bookings(data['from_date'], data['until_date'], schedules, data['recurrence_weeks']))

    client = get_object_or_404(Client, pk=data['client'])
    if not can_manage_branch(request.user, client.branch_id, 'bookings'):
        return Response({'error': 'Only administrators of this branch can create bookings'}, status=status.HTTP_403_FORBIDDEN)

    staff = None
    if data.get('staff'):
        staff = Staff.objects.filter(pk=data['staff'], branch_id=client.branch_id).first()
        if staff is None:
            return Response({'error': 'Carer not found in the client branch'}, status=status.HTTP_400_BAD_REQUEST)

    result = generate_recurring_bookings(data['from_date'], data['until_date'], schedules, data['recurrence_weeks'],
                                         client=client, staff=staff, notes=data['notes'])
    if not result['success']:
        return Response({'error': 'No bookings could be generated', 'errors': result['errors'],
                         'warnings': result['warnings']}, status=status.HTTP_400_BAD_REQUEST)

    try:
        with transaction.atomic(), suspend_cache_signals():
            created = []
            for payload in result['bookings']:
                validate_booking_slot(client.branch_id, staff.id if staff else None,
                                      payload['start_time'], payload['end_time'])
                created.append(Booking.objects.create(
                    branch=client.branch,
                    status=Booking.STATUS_ASSIGNED if staff else Booking.STATUS_UNASSIGNED,
                    created_by=request.user,
                    **payload
                ))
    except BookingConflictError as e:
        return _conflict_response(e)
    except IntegrityError as e:
        logger.error(f"IntegrityError creating recurring bookings: {str(e)}", exc_info=True)
        return Response({'error': 'Recurring bookings could not be saved'}, status=status.HTTP_400_BAD_REQUEST)
    invalidate_dashboard_cache()

    create_audit_log(request, 'create', 'Booking', created[0].id,
                     {'recurring': True, 'count': len(created)}, object_name=client.full_name)
    logger.info(f"{len(created)} recurring bookings created for client {client.pk} by {request.user.username}")
    return Response({
        'created': len(created),
        'bookings': BookingSerializer(created, many=True).data,
        'warnings': result['warnings'],
        'summary': result['summary'],
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def booking_bulk_create(request):
    """Create several bookings at once; nothing is saved if any one fails"""
    serializer = BulkBookingSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    items = serializer.validated_data['bookings']
    for item in items:
        if not can_manage_branch(request.user, item['client'].branch_id, 'bookings'):
            return Response({'error': 'Only administrators of the client branch can create bookings'}, status=status.HTTP_403_FORBIDDEN)

    try:
        with transaction.atomic(), suspend_cache_signals():
            created = []
            for item in items:
                staff = item.get('staff')
                validate_booking_slot(item['client'].branch_id, staff.id if staff else None, item['start_time'], item['end_time'])
                created.append(Booking.objects.create(branch=item['client'].branch, created_by=request.user, **item))
    except BookingConflictError as e:
        return _conflict_response(e)
    except IntegrityError as e:
        logger.error(f"IntegrityError in bulk booking create: {str(e)}", exc_info=True)
        return Response({'error': 'Bookings could not be saved'}, status=status.HTTP_400_BAD_REQUEST)
    invalidate_dashboard_cache()

    logger.info(f"{len(created)} bookings bulk created by {request.user.username}")
    return Response(BookingSerializer(created, many=True).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def booking_assign_carer(request, pk):
    booking = get_object_or_404(Booking.objects.select_related('client'), pk=pk)
    if not can_manage_branch(request.user, booking.branch_id, 'bookings'):
        return Response({'error': 'Only administrators of this branch can assign carers'}, status=status.HTTP_403_FORBIDDEN)
    if booking.status in (Booking.STATUS_CANCELLED, Booking.STATUS_COMPLETED):
        return Response({'error': f'Cannot assign a carer to a {booking.status} booking'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = AssignCarerSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    staff = None
    staff_id = serializer.validated_data['staff']
    if staff_id:
        staff = Staff.objects.filter(pk=staff_id, branch_id=booking.branch_id).first()
        if staff is None:
            return Response({'error': 'Carer not found in this branch'}, status=status.HTTP_400_BAD_REQUEST)
        try:
            validate_booking_slot(booking.branch_id, staff.id, booking.start_time, booking.end_time,
                                  exclude_id=booking.id, suggest_carers=serializer.validated_data['suggest_carers'])
        except BookingConflictError as e:
            return _conflict_response(e)

    booking.staff = staff
    if booking.status in (Booking.STATUS_UNASSIGNED, Booking.STATUS_ASSIGNED, Booking.STATUS_CONFIRMED):
        booking.status = Booking.STATUS_ASSIGNED if staff else Booking.STATUS_UNASSIGNED
    booking.save(update_fields=['staff', 'status', 'updated_at'])
    create_audit_log(request, 'assign', 'Booking', booking.id, {'staff': staff_id}, object_name=booking.client.full_name)
    return Response(BookingSerializer(booking).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def booking_cancel(request, pk):
    booking = get_object_or_404(Booking.objects.select_related('client'), pk=pk)
    if not can_manage_branch(request.user, booking.branch_id, 'bookings'):
        return Response({'error': 'Only administrators of this branch can cancel bookings'}, status=status.HTTP_403_FORBIDDEN)
    if booking.status in (Booking.STATUS_CANCELLED, Booking.STATUS_COMPLETED):
        return Response({'error': f'Booking is already {booking.status}'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = CancelBookingSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    booking.status = Booking.STATUS_CANCELLED
    booking.cancelled_at = timezone.now()
    booking.cancellation_reason = serializer.validated_data['reason']
    booking.save(update_fields=['status', 'cancelled_at', 'cancellation_reason', 'updated_at'])
    create_audit_log(request, 'cancel', 'Booking', booking.id, {'reason': booking.cancellation_reason},
                     object_name=booking.client.full_name)
    logger.info(f"Booking {booking.id} cancelled by {request.user.username}")
    return Response(BookingSerializer(booking).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def booking_availability(request):
    """Check a carer's slot and list the carers free at that time"""
    params = request.query_params
    branch_id = params.get('branch')
    start = parse_datetime(params.get('start_time', '') or '')
    end = parse_datetime(params.get('end_time', '') or '')
    if not branch_id or start is None or end is None:
        return Response({'error': 'branch, start_time and end_time are required'}, status=status.HTTP_400_BAD_REQUEST)
    if not can_access_branch(request.user, branch_id):
        return Response({'error': 'You do not have access to this branch'}, status=status.HTTP_403_FORBIDDEN)
    if timezone.is_naive(start):
        start = timezone.make_aware(start)
    if timezone.is_naive(end):
        end = timezone.make_aware(end)

    staff_id = params.get('staff')
    try:
        validate_booking_slot(branch_id, staff_id, start, end, exclude_id=params.get('exclude'))
    except BookingConflictError as e:
        payload = e.as_dict()
        payload['is_valid'] = False
        payload['available_carers'] = available_carers(branch_id, start, end, staff_id)
        return Response(payload)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response({'is_valid': True, 'conflicting_bookings': [],
                     'available_carers': available_carers(branch_id, start, end, staff_id)})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def alert_settings_detail(request, branch_id):
    if not can_access_branch(request.user, branch_id):
        return Response({'error': 'You do not have access to this branch'}, status=status.HTTP_403_FORBIDDEN)

    alert_settings = BookingAlertSettings.objects.filter(branch_id=branch_id).first()
    if request.method == 'GET':
        return Response(BookingAlertSettingsSerializer(alert_settings or BookingAlertSettings.for_branch(branch_id)).data)

    if not can_manage_branch(request.user, branch_id, 'bookings'):
        return Response({'error': 'Only administrators of this branch can change alert settings'}, status=status.HTTP_403_FORBIDDEN)
    serializer = BookingAlertSettingsSerializer(alert_settings, data=request.data, partial=alert_settings is not None)
    if serializer.is_valid():
        serializer.save(branch_id=branch_id)
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def process_late_bookings_view(request):
    """Trigger the late / missed booking check (normally run from cron)"""
    if not request.user.is_super_admin:
        return Response({'error': 'Only super admins can run the late booking check'}, status=status.HTTP_403_FORBIDDEN)
    try:
        return Response({'success': True, **process_late_bookings()})
    except Exception as e:
        logger.error(f"Late booking processing failed: {str(e)}", exc_info=True)
        return Response({'error': 'Late booking processing failed'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def send_carer_schedule(request):
    """Email a carer their bookings for a date range"""
    if not is_admin(request.user):
        return Response({'error': 'Only administrators can send schedules'}, status=status.HTTP_403_FORBIDDEN)

    serializer = CarerScheduleEmailSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    staff = get_object_or_404(Staff.objects.select_related('branch'), pk=data['staff'])
    if not can_manage_branch(request.user, staff.branch_id):
        return Response({'error': 'You do not manage this carer'}, status=status.HTTP_403_FORBIDDEN)
    recipient = data.get('recipient') or staff.email
    if not recipient:
        return Response({'error': 'Carer has no email address'}, status=status.HTTP_400_BAD_REQUEST)

    bookings = list(
        Booking.objects.filter(staff=staff, start_time__date__gte=data['start_date'], start_time__date__lte=data['end_date'])
        .exclude(status=Booking.STATUS_CANCELLED)
        .select_related('client', 'service')
        .order_by('start_time')
    )
    html = render_carer_schedule_email(staff, bookings, data['start_date'], data['end_date'],
                                       request.user.display_name)
    try:
        send_html_email(schedule_subject(data['start_date'], data['end_date']), html, [recipient])
    except Exception as e:
        logger.error(f"Failed to send schedule to {recipient}: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to send email'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(request, 'email_send', 'Staff', staff.id, {'type': 'carer_schedule', 'recipient': recipient,
                                                               'bookings': len(bookings)}, object_name=staff.full_name)
    logger.info(f"Schedule with {len(bookings)} bookings sent to {recipient} from {settings.DEFAULT_FROM_EMAIL}")
    return Response({'success': True, 'recipient': recipient, 'bookings': len(bookings)})
