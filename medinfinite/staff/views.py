import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.db import IntegrityError

from medinfinite.branches.access import scope_queryset, can_access_branch, can_manage_branch
from medinfinite.branches.models import Branch
from medinfinite.core.utils import paginate, create_audit_log
from medinfinite.notifications.emails import send_html_email
from .alerts import notify_document_uploaded
from .compliance import staff_compliance, branch_training_metrics
from .emails import render_training_metrics_email, default_subject
from .filters import StaffFilter, TrainingRecordFilter
from .models import Staff, TrainingCourse, TrainingRecord, StaffDocument
from .serializers import (
    StaffSerializer, TrainingCourseSerializer, TrainingRecordSerializer,
    StaffDocumentSerializer, TrainingMetricsEmailSerializer
)

logger = logging.getLogger('medinfinite.staff')


def _branch_id(request, instance=None):
    value = request.data.get('branch') if hasattr(request.data, 'get') else None
    if value in (None, '') and instance is not None:
        return instance.branch_id
    return value


# Staff views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def staff_list_create(request):
    """List carers in the visible branches or create a carer (admin of the branch only)"""
    try:
        if request.method == 'GET':
            queryset = scope_queryset(Staff.objects.select_related('branch'), request.user)
            filterset = StaffFilter(request.query_params, queryset=queryset)
            queryset = filterset.qs.order_by('last_name', 'first_name')
            return Response(paginate(queryset, request, StaffSerializer))

        branch_id = _branch_id(request)
        if not can_manage_branch(request.user, branch_id, 'carers'):
            logger.warning(f"User {request.user.username} attempted to create staff in branch {branch_id} without permission")
            return Response({'error': 'Only administrators of this branch can add staff'}, status=status.HTTP_403_FORBIDDEN)

        serializer = StaffSerializer(data=request.data)
        if serializer.is_valid():
            try:
                staff = serializer.save()
            except IntegrityError as e:
                logger.error(f"IntegrityError creating staff: {str(e)}", exc_info=True)
                return Response({'error': 'This user already has a staff profile'}, status=status.HTTP_400_BAD_REQUEST)
            create_audit_log(request, 'create', 'Staff', staff.id, object_name=staff.full_name)
            logger.info(f"Staff '{staff.full_name}' created by {request.user.username}")
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        logger.warning(f"Staff creation validation failed: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.error(f"Unexpected error in staff_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def staff_detail(request, pk):
    """Retrieve, update or delete a carer"""
    staff = get_object_or_404(Staff.objects.select_related('branch'), pk=pk)

    if not can_access_branch(request.user, staff.branch_id):
        return Response({'error': 'You do not have access to this staff member'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(StaffSerializer(staff).data)

    if not can_manage_branch(request.user, staff.branch_id, 'carers'):
        return Response({'error': 'Only administrators of this branch can modify staff'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'DELETE':
        logger.info(f"User {request.user.username} deleting staff {pk} ({staff.full_name})")
        create_audit_log(request, 'delete', 'Staff', staff.id, object_name=staff.full_name)
        staff.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    new_branch = _branch_id(request, staff)
    if str(new_branch) != str(staff.branch_id) and not can_manage_branch(request.user, new_branch, 'carers'):
        return Response({'error': 'You cannot move staff into that branch'}, status=status.HTTP_403_FORBIDDEN)

    serializer = StaffSerializer(staff, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        create_audit_log(request, 'update', 'Staff', staff.id, dict(request.data), object_name=staff.full_name)
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def staff_compliance_view(request, pk):
    """Training, document, missed call and incident compliance for one carer"""
    staff = get_object_or_404(Staff, pk=pk)
    is_self = staff.user_id == request.user.id
    if not is_self and not can_manage_branch(request.user, staff.branch_id):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
    return Response(staff_compliance(staff))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def staff_document_list_create(request, pk):
    """List or upload documents for a carer"""
    staff = get_object_or_404(Staff, pk=pk)
    is_self = staff.user_id == request.user.id
    if not is_self and not can_manage_branch(request.user, staff.branch_id, 'carers'):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(StaffDocumentSerializer(staff.documents.all(), many=True).data)

    serializer = StaffDocumentSerializer(data=request.data)
    if serializer.is_valid():
        document = serializer.save(staff=staff)
        notify_document_uploaded(document)
        logger.info(f"Document {document.id} uploaded for staff {staff.id} by {request.user.username}")
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def staff_document_detail(request, pk):
    document = get_object_or_404(StaffDocument.objects.select_related('staff'), pk=pk)
    if not can_manage_branch(request.user, document.staff.branch_id, 'carers'):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(StaffDocumentSerializer(document).data)
    if request.method == 'DELETE':
        document.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = StaffDocumentSerializer(document, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Training course views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def training_course_list_create(request):
    if request.method == 'GET':
        queryset = scope_queryset(TrainingCourse.objects.all(), request.user)
        category = request.query_params.get('category')
        if category:
            queryset = queryset.filter(category=category)
        course_status = request.query_params.get('status')
        if course_status:
            queryset = queryset.filter(status=course_status)
        return Response(TrainingCourseSerializer(queryset.order_by('title'), many=True).data)

    if not can_manage_branch(request.user, _branch_id(request), 'training'):
        return Response({'error': 'Only administrators of this branch can create courses'}, status=status.HTTP_403_FORBIDDEN)

    serializer = TrainingCourseSerializer(data=request.data)
    if serializer.is_valid():
        try:
            course = serializer.save()
        except IntegrityError:
            return Response({'error': 'A course with this title already exists in the branch'}, status=status.HTTP_400_BAD_REQUEST)
        logger.info(f"Training course '{course.title}' created by {request.user.username}")
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def training_course_detail(request, pk):
    course = get_object_or_404(TrainingCourse, pk=pk)
    if not can_access_branch(request.user, course.branch_id):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(TrainingCourseSerializer(course).data)

    if not can_manage_branch(request.user, course.branch_id, 'training'):
        return Response({'error': 'Only administrators of this branch can modify courses'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'DELETE':
        course.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = TrainingCourseSerializer(course, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        try:
            serializer.save()
        except IntegrityError:
            return Response({'error': 'A course with this title already exists in the branch'}, status=status.HTTP_400_BAD_REQUEST)
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Training record views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def training_record_list_create(request):
    if request.method == 'GET':
        queryset = scope_queryset(TrainingRecord.objects.select_related('staff', 'course'), request.user)
        if request.user.role == request.user.ROLE_CARER:
            queryset = queryset.filter(staff__user=request.user)
        filterset = TrainingRecordFilter(request.query_params, queryset=queryset)
        return Response(paginate(filterset.qs.order_by('-assigned_date', 'id'), request, TrainingRecordSerializer))

    staff = Staff.objects.filter(pk=request.data.get('staff')).first()
    if staff is None:
        return Response({'error': 'Staff member not found'}, status=status.HTTP_400_BAD_REQUEST)
    if not can_manage_branch(request.user, staff.branch_id, 'training'):
        return Response({'error': 'Only administrators of this branch can assign training'}, status=status.HTTP_403_FORBIDDEN)

    serializer = TrainingRecordSerializer(data=request.data)
    if serializer.is_valid():
        try:
            serializer.save()
        except IntegrityError:
            return Response({'error': 'This course is already assigned to the staff member'}, status=status.HTTP_400_BAD_REQUEST)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def training_record_detail(request, pk):
    record = get_object_or_404(TrainingRecord.objects.select_related('staff', 'course'), pk=pk)
    is_self = record.staff.user_id == request.user.id
    can_manage = can_manage_branch(request.user, record.branch_id, 'training')
    if not (is_self or can_manage):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(TrainingRecordSerializer(record).data)
    if not can_manage:
        return Response({'error': 'Only administrators can modify training records'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'DELETE':
        record.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    previous_status = record.status
    serializer = TrainingRecordSerializer(record, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        if previous_status != record.status:
            create_audit_log(request, 'status_change', 'TrainingRecord', record.id,
                             {'status': {'old': previous_status, 'new': record.status}}, object_name=str(record))
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Training metrics
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def training_metrics(request):
    """Per-staff and per-category training compliance for one branch"""
    branch = get_object_or_404(Branch, pk=request.query_params.get('branch') or 0)
    if not can_manage_branch(request.user, branch.id):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
    return Response(branch_training_metrics(branch))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def send_training_metrics_email(request):
    """Email the training metrics report of a branch to a list of recipients"""
    serializer = TrainingMetricsEmailSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    branch = get_object_or_404(Branch, pk=data['branch'])
    if not can_manage_branch(request.user, branch.id, 'training'):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    metrics = branch_training_metrics(branch)
    subject = data.get('subject') or default_subject(metrics)
    html = render_training_metrics_email(metrics, data.get('message', ''))

    try:
        sent = send_html_email(subject, html, data['recipients'])
    except Exception as e:
        logger.error(f"Failed to send training metrics email for branch {branch.id}: {str(e)}", exc_info=True)
        return Response({'error': f'Failed to send email: {str(e)}'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(request, 'email_send', 'Branch', branch.id,
                     {'report': 'training_metrics', 'recipients': data['recipients']}, object_name=subject)
    return Response({'sent': sent, 'subject': subject, 'recipients': data['recipients']})
