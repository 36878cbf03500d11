import logging
from datetime import timedelta

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date

from medinfinite.branches.access import scope_queryset, can_access_branch, can_manage_branch
from medinfinite.clients.models import Client
from medinfinite.clients.statuses import normalize_status
from medinfinite.core.utils import paginate, create_audit_log
from . import workflow
from .completion import completed_steps, STEP_NAMES, ADULT_STEPS, CHILD_STEPS
from .models import CarePlan, Goal, Activity, Medication
from .serializers import (
    CarePlanSerializer, CarePlanListSerializer, CarePlanStatusHistorySerializer, GoalSerializer,
    ActivitySerializer, MedicationSerializer, MedicationAdministrationSerializer,
    AutosaveSerializer, StatusChangeSerializer
)

logger = logging.getLogger('medinfinite.careplans')


def _visible_care_plans(user):
    queryset = scope_queryset(CarePlan.objects.select_related('client', 'staff'), user, field='client__branch')
    if user.role == user.ROLE_CLIENT:
        queryset = queryset.filter(client__user=user)
    return queryset


def _can_view(user, care_plan):
    if not can_access_branch(user, care_plan.client.branch_id):
        return False
    if user.role == user.ROLE_CLIENT:
        return care_plan.client.user_id == user.id
    return True


def _can_edit(user, care_plan):
    return can_manage_branch(user, care_plan.client.branch_id, 'care_plans')


def _get_care_plan(request, pk, manage=False):
    """Return (care_plan, error_response)"""
    care_plan = get_object_or_404(CarePlan.objects.select_related('client', 'staff'), pk=pk)
    if not _can_view(request.user, care_plan):
        return None, Response({'error': 'You do not have access to this care plan'}, status=status.HTTP_403_FORBIDDEN)
    if manage and not _can_edit(request.user, care_plan):
        return None, Response({'error': 'Only administrators of this branch can modify care plans'}, status=status.HTTP_403_FORBIDDEN)
    return care_plan, None


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def care_plan_list_create(request):
    """List care plans of the visible clients or start a new one"""
    try:
        if request.method == 'GET':
            queryset = _visible_care_plans(request.user)
            params = request.query_params
            if params.get('client'):
                queryset = queryset.filter(client_id=params['client'])
            if params.get('branch'):
                queryset = queryset.filter(client__branch_id=params['branch'])
            if params.get('status'):
                queryset = queryset.filter(status=normalize_status(params['status']))
            if params.get('approval_status'):
                queryset = queryset.filter(approval_status=params['approval_status'])
            return Response(paginate(queryset.order_by('-updated_at'), request, CarePlanListSerializer))

        client = Client.objects.filter(pk=request.data.get('client')).first()
        if client is None:
            return Response({'error': 'Client not found'}, status=status.HTTP_400_BAD_REQUEST)
        if not can_manage_branch(request.user, client.branch_id, 'care_plans'):
            logger.warning(f"User {request.user.username} attempted to create a care plan for client {client.pk} without permission")
            return Response({'error': 'Only administrators of this branch can create care plans'}, status=status.HTTP_403_FORBIDDEN)

        serializer = CarePlanSerializer(data=request.data)
        if serializer.is_valid():
            care_plan_type = serializer.validated_data.get('care_plan_type') or ('child' if client.is_child else 'standard')
            care_plan = serializer.save(created_by=request.user, care_plan_type=care_plan_type)
            if care_plan.wizard_data:
                workflow.autosave(care_plan, care_plan.wizard_data, force=True)
            create_audit_log(request, 'create', 'CarePlan', care_plan.id, object_name=care_plan.display_id)
            logger.info(f"Care plan {care_plan.display_id} created for client {client.pk} by {request.user.username}")
            return Response(CarePlanSerializer(care_plan).data, status=status.HTTP_201_CREATED)
        logger.warning(f"Care plan creation validation failed: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.error(f"Unexpected error in care_plan_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def care_plan_detail(request, pk):
    care_plan, error = _get_care_plan(request, pk, manage=request.method != 'GET')
    if error:
        return error

    if request.method == 'GET':
        return Response(CarePlanSerializer(care_plan).data)

    if request.method == 'DELETE':
        create_audit_log(request, 'delete', 'CarePlan', care_plan.id, object_name=care_plan.display_id)
        logger.info(f"User {request.user.username} deleting care plan {care_plan.display_id}")
        care_plan.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = CarePlanSerializer(care_plan, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        care_plan = serializer.save()
        if 'wizard_data' in serializer.validated_data:
            workflow.autosave(care_plan, care_plan.wizard_data, force=True)
        create_audit_log(request, 'update', 'CarePlan', care_plan.id, object_name=care_plan.display_id)
        return Response(CarePlanSerializer(care_plan).data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def care_plan_autosave(request, pk):
    """Store the wizard draft; saves inside the auto-save interval are skipped unless forced"""
    care_plan, error = _get_care_plan(request, pk, manage=True)
    if error:
        return error

    serializer = AutosaveSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    try:
        saved, percentage = workflow.autosave(care_plan, data['wizard_data'], data.get('step'), data['force'])
    except Exception as e:
        logger.error(f"Auto-save failed for care plan {pk}: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to save the care plan draft'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return Response({
        'saved': saved,
        'completion_percentage': percentage,
        'last_step_completed': care_plan.last_step_completed,
        'last_autosaved_at': care_plan.last_autosaved_at,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def care_plan_completion(request, pk):
    care_plan, error = _get_care_plan(request, pk)
    if error:
        return error

    steps = completed_steps(care_plan.wizard_data, care_plan.is_child)
    total = CHILD_STEPS if care_plan.is_child else ADULT_STEPS
    return Response({
        'completed_steps': steps,
        'total_steps': total,
        'completion_percentage': care_plan.completion_percentage,
        'steps': [{'id': step, 'name': STEP_NAMES[step], 'completed': step in steps} for step in range(1, total + 1)],
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def care_plan_change_status(request, pk):
    care_plan, error = _get_care_plan(request, pk, manage=True)
    if error:
        return error

    serializer = StatusChangeSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    previous = care_plan.status
    history = workflow.change_status(care_plan, serializer.validated_data['status'], request.user,
                                     serializer.validated_data['reason'])
    if history is not None:
        create_audit_log(request, 'status_change', 'CarePlan', care_plan.id,
                         {'status': {'from': previous, 'to': care_plan.status}}, object_name=care_plan.display_id)
    care_plan.client.refresh_from_db(fields=['status'])
    return Response({
        'care_plan': CarePlanSerializer(care_plan).data,
        'client_status': care_plan.client.status,
        'changed': history is not None,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def care_plan_status_history(request, pk):
    care_plan, error = _get_care_plan(request, pk)
    if error:
        return error
    history = care_plan.status_history.select_related('changed_by')
    return Response(CarePlanStatusHistorySerializer(history, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def care_plan_submit(request, pk):
    care_plan, error = _get_care_plan(request, pk, manage=True)
    if error:
        return error
    try:
        workflow.submit_for_approval(care_plan, request.user)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(CarePlanSerializer(care_plan).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def care_plan_approve(request, pk):
    care_plan, error = _get_care_plan(request, pk, manage=True)
    if error:
        return error
    try:
        workflow.approve(care_plan, request.user, bool(request.data.get('require_client_approval', False)))
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request, 'approve', 'CarePlan', care_plan.id, object_name=care_plan.display_id)
    logger.info(f"Care plan {care_plan.display_id} approved by {request.user.username}")
    return Response(CarePlanSerializer(care_plan).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def care_plan_reject(request, pk):
    care_plan, error = _get_care_plan(request, pk, manage=True)
    if error:
        return error
    reason = request.data.get('reason', '')
    try:
        workflow.reject(care_plan, request.user, reason)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request, 'reject', 'CarePlan', care_plan.id, {'reason': reason}, object_name=care_plan.display_id)
    return Response(CarePlanSerializer(care_plan).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def care_plan_client_approve(request, pk):
    """The client (or an admin on their behalf) signs the care plan"""
    care_plan, error = _get_care_plan(request, pk)
    if error:
        return error
    if request.user.role != request.user.ROLE_CLIENT and not _can_edit(request.user, care_plan):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)
    try:
        workflow.client_approve(care_plan, request.user, request.data.get('signature', ''))
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    create_audit_log(request, 'sign', 'CarePlan', care_plan.id, object_name=care_plan.display_id)
    return Response(CarePlanSerializer(care_plan).data)


def _nested_list_create(request, pk, related_name, serializer_class, model_name):
    care_plan, error = _get_care_plan(request, pk, manage=request.method == 'POST')
    if error:
        return error

    if request.method == 'GET':
        return Response(serializer_class(getattr(care_plan, related_name).all(), many=True).data)

    serializer = serializer_class(data=request.data)
    if serializer.is_valid():
        instance = serializer.save(care_plan=care_plan)
        create_audit_log(request, 'create', model_name, instance.id, object_name=care_plan.display_id)
        return Response(serializer_class(instance).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _nested_detail(request, model, pk, serializer_class, model_name):
    instance = get_object_or_404(model.objects.select_related('care_plan__client'), pk=pk)
    care_plan = instance.care_plan
    if not _can_view(request.user, care_plan):
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(serializer_class(instance).data)

    if not _can_edit(request.user, care_plan):
        return Response({'error': 'Only administrators of this branch can modify care plans'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'DELETE':
        create_audit_log(request, 'delete', model_name, instance.id, object_name=care_plan.display_id)
        instance.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = serializer_class(instance, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        create_audit_log(request, 'update', model_name, instance.id, dict(request.data), object_name=care_plan.display_id)
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def goal_list_create(request, pk):
    return _nested_list_create(request, pk, 'goals', GoalSerializer, 'Goal')


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def goal_detail(request, pk):
    return _nested_detail(request, Goal, pk, GoalSerializer, 'Goal')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def activity_list_create(request, pk):
    return _nested_list_create(request, pk, 'activities', ActivitySerializer, 'Activity')


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def activity_detail(request, pk):
    return _nested_detail(request, Activity, pk, ActivitySerializer, 'Activity')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def medication_list_create(request, pk):
    return _nested_list_create(request, pk, 'medications', MedicationSerializer, 'Medication')


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def medication_detail(request, pk):
    return _nested_detail(request, Medication, pk, MedicationSerializer, 'Medication')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def medication_administer(request, pk):
    """List or record administrations of one medication (carers of the branch and its admins)"""
    medication = get_object_or_404(Medication.objects.select_related('care_plan__client'), pk=pk)
    branch_id = medication.care_plan.client.branch_id
    user = request.user
    if not can_access_branch(user, branch_id) or user.role == user.ROLE_CLIENT:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        records = medication.administrations.select_related('administered_by')[:200]
        return Response(MedicationAdministrationSerializer(records, many=True).data)

    if user.role != user.ROLE_CARER and not can_manage_branch(user, branch_id, 'medication'):
        return Response({'error': 'You are not allowed to record medication for this branch'}, status=status.HTTP_403_FORBIDDEN)
    if medication.status != 'active':
        return Response({'error': f'Medication is {medication.status}'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = MedicationAdministrationSerializer(data=request.data)
    if serializer.is_valid():
        record = serializer.save(medication=medication, administered_by=user)
        create_audit_log(request, 'medication_administer', 'Medication', medication.id,
                         {'status': record.status, 'administered_at': record.administered_at.isoformat()},
                         object_name=medication.name)
        logger.info(f"Medication {medication.pk} recorded as {record.status} by {user.username}")
        return Response(MedicationAdministrationSerializer(record).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def mar_chart(request, pk):
    """MAR chart of a care plan; defaults to the last 7 days"""
    care_plan, error = _get_care_plan(request, pk)
    if error:
        return error

    today = timezone.localdate()
    start = parse_date(request.query_params.get('start_date', '') or '') or today - timedelta(days=6)
    end = parse_date(request.query_params.get('end_date', '') or '') or today
    if (end - start).days > 92:
        return Response({'error': 'Date range cannot exceed 92 days'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        return Response(workflow.mar_chart(care_plan, start, end))
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
