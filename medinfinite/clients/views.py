import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.db import IntegrityError

from medinfinite.branches.access import scope_queryset, can_access_branch, can_manage_branch
from medinfinite.core.utils import paginate, create_audit_log
from .filters import ClientFilter
from .models import Client
from .serializers import ClientSerializer, ClientListSerializer, ClientNoteSerializer
from .statuses import CLIENT_STATUSES, CARE_PLAN_STATUSES, CARE_PLAN_TO_CLIENT_STATUS

logger = logging.getLogger('medinfinite.clients')

ORDERING_FIELDS = {'first_name', 'last_name', 'registered_on', 'status', 'created_at', 'date_of_birth'}


def visible_clients(user):
    queryset = scope_queryset(Client.objects.select_related('branch'), user)
    if user.role == user.ROLE_CLIENT:
        queryset = queryset.filter(user=user)
    return queryset


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def client_list_create(request):
    """List clients of the visible branches or register a new client"""
    try:
        if request.method == 'GET':
            filterset = ClientFilter(request.query_params, queryset=visible_clients(request.user))
            queryset = filterset.qs

            ordering = request.query_params.get('ordering', 'last_name')
            if ordering.lstrip('-') not in ORDERING_FIELDS:
                ordering = 'last_name'
            queryset = queryset.order_by(ordering, 'id')
            return Response(paginate(queryset, request, ClientListSerializer))

        branch_id = request.data.get('branch')
        if not can_manage_branch(request.user, branch_id, 'clients'):
            logger.warning(f"User {request.user.username} attempted to create a client in branch {branch_id} without permission")
            return Response({'error': 'Only administrators of this branch can register clients'}, status=status.HTTP_403_FORBIDDEN)

        serializer = ClientSerializer(data=request.data)
        if serializer.is_valid():
            try:
                client = serializer.save()
            except IntegrityError as e:
                logger.error(f"IntegrityError creating client: {str(e)}", exc_info=True)
                return Response({'error': 'This user is already linked to a client'}, status=status.HTTP_400_BAD_REQUEST)
            create_audit_log(request, 'create', 'Client', client.id, object_name=client.full_name)
            logger.info(f"Client '{client.full_name}' created by {request.user.username}")
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        logger.warning(f"Client creation validation failed: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    except Exception as e:
        logger.error(f"Unexpected error in client_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def client_detail(request, pk):
    """Retrieve, update or delete a client"""
    client = get_object_or_404(Client.objects.select_related('branch'), pk=pk)

    if not can_access_branch(request.user, client.branch_id):
        return Response({'error': 'You do not have access to this client'}, status=status.HTTP_403_FORBIDDEN)
    if request.user.role == request.user.ROLE_CLIENT and client.user_id != request.user.id:
        return Response({'error': 'You do not have access to this client'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(ClientSerializer(client).data)

    if not can_manage_branch(request.user, client.branch_id, 'clients'):
        return Response({'error': 'Only administrators of this branch can modify clients'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'DELETE':
        logger.info(f"User {request.user.username} deleting client {pk} ({client.full_name})")
        create_audit_log(request, 'delete', 'Client', client.id, object_name=client.full_name)
        client.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    new_branch = request.data.get('branch') if hasattr(request.data, 'get') else None
    if new_branch not in (None, '') and str(new_branch) != str(client.branch_id) \
            and not can_manage_branch(request.user, new_branch, 'clients'):
        logger.warning(f"User {request.user.username} attempted to move client {pk} into branch {new_branch}")
        return Response({'error': 'You cannot move clients into that branch'}, status=status.HTTP_403_FORBIDDEN)

    previous_status = client.status
    serializer = ClientSerializer(client, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        action = 'status_change' if client.status != previous_status else 'update'
        create_audit_log(request, action, 'Client', client.id, dict(request.data), object_name=client.full_name)
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def client_status_options(request):
    """Status vocabularies for client and care plan pickers"""
    return Response({
        'client_statuses': CLIENT_STATUSES,
        'care_plan_statuses': CARE_PLAN_STATUSES,
        'care_plan_to_client_status': CARE_PLAN_TO_CLIENT_STATUS,
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def client_note_list_create(request, pk):
    client = get_object_or_404(Client, pk=pk)
    if not can_access_branch(request.user, client.branch_id) or request.user.role == request.user.ROLE_CLIENT:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        notes = client.notes.select_related('author')
        return Response(ClientNoteSerializer(notes, many=True).data)

    serializer = ClientNoteSerializer(data=request.data)
    if serializer.is_valid():
        serializer.save(client=client, author=request.user)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
