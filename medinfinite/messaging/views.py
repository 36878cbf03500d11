import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Count, F, OuterRef, Q, Subquery
from django.shortcuts import get_object_or_404
from django.utils import timezone

from medinfinite.branches.access import can_access_branch, is_admin
from medinfinite.core.utils import paginate
from medinfinite.notifications.services import notify_users
from .models import MessageThread, MessageParticipant, Message
from .serializers import MessageThreadSerializer, MessageSerializer, CreateThreadSerializer

logger = logging.getLogger('medinfinite.messaging')


def _threads_with_unread(user):
    """Threads the user takes part in, annotated with their unread message count"""
    last_read = MessageParticipant.objects.filter(thread=OuterRef('pk'), user=user).values('last_read_at')[:1]
    queryset = MessageThread.objects.filter(participants__user=user).annotate(my_last_read_at=Subquery(last_read))

    unread = Q(messages__isnull=False) & ~Q(messages__sender=user) & (
        Q(my_last_read_at__isnull=True) | Q(messages__created_at__gt=F('my_last_read_at'))
    )
    if not is_admin(user):
        queryset = queryset.filter(admin_only=False)
        unread &= Q(messages__admin_eyes_only=False)
    return queryset.annotate(unread_count=Count('messages', filter=unread, distinct=True)).prefetch_related('participants__user')


def _visible_messages(thread, user):
    messages = thread.messages.select_related('sender')
    if not is_admin(user):
        messages = messages.filter(admin_eyes_only=False)
    return messages


def _get_thread(request, pk):
    """Return (thread, error_response); only participants may see a thread"""
    thread = get_object_or_404(MessageThread, pk=pk)
    if not thread.is_participant(request.user):
        return None, Response({'error': 'You are not a participant of this conversation'}, status=status.HTTP_403_FORBIDDEN)
    if thread.admin_only and not is_admin(request.user):
        return None, Response({'error': 'This conversation is restricted to administrators'}, status=status.HTTP_403_FORBIDDEN)
    return thread, None


def _notify_participants(thread, message, sender):
    recipients = [participant.user for participant in thread.participants.select_related('user').exclude(user=sender)]
    if message.admin_eyes_only:
        recipients = [user for user in recipients if user.is_admin_role]
    notify_users(
        recipients,
        f'New message: {thread.subject}',
        f"{sender.display_name}: {message.content[:200]}",
        type='message',
        priority='high' if message.priority in ('high', 'urgent') else 'medium',
        branch=thread.branch,
        category='new_message',
        data={'thread_id': thread.id, 'message_id': message.id},
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def thread_list_create(request):
    if request.method == 'GET':
        threads = _threads_with_unread(request.user)
        archived = request.query_params.get('archived')
        threads = threads.filter(is_archived=archived in ('1', 'true'))
        if request.query_params.get('unread') in ('1', 'true'):
            threads = threads.filter(unread_count__gt=0)
        return Response(paginate(threads.order_by('-last_message_at'), request, MessageThreadSerializer))

    try:
        serializer = CreateThreadSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data

        branch_id = data.get('branch')
        if branch_id and not can_access_branch(request.user, branch_id):
            return Response({'error': 'You do not have access to this branch'}, status=status.HTTP_403_FORBIDDEN)
        if data['admin_only'] and not is_admin(request.user):
            return Response({'error': 'Only administrators can start admin-only conversations'}, status=status.HTTP_403_FORBIDDEN)

        users = {user.id: user for user in data['participants']}
        users[request.user.id] = request.user
        with transaction.atomic():
            thread = MessageThread.objects.create(
                branch_id=branch_id,
                subject=data['subject'],
                thread_type=data['thread_type'],
                created_by=request.user,
                admin_only=data['admin_only'],
                requires_action=data['requires_action'],
            )
            MessageParticipant.objects.bulk_create([
                MessageParticipant(thread=thread, user=user,
                                   last_read_at=timezone.now() if user.id == request.user.id else None)
                for user in users.values()
            ])
            message = Message.objects.create(thread=thread, sender=request.user, content=data['content'],
                                             priority=data['priority'], action_required=data['requires_action'])
            thread.last_message_at = message.created_at
            thread.save(update_fields=['last_message_at'])

        _notify_participants(thread, message, request.user)
        logger.info(f"Thread {thread.id} started by {request.user.username} with {len(users)} participants")
        thread = _threads_with_unread(request.user).get(pk=thread.pk)
        return Response(MessageThreadSerializer(thread).data, status=status.HTTP_201_CREATED)
    except Exception as e:
        logger.error(f"Unexpected error in thread_list_create: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def thread_messages(request, pk):
    """Read a thread's messages or post a new one"""
    thread, error = _get_thread(request, pk)
    if error:
        return error

    if request.method == 'GET':
        return Response(paginate(_visible_messages(thread, request.user), request, MessageSerializer, default_limit=100))

    if thread.is_archived:
        return Response({'error': 'This conversation is archived'}, status=status.HTTP_400_BAD_REQUEST)
    serializer = MessageSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    if serializer.validated_data.get('admin_eyes_only') and not is_admin(request.user):
        return Response({'error': 'Only administrators can post admin-only messages'}, status=status.HTTP_403_FORBIDDEN)

    with transaction.atomic():
        message = serializer.save(thread=thread, sender=request.user)
        MessageThread.objects.filter(pk=thread.pk).update(last_message_at=message.created_at)
        MessageParticipant.objects.filter(thread=thread, user=request.user).update(last_read_at=message.created_at)

    _notify_participants(thread, message, request.user)
    logger.info(f"Message {message.id} posted to thread {thread.id} by {request.user.username}")
    return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def thread_mark_read(request, pk):
    thread, error = _get_thread(request, pk)
    if error:
        return error
    now = timezone.now()
    MessageParticipant.objects.filter(thread=thread, user=request.user).update(last_read_at=now)
    return Response({'success': True, 'last_read_at': now})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def thread_archive(request, pk):
    thread, error = _get_thread(request, pk)
    if error:
        return error
    archive = request.data.get('archived', True) not in (False, 'false', '0', 0)
    thread.is_archived = archive
    thread.save(update_fields=['is_archived', 'updated_at'])
    logger.info(f"Thread {thread.id} {'archived' if archive else 'restored'} by {request.user.username}")
    return Response({'success': True, 'is_archived': thread.is_archived})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def unread_message_count(request):
    threads = _threads_with_unread(request.user).filter(is_archived=False)
    return Response({'unread_count': sum(thread.unread_count for thread in threads)})
