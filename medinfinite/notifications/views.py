import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.contrib.auth import get_user_model
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone

from medinfinite.branches.access import is_admin, can_manage_branch
from medinfinite.branches.models import Branch
from medinfinite.core.utils import paginate, create_audit_log
from .models import Notification
from .serializers import NotificationSerializer, SendNotificationSerializer
from .services import notify_users

logger = logging.getLogger('medinfinite.notifications')

User = get_user_model()


def _my_notifications(request):
    now = timezone.now()
    return Notification.objects.filter(user=request.user).filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notification_list(request):
    """List the current user's notifications"""
    queryset = _my_notifications(request)

    unread = request.query_params.get('unread')
    if unread in ('1', 'true', 'True'):
        queryset = queryset.filter(read_at__isnull=True)

    notification_type = request.query_params.get('type')
    if notification_type:
        queryset = queryset.filter(type=notification_type)

    priority = request.query_params.get('priority')
    if priority:
        queryset = queryset.filter(priority=priority)

    return Response(paginate(queryset.order_by('-created_at'), request, NotificationSerializer))


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def notification_detail(request, pk):
    notification = get_object_or_404(Notification, pk=pk, user=request.user)
    if request.method == 'DELETE':
        notification.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
    return Response(NotificationSerializer(notification).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_mark_read(request, pk):
    notification = get_object_or_404(Notification, pk=pk, user=request.user)
    if notification.read_at is None:
        notification.read_at = timezone.now()
        notification.save(update_fields=['read_at'])
    return Response(NotificationSerializer(notification).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_mark_all_read(request):
    updated = Notification.objects.filter(user=request.user, read_at__isnull=True).update(read_at=timezone.now())
    logger.info(f"User {request.user.username} marked {updated} notifications as read")
    return Response({'updated': updated})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notification_unread_count(request):
    count = _my_notifications(request).filter(read_at__isnull=True).count()
    return Response({'unread': count})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def send_notification(request):
    """Create notifications for a list of users and email them (admin only)"""
    if not is_admin(request.user):
        return Response({'error': 'Only administrators can send notifications'}, status=status.HTTP_403_FORBIDDEN)

    serializer = SendNotificationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    branch = None
    if data.get('branch'):
        branch = get_object_or_404(Branch, pk=data['branch'])
        if not can_manage_branch(request.user, branch.id):
            return Response({'error': 'You cannot notify users of this branch'}, status=status.HTTP_403_FORBIDDEN)

    users = list(User.objects.filter(id__in=data['user_ids'], is_active=True))
    if not users:
        return Response({'error': 'No active users found for the given ids'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        created = notify_users(
            users, data['title'], data['message'], type=data['type'], priority=data['priority'],
            branch=branch, send_email=data['send_email'],
        )
    except Exception as e:
        logger.error(f"Unexpected error sending notifications: {str(e)}", exc_info=True)
        return Response({'error': 'An unexpected error occurred'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(request, 'email_send' if data['send_email'] else 'create', 'Notification',
                     created[0].pk, {'user_ids': [u.id for u in users], 'count': len(created)},
                     object_name=data['title'])
    return Response({'created': len(created)}, status=status.HTTP_201_CREATED)
