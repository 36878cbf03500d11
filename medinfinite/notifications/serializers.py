from rest_framework import serializers
from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    is_read = serializers.BooleanField(read_only=True)

    class Meta:
        model = Notification
        fields = ['id', 'user', 'branch', 'title', 'message', 'type', 'category', 'priority', 'data',
                  'is_read', 'read_at', 'email_sent_at', 'expires_at', 'created_at']
        read_only_fields = ['user', 'read_at', 'email_sent_at', 'created_at']


class SendNotificationSerializer(serializers.Serializer):
    user_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    title = serializers.CharField(max_length=255)
    message = serializers.CharField()
    type = serializers.ChoiceField(choices=Notification.TYPE_CHOICES, default='system')
    priority = serializers.ChoiceField(choices=Notification.PRIORITY_CHOICES, default='medium')
    branch = serializers.IntegerField(required=False, allow_null=True)
    send_email = serializers.BooleanField(default=True)
