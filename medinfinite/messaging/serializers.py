from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import MessageThread, MessageParticipant, Message

User = get_user_model()


class MessageSerializer(serializers.ModelSerializer):
    sender_name = serializers.CharField(source='sender.display_name', read_only=True, default=None)

    class Meta:
        model = Message
        fields = ['id', 'thread', 'sender', 'sender_name', 'content', 'priority', 'action_required',
                  'admin_eyes_only', 'attachments', 'created_at']
        read_only_fields = ['thread', 'sender', 'created_at']

    def validate_content(self, value):
        if not value.strip():
            raise serializers.ValidationError('Message cannot be empty')
        return value

    def validate_attachments(self, value):
        if not isinstance(value, list) or not all(isinstance(item, dict) and item.get('url') for item in value):
            raise serializers.ValidationError('Attachments must be a list of objects with a url')
        return value


class ParticipantSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='user.display_name', read_only=True)
    role = serializers.CharField(source='user.role', read_only=True)

    class Meta:
        model = MessageParticipant
        fields = ['user', 'name', 'role', 'joined_at', 'last_read_at']


class MessageThreadSerializer(serializers.ModelSerializer):
    participants = ParticipantSerializer(many=True, read_only=True)
    unread_count = serializers.IntegerField(read_only=True, default=0)
    last_message = serializers.SerializerMethodField()

    class Meta:
        model = MessageThread
        fields = ['id', 'branch', 'subject', 'thread_type', 'created_by', 'is_archived', 'admin_only',
                  'requires_action', 'last_message_at', 'participants', 'unread_count', 'last_message', 'created_at']

    def get_last_message(self, obj):
        message = obj.messages.order_by('-created_at').first()
        if message is None:
            return None
        return {'sender': message.sender.display_name if message.sender else None,
                'content': message.content[:120], 'created_at': message.created_at}


class CreateThreadSerializer(serializers.Serializer):
    subject = serializers.CharField(max_length=255)
    thread_type = serializers.ChoiceField(choices=MessageThread.TYPE_CHOICES, default='direct')
    branch = serializers.IntegerField(required=False, allow_null=True)
    participants = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True), many=True)
    admin_only = serializers.BooleanField(default=False)
    requires_action = serializers.BooleanField(default=False)
    content = serializers.CharField()
    priority = serializers.ChoiceField(choices=Message.PRIORITY_CHOICES, default='medium')

    def validate_participants(self, value):
        if not value:
            raise serializers.ValidationError('At least one participant is required')
        return value
