from django.contrib import admin
from .models import MessageThread, MessageParticipant, Message


class MessageParticipantInline(admin.TabularInline):
    model = MessageParticipant
    extra = 0
    raw_id_fields = ['user']


@admin.register(MessageThread)
class MessageThreadAdmin(admin.ModelAdmin):
    list_display = ['subject', 'thread_type', 'branch', 'created_by', 'is_archived', 'admin_only', 'last_message_at']
    list_filter = ['thread_type', 'is_archived', 'admin_only']
    search_fields = ['subject']
    inlines = [MessageParticipantInline]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ['id', 'thread', 'sender', 'priority', 'admin_eyes_only', 'created_at']
    list_filter = ['priority', 'admin_eyes_only']
    search_fields = ['content']
    raw_id_fields = ['thread', 'sender']
