from django.conf import settings
from django.db import models
from django.utils import timezone

from medinfinite.branches.models import Branch


class MessageThread(models.Model):
    TYPE_CHOICES = [
        ('direct', 'Direct'),
        ('group', 'Group'),
        ('announcement', 'Announcement'),
        ('client', 'Client'),
    ]

    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, null=True, blank=True, related_name='message_threads')
    subject = models.CharField(max_length=255)
    thread_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='direct')
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='created_threads')
    is_archived = models.BooleanField(default=False)
    admin_only = models.BooleanField(default=False)
    requires_action = models.BooleanField(default=False)
    last_message_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def is_participant(self, user):
        return self.participants.filter(user=user).exists()

    def __str__(self):
        return self.subject

    class Meta:
        db_table = 'message_threads'
        ordering = ['-last_message_at']


class MessageParticipant(models.Model):
    thread = models.ForeignKey(MessageThread, on_delete=models.CASCADE, related_name='participants')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='thread_participations')
    joined_at = models.DateTimeField(auto_now_add=True)
    last_read_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"{self.user} in {self.thread}"

    class Meta:
        db_table = 'message_participants'
        constraints = [
            models.UniqueConstraint(fields=['thread', 'user'], name='unique_thread_participant'),
        ]


class Message(models.Model):
    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]

    thread = models.ForeignKey(MessageThread, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='sent_messages')
    content = models.TextField()
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    action_required = models.BooleanField(default=False)
    admin_eyes_only = models.BooleanField(default=False)
    attachments = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Message {self.pk} in {self.thread_id}"

    class Meta:
        db_table = 'messages'
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['thread', 'created_at'], name='messages_thread_created_idx'),
        ]
