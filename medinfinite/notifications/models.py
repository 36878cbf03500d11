from django.conf import settings
from django.db import models

from medinfinite.branches.models import Branch


class Notification(models.Model):
    """In-app notification, optionally mirrored by email"""
    TYPE_CHOICES = [
        ('booking', 'Booking'),
        ('staff', 'Staff'),
        ('training', 'Training'),
        ('client', 'Client'),
        ('care_plan', 'Care Plan'),
        ('medication', 'Medication'),
        ('message', 'Message'),
        ('clinical', 'Clinical'),
        ('billing', 'Billing'),
        ('system', 'System'),
    ]
    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
        ('critical', 'Critical'),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications')
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, null=True, blank=True, related_name='notifications')
    title = models.CharField(max_length=255)
    message = models.TextField()
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='system')
    category = models.CharField(max_length=50, blank=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    data = models.JSONField(default=dict, blank=True)
    read_at = models.DateTimeField(null=True, blank=True)
    email_sent_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def is_read(self):
        return self.read_at is not None

    def __str__(self):
        return self.title

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'read_at'], name='notifications_user_read_idx'),
        ]
