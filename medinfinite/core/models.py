from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Extended user model carrying the application role"""
    ROLE_SUPER_ADMIN = 'super_admin'
    ROLE_BRANCH_ADMIN = 'branch_admin'
    ROLE_ADMIN = 'admin'
    ROLE_CARER = 'carer'
    ROLE_CLIENT = 'client'

    ROLE_CHOICES = [
        (ROLE_SUPER_ADMIN, 'Super Admin'),
        (ROLE_BRANCH_ADMIN, 'Branch Admin'),
        (ROLE_ADMIN, 'Admin'),
        (ROLE_CARER, 'Carer'),
        (ROLE_CLIENT, 'Client'),
    ]

    ADMIN_ROLES = (ROLE_SUPER_ADMIN, ROLE_BRANCH_ADMIN, ROLE_ADMIN)

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_CARER)
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def is_super_admin(self):
        return self.is_superuser or self.role == self.ROLE_SUPER_ADMIN

    @property
    def is_admin_role(self):
        return self.is_super_admin or self.role in self.ADMIN_ROLES

    @property
    def display_name(self):
        full_name = self.get_full_name()
        return full_name or self.username

    class Meta:
        db_table = 'users'


class Setting(models.Model):
    """System settings"""
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.key

    class Meta:
        db_table = 'settings'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('view', 'View'),
        ('status_change', 'Status Changed'),
        ('approve', 'Approved'),
        ('reject', 'Rejected'),
        ('sign', 'Signed'),
        ('assign', 'Carer Assigned'),
        ('cancel', 'Cancelled'),
        ('visit_start', 'Visit Started'),
        ('visit_complete', 'Visit Completed'),
        ('medication_administer', 'Medication Administered'),
        ('invoice_create', 'Invoice Created'),
        ('payment_add', 'Payment Added'),
        ('admin_create', 'Branch Admin Created'),
        ('member_update', 'Organisation Member Updated'),
        ('email_send', 'Email Sent'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., client name, invoice number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_idx'),
            models.Index(fields=['action'], name='audit_logs_action_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_idx'),
        ]
