import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

from medinfinite.clients.models import Client
from medinfinite.clients.statuses import CARE_PLAN_STATUSES


def generate_display_id():
    """CP-YYYYMMDD-XXXXXX"""
    return f"CP-{timezone.localdate().strftime('%Y%m%d')}-{uuid.uuid4().hex[:6].upper()}"


class CarePlan(models.Model):
    """Goals, activities and medications agreed for a client"""
    STATUS_CHOICES = [(value, value) for value in CARE_PLAN_STATUSES]
    APPROVAL_NOT_SUBMITTED = 'not_submitted'
    APPROVAL_PENDING = 'pending_approval'
    APPROVAL_PENDING_CLIENT = 'pending_client_approval'
    APPROVAL_APPROVED = 'approved'
    APPROVAL_REJECTED = 'rejected'
    APPROVAL_CHOICES = [
        (APPROVAL_NOT_SUBMITTED, 'Not Submitted'),
        (APPROVAL_PENDING, 'Pending Approval'),
        (APPROVAL_PENDING_CLIENT, 'Pending Client Approval'),
        (APPROVAL_APPROVED, 'Approved'),
        (APPROVAL_REJECTED, 'Rejected'),
    ]
    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
    ]
    TYPE_CHOICES = [
        ('standard', 'Standard'),
        ('child', 'Child'),
    ]

    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name='care_plans')
    display_id = models.CharField(max_length=30, unique=True, default=generate_display_id, editable=False)
    title = models.CharField(max_length=255)
    provider_name = models.CharField(max_length=255, blank=True)
    staff = models.ForeignKey('staff.Staff', on_delete=models.SET_NULL, null=True, blank=True, related_name='care_plans')
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    review_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='Draft')
    approval_status = models.CharField(max_length=30, choices=APPROVAL_CHOICES, default=APPROVAL_NOT_SUBMITTED)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    care_plan_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='standard')
    wizard_data = models.JSONField(default=dict, blank=True)
    completion_percentage = models.PositiveSmallIntegerField(default=0)
    last_step_completed = models.PositiveSmallIntegerField(default=0)
    approved_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_care_plans')
    approved_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)
    client_signature = models.TextField(blank=True)
    client_acknowledged_at = models.DateTimeField(null=True, blank=True)
    last_autosaved_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_care_plans')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def is_child(self):
        return self.care_plan_type == 'child' or bool(self.client.is_child)

    def __str__(self):
        return f"{self.display_id} - {self.title}"

    class Meta:
        db_table = 'client_care_plans'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['client', 'status'], name='care_plans_client_status_idx'),
        ]


class CarePlanStatusHistory(models.Model):
    care_plan = models.ForeignKey(CarePlan, on_delete=models.CASCADE, related_name='status_history')
    from_status = models.CharField(max_length=20, blank=True)
    to_status = models.CharField(max_length=20)
    changed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.care_plan.display_id}: {self.from_status} -> {self.to_status}"

    class Meta:
        db_table = 'care_plan_status_history'
        ordering = ['-created_at']
        verbose_name_plural = 'care plan status history'


class Goal(models.Model):
    STATUS_CHOICES = [
        ('Draft', 'Draft'),
        ('In Progress', 'In Progress'),
        ('Active', 'Active'),
        ('On Hold', 'On Hold'),
        ('Under Review', 'Under Review'),
        ('Completed', 'Completed'),
        ('Archived', 'Archived'),
    ]

    care_plan = models.ForeignKey(CarePlan, on_delete=models.CASCADE, related_name='goals')
    description = models.TextField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='In Progress')
    progress = models.PositiveSmallIntegerField(default=0)
    target_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.description[:60]

    class Meta:
        db_table = 'care_plan_goals'
        ordering = ['created_at']


class Activity(models.Model):
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('paused', 'Paused'),
        ('completed', 'Completed'),
    ]

    care_plan = models.ForeignKey(CarePlan, on_delete=models.CASCADE, related_name='activities')
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    frequency = models.CharField(max_length=100, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'care_plan_activities'
        ordering = ['created_at']
        verbose_name_plural = 'activities'


class Medication(models.Model):
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('paused', 'Paused'),
        ('discontinued', 'Discontinued'),
    ]

    care_plan = models.ForeignKey(CarePlan, on_delete=models.CASCADE, related_name='medications')
    name = models.CharField(max_length=255)
    dosage = models.CharField(max_length=100)
    frequency = models.CharField(max_length=100)
    route = models.CharField(max_length=50, blank=True)
    instructions = models.TextField(blank=True)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def is_active_on(self, day):
        if self.status != 'active':
            return False
        if self.start_date and day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        return True

    def __str__(self):
        return f"{self.name} {self.dosage}"

    class Meta:
        db_table = 'client_medications'
        ordering = ['name']


class MedicationAdministration(models.Model):
    STATUS_CHOICES = [
        ('given', 'Given'),
        ('refused', 'Refused'),
        ('missed', 'Missed'),
        ('not_given', 'Not Given'),
    ]

    medication = models.ForeignKey(Medication, on_delete=models.CASCADE, related_name='administrations')
    administered_at = models.DateTimeField(default=timezone.now)
    administered_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='medication_administrations')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.medication.name} {self.status} at {self.administered_at:%Y-%m-%d %H:%M}"

    class Meta:
        db_table = 'medication_administration_records'
        ordering = ['-administered_at']
        indexes = [
            models.Index(fields=['medication', 'administered_at'], name='mar_medication_time_idx'),
        ]
