from django.conf import settings
from django.db import models
from django.utils import timezone

from medinfinite.branches.models import Branch


class Staff(models.Model):
    """A carer or other employee delivering visits for a branch"""
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('on_leave', 'On Leave'),
        ('terminated', 'Terminated'),
    ]
    DBS_STATUS_CHOICES = [
        ('not_started', 'Not Started'),
        ('pending', 'Pending'),
        ('clear', 'Clear'),
        ('flagged', 'Flagged'),
        ('expired', 'Expired'),
    ]

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='staff_profile')
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='staff')
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    specialization = models.CharField(max_length=200, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    hire_date = models.DateField(null=True, blank=True)
    dbs_status = models.CharField(max_length=20, choices=DBS_STATUS_CHOICES, default='not_started')
    dbs_check_date = models.DateField(null=True, blank=True)
    late_arrival_count = models.PositiveIntegerField(default=0)
    missed_booking_count = models.PositiveIntegerField(default=0)
    punctuality_score = models.PositiveSmallIntegerField(default=100)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self):
        return self.full_name

    class Meta:
        db_table = 'staff'
        ordering = ['last_name', 'first_name']
        verbose_name_plural = 'staff'


class TrainingCourse(models.Model):
    CATEGORY_CHOICES = [
        ('core', 'Core'),
        ('clinical', 'Clinical'),
        ('specialised', 'Specialised'),
        ('compliance', 'Compliance'),
        ('other', 'Other'),
    ]
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
    ]

    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='training_courses')
    title = models.CharField(max_length=200)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='core')
    description = models.TextField(blank=True)
    is_mandatory = models.BooleanField(default=False)
    valid_for_months = models.PositiveSmallIntegerField(null=True, blank=True, help_text="Months a completion stays valid; empty means it never expires")
    required_score = models.PositiveSmallIntegerField(default=0)
    max_score = models.PositiveSmallIntegerField(default=100)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title

    class Meta:
        db_table = 'training_courses'
        ordering = ['title']
        constraints = [
            models.UniqueConstraint(fields=['branch', 'title'], name='uniq_course_title_per_branch'),
        ]


class TrainingRecord(models.Model):
    STATUS_NOT_STARTED = 'not-started'
    STATUS_IN_PROGRESS = 'in-progress'
    STATUS_COMPLETED = 'completed'
    STATUS_EXPIRED = 'expired'

    STATUS_CHOICES = [
        (STATUS_NOT_STARTED, 'Not Started'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_EXPIRED, 'Expired'),
        ('paused', 'Paused'),
        ('under-review', 'Under Review'),
        ('failed', 'Failed'),
        ('renewal-required', 'Renewal Required'),
    ]

    staff = models.ForeignKey(Staff, on_delete=models.CASCADE, related_name='training_records')
    course = models.ForeignKey(TrainingCourse, on_delete=models.CASCADE, related_name='records')
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='training_records')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_NOT_STARTED)
    assigned_date = models.DateField(default=timezone.localdate)
    completion_date = models.DateField(null=True, blank=True)
    expiry_date = models.DateField(null=True, blank=True)
    score = models.PositiveSmallIntegerField(null=True, blank=True)
    progress_percentage = models.PositiveSmallIntegerField(default=0)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        if self.status == self.STATUS_COMPLETED:
            if not self.completion_date:
                self.completion_date = timezone.localdate()
            self.progress_percentage = 100
            if not self.expiry_date and self.course.valid_for_months:
                from .compliance import add_months
                self.expiry_date = add_months(self.completion_date, self.course.valid_for_months)
        if not self.branch_id and self.staff_id:
            self.branch_id = self.staff.branch_id
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.staff} - {self.course}"

    class Meta:
        db_table = 'staff_training_records'
        ordering = ['-assigned_date']
        constraints = [
            models.UniqueConstraint(fields=['staff', 'course'], name='uniq_training_record_per_course'),
        ]


class StaffDocument(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    ]

    staff = models.ForeignKey(Staff, on_delete=models.CASCADE, related_name='documents')
    document_type = models.CharField(max_length=100)
    file = models.FileField(upload_to='staff_documents/', blank=True, null=True)
    expiry_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.staff} - {self.document_type}"

    class Meta:
        db_table = 'staff_documents'
        ordering = ['document_type']
