from django.conf import settings
from django.db import models
from django.utils import timezone

from medinfinite.bookings.models import Booking
from medinfinite.branches.models import Branch
from medinfinite.clients.models import Client
from medinfinite.staff.models import Staff


class VisitRecord(models.Model):
    """What happened during one booked visit"""
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CHOICES = [
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        ('abandoned', 'Abandoned'),
    ]

    booking = models.OneToOneField(Booking, on_delete=models.CASCADE, related_name='visit_record')
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='visit_records')
    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name='visit_records')
    staff = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='visit_records')
    visit_start_time = models.DateTimeField(default=timezone.now)
    visit_end_time = models.DateTimeField(null=True, blank=True)
    actual_duration_minutes = models.PositiveIntegerField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_IN_PROGRESS)
    visit_notes = models.TextField(blank=True)
    visit_summary = models.TextField(blank=True)
    # [{"name": str, "required": bool, "completed": bool, "notes": str}]
    tasks = models.JSONField(default=list, blank=True)
    client_signature = models.TextField(blank=True)
    staff_signature = models.TextField(blank=True)
    completion_percentage = models.PositiveSmallIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def task_completion(self):
        tasks = [task for task in (self.tasks or []) if isinstance(task, dict)]
        if not tasks:
            return 0
        done = sum(1 for task in tasks if task.get('completed'))
        return int(done / len(tasks) * 100 + 0.5)

    def outstanding_required_tasks(self):
        return [task.get('name', '') for task in (self.tasks or [])
                if isinstance(task, dict) and task.get('required') and not task.get('completed')]

    def __str__(self):
        return f"Visit for booking {self.booking_id}"

    class Meta:
        db_table = 'visit_records'
        ordering = ['-visit_start_time']


class News2Observation(models.Model):
    CONSCIOUSNESS_CHOICES = [
        ('A', 'Alert'),
        ('C', 'New Confusion'),
        ('V', 'Voice'),
        ('P', 'Pain'),
        ('U', 'Unresponsive'),
    ]
    RISK_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
    ]

    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name='news2_observations')
    visit_record = models.ForeignKey(VisitRecord, on_delete=models.SET_NULL, null=True, blank=True, related_name='news2_observations')
    recorded_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='news2_observations')
    recorded_at = models.DateTimeField(default=timezone.now)
    respiratory_rate = models.PositiveSmallIntegerField(null=True, blank=True)
    oxygen_saturation = models.PositiveSmallIntegerField(null=True, blank=True)
    supplemental_oxygen = models.BooleanField(default=False)
    systolic_bp = models.PositiveSmallIntegerField(null=True, blank=True)
    diastolic_bp = models.PositiveSmallIntegerField(null=True, blank=True)
    pulse_rate = models.PositiveSmallIntegerField(null=True, blank=True)
    consciousness_level = models.CharField(max_length=1, choices=CONSCIOUSNESS_CHOICES, default='A')
    temperature = models.DecimalField(max_digits=4, decimal_places=1, null=True, blank=True)
    respiratory_rate_score = models.PositiveSmallIntegerField(default=0)
    oxygen_saturation_score = models.PositiveSmallIntegerField(default=0)
    supplemental_oxygen_score = models.PositiveSmallIntegerField(default=0)
    systolic_bp_score = models.PositiveSmallIntegerField(default=0)
    pulse_rate_score = models.PositiveSmallIntegerField(default=0)
    consciousness_level_score = models.PositiveSmallIntegerField(default=0)
    temperature_score = models.PositiveSmallIntegerField(default=0)
    total_score = models.PositiveSmallIntegerField(default=0)
    risk_level = models.CharField(max_length=10, choices=RISK_CHOICES, default='low')
    clinical_notes = models.TextField(blank=True)
    ai_recommendations = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def apply_scores(self):
        from .news2 import calculate_news2
        result = calculate_news2(
            respiratory_rate=self.respiratory_rate,
            oxygen_saturation=self.oxygen_saturation,
            supplemental_oxygen=self.supplemental_oxygen,
            systolic_bp=self.systolic_bp,
            pulse_rate=self.pulse_rate,
            consciousness_level=self.consciousness_level,
            temperature=self.temperature,
        )
        for field, value in result.items():
            setattr(self, field, value)
        return result

    def save(self, *args, **kwargs):
        self.apply_scores()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"NEWS2 {self.total_score} ({self.risk_level}) for {self.client}"

    class Meta:
        db_table = 'news2_observations'
        ordering = ['-recorded_at']
        indexes = [
            models.Index(fields=['client', 'recorded_at'], name='news2_client_recorded_idx'),
        ]


class EventLog(models.Model):
    """Incidents, accidents and other reportable events for a client"""
    SEVERITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('critical', 'Critical'),
    ]
    STATUS_CHOICES = [
        ('open', 'Open'),
        ('in_progress', 'In Progress'),
        ('resolved', 'Resolved'),
        ('closed', 'Closed'),
    ]

    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name='event_logs')
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='event_logs')
    title = models.CharField(max_length=255)
    event_type = models.CharField(max_length=50)
    category = models.CharField(max_length=50, blank=True)
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, default='low')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='open')
    reporter = models.CharField(max_length=200, blank=True)
    location = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    event_date = models.DateTimeField(default=timezone.now)
    risk_level = models.CharField(max_length=20, blank=True)
    action_required = models.BooleanField(default=False)
    follow_up_date = models.DateField(null=True, blank=True)
    body_map_points = models.JSONField(default=list, blank=True)
    body_map_front_image = models.ImageField(upload_to='body_maps/', null=True, blank=True)
    body_map_back_image = models.ImageField(upload_to='body_maps/', null=True, blank=True)
    recorded_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='event_logs')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        if self.branch_id is None and self.client_id is not None:
            self.branch_id = self.client.branch_id
        super().save(*args, **kwargs)

    def __str__(self):
        return self.title

    class Meta:
        db_table = 'client_events_logs'
        ordering = ['-event_date']
        indexes = [
            models.Index(fields=['branch', 'event_date'], name='events_branch_date_idx'),
        ]
