from django.conf import settings
from django.db import models
from django.db.models import F, Q

from medinfinite.branches.models import Branch
from medinfinite.clients.models import Client
from medinfinite.staff.models import Staff


class Service(models.Model):
    """A type of care visit offered by the organisation"""
    title = models.CharField(max_length=200, unique=True)
    category = models.CharField(max_length=100, blank=True)
    description = models.TextField(blank=True)
    double_handed = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.title

    class Meta:
        db_table = 'services'
        ordering = ['title']


class Booking(models.Model):
    """A scheduled visit between a carer and a client"""
    STATUS_UNASSIGNED = 'unassigned'
    STATUS_ASSIGNED = 'assigned'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_UNASSIGNED, 'Unassigned'),
        (STATUS_ASSIGNED, 'Assigned'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    NOT_STARTED_STATUSES = (STATUS_ASSIGNED, STATUS_CONFIRMED)

    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='bookings')
    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name='bookings')
    staff = models.ForeignKey(Staff, on_delete=models.SET_NULL, null=True, blank=True, related_name='bookings')
    service = models.ForeignKey(Service, on_delete=models.SET_NULL, null=True, blank=True, related_name='bookings')
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_UNASSIGNED)
    revenue = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    notes = models.TextField(blank=True)
    is_late_start = models.BooleanField(default=False)
    late_start_notified_at = models.DateTimeField(null=True, blank=True)
    late_start_minutes = models.PositiveIntegerField(null=True, blank=True)
    is_missed = models.BooleanField(default=False)
    missed_notified_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_bookings')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def duration_minutes(self):
        return int((self.end_time - self.start_time).total_seconds() // 60)

    def save(self, *args, **kwargs):
        if self.branch_id is None and self.client_id is not None:
            self.branch_id = self.client.branch_id
        super().save(*args, **kwargs)

    def __str__(self):
        return f"Booking {self.pk} - {self.client} {self.start_time:%Y-%m-%d %H:%M}"

    class Meta:
        db_table = 'bookings'
        ordering = ['start_time']
        constraints = [
            models.CheckConstraint(condition=Q(end_time__gt=F('start_time')), name='booking_end_after_start'),
        ]
        indexes = [
            models.Index(fields=['branch', 'start_time'], name='bookings_branch_start_idx'),
            models.Index(fields=['staff', 'start_time'], name='bookings_staff_start_idx'),
            models.Index(fields=['status'], name='bookings_status_idx'),
        ]


class BookingAlertSettings(models.Model):
    """Late and missed booking alert thresholds; a row without a branch is the default"""
    branch = models.OneToOneField(Branch, on_delete=models.CASCADE, null=True, blank=True, related_name='booking_alert_settings')
    first_alert_delay_minutes = models.PositiveIntegerField(default=0)
    missed_booking_threshold_minutes = models.PositiveIntegerField(default=3)
    enable_late_start_alerts = models.BooleanField(default=True)
    enable_missed_booking_alerts = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    @classmethod
    def for_branch(cls, branch_id):
        settings_row = cls.objects.filter(branch_id=branch_id).first() or cls.objects.filter(branch__isnull=True).first()
        return settings_row or cls(branch_id=branch_id)

    def __str__(self):
        return f"Alert settings ({self.branch or 'default'})"

    class Meta:
        db_table = 'booking_alert_settings'
        verbose_name_plural = 'booking alert settings'
