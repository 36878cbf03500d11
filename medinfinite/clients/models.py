from django.conf import settings
from django.db import models
from django.utils import timezone

from medinfinite.branches.models import Branch
from .statuses import CLIENT_STATUSES


class Client(models.Model):
    """A person receiving care from a branch"""
    STATUS_CHOICES = [(value, value) for value in CLIENT_STATUSES]

    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='clients')
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='client_profile')
    title = models.CharField(max_length=20, blank=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    preferred_name = models.CharField(max_length=100, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    postcode = models.CharField(max_length=20, blank=True)
    status = models.CharField(max_length=30, choices=STATUS_CHOICES, default='New Enquiries')
    registered_on = models.DateField(default=timezone.localdate)
    emergency_contact = models.CharField(max_length=200, blank=True)
    emergency_phone = models.CharField(max_length=20, blank=True)
    gp_details = models.TextField(blank=True)
    mobility_status = models.CharField(max_length=100, blank=True)
    is_child = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self):
        return self.full_name

    class Meta:
        db_table = 'clients'
        ordering = ['last_name', 'first_name']
        indexes = [
            models.Index(fields=['status'], name='clients_status_idx'),
        ]


class ClientNote(models.Model):
    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name='notes')
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='client_notes')
    title = models.CharField(max_length=200)
    content = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.title

    class Meta:
        db_table = 'client_notes'
        ordering = ['-created_at']
