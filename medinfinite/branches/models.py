from django.conf import settings
from django.db import models


class Organization(models.Model):
    """The care provider that owns one or more branches"""
    name = models.CharField(max_length=200)
    address = models.TextField(blank=True)
    contact_phone = models.CharField(max_length=20, blank=True)
    contact_email = models.EmailField(blank=True)
    website = models.URLField(blank=True)
    logo = models.ImageField(upload_to='organization_logos/', blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'organizations'


class Branch(models.Model):
    """Operating location; the tenant unit every other record is scoped to"""
    BRANCH_TYPE_CHOICES = [
        ('home_care', 'Home Care'),
        ('residential', 'Residential'),
        ('supported_living', 'Supported Living'),
        ('nursing', 'Nursing'),
        ('other', 'Other'),
    ]
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('suspended', 'Suspended'),
    ]

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, null=True, blank=True, related_name='branches')
    name = models.CharField(max_length=200)
    branch_type = models.CharField(max_length=30, choices=BRANCH_TYPE_CHOICES, default='home_care')
    country = models.CharField(max_length=100, default='United Kingdom')
    currency = models.CharField(max_length=10, default='GBP')
    regulatory = models.CharField(max_length=100, blank=True, help_text="Regulator the branch reports to (e.g., CQC)")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    operating_hours = models.CharField(max_length=200, blank=True)
    established_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'branches'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(fields=['organization', 'name'], name='uniq_branch_name_per_org'),
        ]


DEFAULT_ADMIN_PERMISSIONS = {
    'dashboard': True,
    'bookings': True,
    'clients': True,
    'carers': True,
    'care_plans': True,
    'communication': True,
    'medication': True,
    'training': True,
    'finance': False,
    'reports': True,
}


def default_admin_permissions():
    return dict(DEFAULT_ADMIN_PERMISSIONS)


class AdminBranch(models.Model):
    """Links an administrator to a branch they manage"""
    admin = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='admin_branches')
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='admin_links')
    permissions = models.JSONField(default=default_admin_permissions, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.admin} -> {self.branch}"

    class Meta:
        db_table = 'admin_branches'
        constraints = [
            models.UniqueConstraint(fields=['admin', 'branch'], name='uniq_admin_branch'),
        ]
