import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from medinfinite.bookings.models import Booking, Service
from medinfinite.branches.models import Branch
from medinfinite.clients.models import Client

DAY_CHOICES = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday', 'bank_holiday']


def generate_invoice_number():
    return f"INV-{timezone.now().strftime('%Y%m%d')}-{str(uuid.uuid4())[:8].upper()}"


class RateSchedule(models.Model):
    """What a client is charged for visits on given days and times"""
    CHARGE_TYPE_CHOICES = [
        ('rate_per_minutes_pro_rata', 'Rate per Minutes (Pro Rata)'),
        ('hourly_rate', 'Hourly Rate'),
        ('rate_per_hour', 'Rate per Hour'),
        ('daily_flat_rate', 'Daily Flat Rate'),
        ('flat_rate', 'Flat Rate'),
    ]

    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='rate_schedules')
    client = models.ForeignKey(Client, on_delete=models.CASCADE, null=True, blank=True, related_name='rate_schedules')
    service = models.ForeignKey(Service, on_delete=models.SET_NULL, null=True, blank=True, related_name='rate_schedules')
    title = models.CharField(max_length=200)
    charge_type = models.CharField(max_length=40, choices=CHARGE_TYPE_CHOICES, default='rate_per_minutes_pro_rata')
    base_rate = models.DecimalField(max_digits=10, decimal_places=2)
    rate_15_minutes = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    rate_30_minutes = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    rate_45_minutes = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    rate_60_minutes = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    bank_holiday_multiplier = models.DecimalField(max_digits=4, decimal_places=2, default=Decimal('1.00'))
    is_vatable = models.BooleanField(default=False)
    # ['monday', 'tue', ..., 'bank_holiday']
    days_covered = models.JSONField(default=list, blank=True)
    time_from = models.TimeField()
    time_until = models.TimeField()
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title

    class Meta:
        db_table = 'service_rates'
        ordering = ['start_date', 'time_from']
        constraints = [
            models.CheckConstraint(condition=models.Q(base_rate__gte=0), name='service_rate_base_rate_non_negative'),
        ]


class BankHoliday(models.Model):
    date = models.DateField(unique=True)
    name = models.CharField(max_length=200)

    def __str__(self):
        return f"{self.name} ({self.date})"

    class Meta:
        db_table = 'bank_holidays'
        ordering = ['date']


class Invoice(models.Model):
    STATUS_DRAFT = 'draft'
    STATUS_SENT = 'sent'
    STATUS_PARTIAL = 'partial'
    STATUS_PAID = 'paid'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SENT, 'Sent'),
        (STATUS_PARTIAL, 'Partially Paid'),
        (STATUS_PAID, 'Paid'),
        ('overdue', 'Overdue'),
        ('void', 'Void'),
    ]

    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name='invoices')
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, related_name='invoices')
    invoice_number = models.CharField(max_length=100, unique=True, default=generate_invoice_number)
    invoice_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField(null=True, blank=True)
    period_start = models.DateField(null=True, blank=True)
    period_end = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    net_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    vat_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_invoices')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def due_amount(self):
        return self.total_amount - self.paid_amount

    def update_totals(self):
        """Recalculate the amounts from the line items"""
        net = Decimal('0.00')
        vat = Decimal('0.00')
        for item in self.line_items.all():
            net += item.line_total
            vat += item.vat_amount
        self.net_amount = net
        self.vat_amount = vat
        self.total_amount = net + vat
        self.save(update_fields=['net_amount', 'vat_amount', 'total_amount', 'updated_at'])

    def __str__(self):
        return self.invoice_number

    class Meta:
        db_table = 'client_billing'
        ordering = ['-invoice_date', '-id']
        indexes = [
            models.Index(fields=['client', 'invoice_date'], name='billing_client_date_idx'),
            models.Index(fields=['branch', 'status'], name='billing_branch_status_idx'),
        ]


class InvoiceLineItem(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='line_items')
    booking = models.ForeignKey(Booking, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoice_line_items')
    description = models.CharField(max_length=500)
    visit_date = models.DateField(null=True, blank=True)
    billing_minutes = models.PositiveIntegerField(default=0)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    line_total = models.DecimalField(max_digits=10, decimal_places=2)
    vat_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))

    def __str__(self):
        return self.description

    class Meta:
        db_table = 'invoice_line_items'
        ordering = ['visit_date', 'id']


class Payment(models.Model):
    PAYMENT_METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('card', 'Card'),
        ('bank_transfer', 'Bank Transfer'),
        ('direct_debit', 'Direct Debit'),
        ('cheque', 'Cheque'),
        ('other', 'Other'),
    ]

    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_date = models.DateField(default=timezone.localdate)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES)
    reference = models.CharField(max_length=200, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='recorded_payments')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'payment_records'
        ordering = ['-payment_date', '-id']
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name='payment_amount_positive'),
        ]
