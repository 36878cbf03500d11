from django.contrib import admin
from .models import RateSchedule, BankHoliday, Invoice, InvoiceLineItem, Payment


@admin.register(RateSchedule)
class RateScheduleAdmin(admin.ModelAdmin):
    list_display = ['title', 'branch', 'client', 'charge_type', 'base_rate', 'time_from', 'time_until', 'is_active']
    list_filter = ['charge_type', 'is_active', 'is_vatable', 'branch']
    search_fields = ['title', 'client__first_name', 'client__last_name']
    raw_id_fields = ['client']


@admin.register(BankHoliday)
class BankHolidayAdmin(admin.ModelAdmin):
    list_display = ['date', 'name']
    date_hierarchy = 'date'


class InvoiceLineItemInline(admin.TabularInline):
    model = InvoiceLineItem
    extra = 0
    raw_id_fields = ['booking']


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'client', 'branch', 'invoice_date', 'status', 'total_amount', 'paid_amount']
    list_filter = ['status', 'branch']
    search_fields = ['invoice_number', 'client__first_name', 'client__last_name']
    date_hierarchy = 'invoice_date'
    raw_id_fields = ['client']
    inlines = [InvoiceLineItemInline, PaymentInline]
