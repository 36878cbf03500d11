from django.contrib import admin
from .models import Service, Booking, BookingAlertSettings


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ['title', 'category', 'double_handed', 'is_active']
    list_filter = ['is_active', 'double_handed', 'category']
    search_fields = ['title']


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ['id', 'client', 'staff', 'branch', 'start_time', 'end_time', 'status', 'is_late_start', 'is_missed']
    list_filter = ['status', 'branch', 'is_late_start', 'is_missed']
    search_fields = ['client__first_name', 'client__last_name', 'staff__first_name', 'staff__last_name']
    date_hierarchy = 'start_time'
    raw_id_fields = ['client', 'staff']
    readonly_fields = ['late_start_notified_at', 'missed_notified_at', 'cancelled_at', 'created_at', 'updated_at']


@admin.register(BookingAlertSettings)
class BookingAlertSettingsAdmin(admin.ModelAdmin):
    list_display = ['branch', 'first_alert_delay_minutes', 'missed_booking_threshold_minutes',
                    'enable_late_start_alerts', 'enable_missed_booking_alerts']
