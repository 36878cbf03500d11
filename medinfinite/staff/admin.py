from django.contrib import admin
from .models import Staff, TrainingCourse, TrainingRecord, StaffDocument


class TrainingRecordInline(admin.TabularInline):
    model = TrainingRecord
    extra = 0
    fields = ['course', 'status', 'completion_date', 'expiry_date', 'score']


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ['first_name', 'last_name', 'branch', 'status', 'dbs_status', 'punctuality_score', 'created_at']
    list_filter = ['status', 'dbs_status', 'branch']
    search_fields = ['first_name', 'last_name', 'email', 'phone']
    ordering = ['last_name', 'first_name']
    readonly_fields = ['late_arrival_count', 'missed_booking_count', 'punctuality_score']
    inlines = [TrainingRecordInline]


@admin.register(TrainingCourse)
class TrainingCourseAdmin(admin.ModelAdmin):
    list_display = ['title', 'branch', 'category', 'is_mandatory', 'valid_for_months', 'status']
    list_filter = ['category', 'is_mandatory', 'status', 'branch']
    search_fields = ['title']


@admin.register(TrainingRecord)
class TrainingRecordAdmin(admin.ModelAdmin):
    list_display = ['staff', 'course', 'status', 'completion_date', 'expiry_date']
    list_filter = ['status', 'branch', 'course__category']
    search_fields = ['staff__first_name', 'staff__last_name', 'course__title']


@admin.register(StaffDocument)
class StaffDocumentAdmin(admin.ModelAdmin):
    list_display = ['staff', 'document_type', 'status', 'expiry_date']
    list_filter = ['status', 'document_type']
    search_fields = ['staff__first_name', 'staff__last_name', 'document_type']
