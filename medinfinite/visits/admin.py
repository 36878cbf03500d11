from django.contrib import admin
from .models import VisitRecord, News2Observation, EventLog


@admin.register(VisitRecord)
class VisitRecordAdmin(admin.ModelAdmin):
    list_display = ['id', 'booking', 'client', 'staff', 'visit_start_time', 'visit_end_time', 'status', 'completion_percentage']
    list_filter = ['status', 'branch']
    search_fields = ['client__first_name', 'client__last_name', 'staff__first_name', 'staff__last_name']
    raw_id_fields = ['booking', 'client', 'staff']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(News2Observation)
class News2ObservationAdmin(admin.ModelAdmin):
    list_display = ['client', 'recorded_at', 'total_score', 'risk_level', 'recorded_by']
    list_filter = ['risk_level']
    search_fields = ['client__first_name', 'client__last_name']
    date_hierarchy = 'recorded_at'
    raw_id_fields = ['client', 'visit_record']
    readonly_fields = ['respiratory_rate_score', 'oxygen_saturation_score', 'supplemental_oxygen_score',
                       'systolic_bp_score', 'pulse_rate_score', 'consciousness_level_score', 'temperature_score',
                       'total_score', 'risk_level', 'created_at']


@admin.register(EventLog)
class EventLogAdmin(admin.ModelAdmin):
    list_display = ['title', 'client', 'event_type', 'severity', 'status', 'event_date']
    list_filter = ['severity', 'status', 'event_type', 'branch']
    search_fields = ['title', 'description', 'client__first_name', 'client__last_name']
    date_hierarchy = 'event_date'
    raw_id_fields = ['client']
