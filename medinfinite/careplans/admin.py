from django.contrib import admin
from .models import CarePlan, CarePlanStatusHistory, Goal, Activity, Medication, MedicationAdministration


class GoalInline(admin.TabularInline):
    model = Goal
    extra = 0
    readonly_fields = ['progress']


class ActivityInline(admin.TabularInline):
    model = Activity
    extra = 0


class MedicationInline(admin.TabularInline):
    model = Medication
    extra = 0


class StatusHistoryInline(admin.TabularInline):
    model = CarePlanStatusHistory
    extra = 0
    readonly_fields = ['from_status', 'to_status', 'changed_by', 'reason', 'created_at']
    can_delete = False


@admin.register(CarePlan)
class CarePlanAdmin(admin.ModelAdmin):
    list_display = ['display_id', 'title', 'client', 'status', 'approval_status', 'completion_percentage', 'updated_at']
    list_filter = ['status', 'approval_status', 'care_plan_type', 'priority']
    search_fields = ['display_id', 'title', 'client__first_name', 'client__last_name']
    readonly_fields = ['display_id', 'completion_percentage', 'last_step_completed', 'last_autosaved_at',
                       'approved_by', 'approved_at', 'client_acknowledged_at', 'created_at', 'updated_at']
    inlines = [GoalInline, ActivityInline, MedicationInline, StatusHistoryInline]


@admin.register(Medication)
class MedicationAdmin(admin.ModelAdmin):
    list_display = ['name', 'dosage', 'frequency', 'route', 'care_plan', 'status']
    list_filter = ['status', 'route']
    search_fields = ['name', 'care_plan__display_id']


@admin.register(MedicationAdministration)
class MedicationAdministrationAdmin(admin.ModelAdmin):
    list_display = ['medication', 'administered_at', 'status', 'administered_by']
    list_filter = ['status']
    date_hierarchy = 'administered_at'
