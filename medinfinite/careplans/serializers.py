from rest_framework import serializers

from medinfinite.clients.statuses import CARE_PLAN_STATUSES, normalize_status
from .completion import progress_percentage
from .models import CarePlan, CarePlanStatusHistory, Goal, Activity, Medication, MedicationAdministration


class GoalSerializer(serializers.ModelSerializer):
    class Meta:
        model = Goal
        fields = ['id', 'care_plan', 'description', 'status', 'progress', 'target_date', 'notes', 'created_at', 'updated_at']
        read_only_fields = ['care_plan', 'progress', 'created_at', 'updated_at']

    def _with_progress(self, validated_data, instance=None):
        status = validated_data.get('status', getattr(instance, 'status', 'In Progress'))
        notes = validated_data.get('notes', getattr(instance, 'notes', ''))
        validated_data['progress'] = progress_percentage(status, notes)
        return validated_data

    def create(self, validated_data):
        return super().create(self._with_progress(validated_data))

    def update(self, instance, validated_data):
        return super().update(instance, self._with_progress(validated_data, instance))


class ActivitySerializer(serializers.ModelSerializer):
    class Meta:
        model = Activity
        fields = ['id', 'care_plan', 'name', 'description', 'frequency', 'status', 'created_at', 'updated_at']
        read_only_fields = ['care_plan', 'created_at', 'updated_at']


class MedicationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Medication
        fields = ['id', 'care_plan', 'name', 'dosage', 'frequency', 'route', 'instructions',
                  'start_date', 'end_date', 'status', 'created_at', 'updated_at']
        read_only_fields = ['care_plan', 'created_at', 'updated_at']

    def validate(self, attrs):
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end < start:
            raise serializers.ValidationError({'end_date': 'End date must be on or after start date'})
        return attrs


class MedicationAdministrationSerializer(serializers.ModelSerializer):
    medication_name = serializers.CharField(source='medication.name', read_only=True)
    administered_by_name = serializers.CharField(source='administered_by.display_name', read_only=True, default=None)

    class Meta:
        model = MedicationAdministration
        fields = ['id', 'medication', 'medication_name', 'administered_at', 'administered_by',
                  'administered_by_name', 'status', 'notes', 'created_at']
        read_only_fields = ['medication', 'administered_by', 'created_at']

    def validate(self, attrs):
        if attrs.get('status') in ('refused', 'missed', 'not_given') and not (attrs.get('notes') or '').strip():
            raise serializers.ValidationError({'notes': 'A note is required when a dose is not given'})
        return attrs


class CarePlanStatusHistorySerializer(serializers.ModelSerializer):
    changed_by_name = serializers.CharField(source='changed_by.display_name', read_only=True, default=None)

    class Meta:
        model = CarePlanStatusHistory
        fields = ['id', 'from_status', 'to_status', 'changed_by', 'changed_by_name', 'reason', 'created_at']


class CarePlanSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='client.full_name', read_only=True)
    staff_name = serializers.CharField(source='staff.full_name', read_only=True, default=None)
    goals = GoalSerializer(many=True, read_only=True)
    activities = ActivitySerializer(many=True, read_only=True)
    medications = MedicationSerializer(many=True, read_only=True)

    class Meta:
        model = CarePlan
        fields = ['id', 'display_id', 'client', 'client_name', 'title', 'provider_name', 'staff', 'staff_name',
                  'start_date', 'end_date', 'review_date', 'status', 'approval_status', 'priority', 'care_plan_type',
                  'wizard_data', 'completion_percentage', 'last_step_completed', 'approved_by', 'approved_at',
                  'rejection_reason', 'client_acknowledged_at', 'last_autosaved_at', 'created_by',
                  'goals', 'activities', 'medications', 'created_at', 'updated_at']
        read_only_fields = ['display_id', 'status', 'approval_status', 'completion_percentage', 'last_step_completed',
                            'approved_by', 'approved_at', 'rejection_reason', 'client_acknowledged_at',
                            'last_autosaved_at', 'created_by', 'created_at', 'updated_at']

    def validate(self, attrs):
        client = attrs.get('client', getattr(self.instance, 'client', None))
        staff = attrs.get('staff', getattr(self.instance, 'staff', None))
        if client and staff and client.branch_id != staff.branch_id:
            raise serializers.ValidationError({'staff': 'Carer belongs to a different branch than the client'})
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end < start:
            raise serializers.ValidationError({'end_date': 'End date must be on or after start date'})
        return attrs


class CarePlanListSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='client.full_name', read_only=True)

    class Meta:
        model = CarePlan
        fields = ['id', 'display_id', 'client', 'client_name', 'title', 'status', 'approval_status', 'priority',
                  'care_plan_type', 'completion_percentage', 'review_date', 'updated_at']


class AutosaveSerializer(serializers.Serializer):
    wizard_data = serializers.JSONField()
    step = serializers.IntegerField(required=False, min_value=1, max_value=21)
    force = serializers.BooleanField(required=False, default=False)

    def validate_wizard_data(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError('Wizard data must be an object')
        return value


class StatusChangeSerializer(serializers.Serializer):
    status = serializers.CharField()
    reason = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_status(self, value):
        normalized = normalize_status(value)
        if normalized not in CARE_PLAN_STATUSES:
            raise serializers.ValidationError(f"'{value}' is not a valid care plan status")
        return normalized
