from rest_framework import serializers

from .body_map import validate_points
from .models import VisitRecord, News2Observation, EventLog


class VisitTaskSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    required = serializers.BooleanField(default=False)
    completed = serializers.BooleanField(default=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class VisitRecordSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='client.full_name', read_only=True)
    staff_name = serializers.CharField(source='staff.full_name', read_only=True, default=None)
    booking_start = serializers.DateTimeField(source='booking.start_time', read_only=True)
    booking_end = serializers.DateTimeField(source='booking.end_time', read_only=True)
    tasks = VisitTaskSerializer(many=True, required=False)
    has_client_signature = serializers.SerializerMethodField()

    class Meta:
        model = VisitRecord
        fields = ['id', 'booking', 'branch', 'client', 'client_name', 'staff', 'staff_name',
                  'booking_start', 'booking_end', 'visit_start_time', 'visit_end_time',
                  'actual_duration_minutes', 'status', 'visit_notes', 'visit_summary', 'tasks',
                  'has_client_signature', 'completion_percentage', 'created_at', 'updated_at']
        read_only_fields = ['booking', 'branch', 'client', 'staff', 'visit_start_time', 'visit_end_time',
                            'actual_duration_minutes', 'status', 'completion_percentage', 'created_at', 'updated_at']

    def get_has_client_signature(self, obj):
        return bool(obj.client_signature)

    def update(self, instance, validated_data):
        tasks = validated_data.pop('tasks', None)
        if tasks is not None:
            instance.tasks = [dict(task) for task in tasks]
        instance = super().update(instance, validated_data)
        percentage = instance.task_completion()
        if percentage != instance.completion_percentage:
            instance.completion_percentage = percentage
            instance.save(update_fields=['completion_percentage', 'updated_at'])
        return instance


class StartVisitSerializer(serializers.Serializer):
    tasks = VisitTaskSerializer(many=True, required=False)
    visit_notes = serializers.CharField(required=False, allow_blank=True, default='')


class CompleteVisitSerializer(serializers.Serializer):
    # data URL or {"strokes": [[[x, y], ...]], "width": int, "height": int}
    client_signature = serializers.JSONField()
    staff_signature = serializers.JSONField(required=False, allow_null=True)
    visit_summary = serializers.CharField(required=False, allow_blank=True, default='')
    visit_notes = serializers.CharField(required=False, allow_blank=True)


class News2ObservationSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='client.full_name', read_only=True)
    recorded_by_name = serializers.CharField(source='recorded_by.display_name', read_only=True, default=None)

    class Meta:
        model = News2Observation
        fields = ['id', 'client', 'client_name', 'visit_record', 'recorded_by', 'recorded_by_name', 'recorded_at',
                  'respiratory_rate', 'oxygen_saturation', 'supplemental_oxygen', 'systolic_bp', 'diastolic_bp',
                  'pulse_rate', 'consciousness_level', 'temperature',
                  'respiratory_rate_score', 'oxygen_saturation_score', 'supplemental_oxygen_score',
                  'systolic_bp_score', 'pulse_rate_score', 'consciousness_level_score', 'temperature_score',
                  'total_score', 'risk_level', 'clinical_notes', 'ai_recommendations', 'created_at']
        read_only_fields = ['recorded_by', 'respiratory_rate_score', 'oxygen_saturation_score',
                            'supplemental_oxygen_score', 'systolic_bp_score', 'pulse_rate_score',
                            'consciousness_level_score', 'temperature_score', 'total_score', 'risk_level',
                            'ai_recommendations', 'created_at']

    def validate(self, attrs):
        readings = ['respiratory_rate', 'oxygen_saturation', 'systolic_bp', 'pulse_rate', 'temperature']
        if all(attrs.get(field) is None for field in readings):
            raise serializers.ValidationError('At least one vital sign reading is required')
        saturation = attrs.get('oxygen_saturation')
        if saturation is not None and saturation > 100:
            raise serializers.ValidationError({'oxygen_saturation': 'Oxygen saturation cannot exceed 100%'})
        visit_record = attrs.get('visit_record')
        if visit_record and visit_record.client_id != attrs['client'].id:
            raise serializers.ValidationError({'visit_record': 'Visit belongs to a different client'})
        return attrs


class EventLogSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='client.full_name', read_only=True)
    recorded_by_name = serializers.CharField(source='recorded_by.display_name', read_only=True, default=None)
    body_map_points = serializers.JSONField(required=False)

    class Meta:
        model = EventLog
        fields = ['id', 'client', 'client_name', 'branch', 'title', 'event_type', 'category', 'severity', 'status',
                  'reporter', 'location', 'description', 'event_date', 'risk_level', 'action_required',
                  'follow_up_date', 'body_map_points', 'body_map_front_image', 'body_map_back_image',
                  'recorded_by', 'recorded_by_name', 'created_at', 'updated_at']
        read_only_fields = ['branch', 'body_map_front_image', 'body_map_back_image', 'recorded_by',
                            'created_at', 'updated_at']

    def validate_body_map_points(self, value):
        try:
            return validate_points(value)
        except ValueError as e:
            raise serializers.ValidationError(str(e))

    def validate_client(self, value):
        if self.instance is not None and value.id != self.instance.client_id:
            raise serializers.ValidationError('The client of an event cannot be changed')
        return value
