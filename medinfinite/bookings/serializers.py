from rest_framework import serializers

from .models import Service, Booking, BookingAlertSettings


class ServiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Service
        fields = ['id', 'title', 'category', 'description', 'double_handed', 'is_active', 'created_at']
        read_only_fields = ['created_at']


class BookingSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='client.full_name', read_only=True)
    staff_name = serializers.CharField(source='staff.full_name', read_only=True, default=None)
    service_title = serializers.CharField(source='service.title', read_only=True, default=None)
    duration_minutes = serializers.IntegerField(read_only=True)
    suggest_carers = serializers.BooleanField(write_only=True, required=False, default=False)

    class Meta:
        model = Booking
        fields = ['id', 'branch', 'client', 'client_name', 'staff', 'staff_name', 'service', 'service_title',
                  'start_time', 'end_time', 'duration_minutes', 'status', 'revenue', 'notes',
                  'is_late_start', 'late_start_notified_at', 'late_start_minutes', 'is_missed', 'missed_notified_at',
                  'cancelled_at', 'cancellation_reason', 'created_by', 'created_at', 'updated_at', 'suggest_carers']
        read_only_fields = ['branch', 'is_late_start', 'late_start_notified_at', 'late_start_minutes', 'is_missed',
                            'missed_notified_at', 'cancelled_at', 'cancellation_reason', 'created_by',
                            'created_at', 'updated_at']

    def validate_status(self, value):
        if value == Booking.STATUS_CANCELLED:
            raise serializers.ValidationError('Use the cancel endpoint to cancel a booking')
        return value

    def validate(self, attrs):
        attrs.pop('suggest_carers', None)
        start = attrs.get('start_time', getattr(self.instance, 'start_time', None))
        end = attrs.get('end_time', getattr(self.instance, 'end_time', None))
        if start and end and end <= start:
            raise serializers.ValidationError({'end_time': 'End time must be after start time'})

        client = attrs.get('client', getattr(self.instance, 'client', None))
        if self.instance is not None and 'client' in attrs and client.branch_id != self.instance.branch_id:
            raise serializers.ValidationError({'client': 'Client belongs to a different branch'})
        staff = attrs.get('staff', getattr(self.instance, 'staff', None))
        if client and staff and staff.branch_id != client.branch_id:
            raise serializers.ValidationError({'staff': 'Carer belongs to a different branch than the client'})

        if 'staff' in attrs and 'status' not in attrs:
            current = getattr(self.instance, 'status', None)
            if current in (None, Booking.STATUS_UNASSIGNED, Booking.STATUS_ASSIGNED):
                attrs['status'] = Booking.STATUS_ASSIGNED if staff else Booking.STATUS_UNASSIGNED
        elif self.instance is None and 'status' not in attrs:
            attrs['status'] = Booking.STATUS_ASSIGNED if staff else Booking.STATUS_UNASSIGNED
        return attrs


class ScheduleSerializer(serializers.Serializer):
    start_time = serializers.CharField()
    end_time = serializers.CharField()
    days = serializers.JSONField(required=False)
    service = serializers.IntegerField(required=False, allow_null=True)


class RecurringBookingSerializer(serializers.Serializer):
    client = serializers.IntegerField()
    staff = serializers.IntegerField(required=False, allow_null=True)
    from_date = serializers.DateField()
    until_date = serializers.DateField()
    recurrence_weeks = serializers.IntegerField(required=False, default=1, min_value=1, max_value=52)
    schedules = ScheduleSerializer(many=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    preview = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if attrs['until_date'] < attrs['from_date']:
            raise serializers.ValidationError({'until_date': 'Until date must be on or after from date'})
        if (attrs['until_date'] - attrs['from_date']).days > 366:
            raise serializers.ValidationError({'until_date': 'Recurring bookings cannot span more than a year'})
        return attrs


class BulkBookingSerializer(serializers.Serializer):
    bookings = BookingSerializer(many=True, allow_empty=False)


class AssignCarerSerializer(serializers.Serializer):
    staff = serializers.IntegerField(allow_null=True)
    suggest_carers = serializers.BooleanField(required=False, default=False)


class CancelBookingSerializer(serializers.Serializer):
    reason = serializers.CharField()


class BookingAlertSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = BookingAlertSettings
        fields = ['id', 'branch', 'first_alert_delay_minutes', 'missed_booking_threshold_minutes',
                  'enable_late_start_alerts', 'enable_missed_booking_alerts', 'updated_at']
        read_only_fields = ['branch', 'updated_at']


class CarerScheduleEmailSerializer(serializers.Serializer):
    staff = serializers.IntegerField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    recipient = serializers.EmailField(required=False)

    def validate(self, attrs):
        if attrs['end_date'] < attrs['start_date']:
            raise serializers.ValidationError({'end_date': 'End date must be on or after start date'})
        return attrs
