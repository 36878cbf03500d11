from decimal import Decimal

from rest_framework import serializers

from .models import RateSchedule, BankHoliday, Invoice, InvoiceLineItem, Payment, DAY_CHOICES

SHORT_DAYS = [day[:3] for day in DAY_CHOICES if day != 'bank_holiday']


class RateScheduleSerializer(serializers.ModelSerializer):
    class Meta:
        model = RateSchedule
        fields = ['id', 'branch', 'client', 'service', 'title', 'charge_type', 'base_rate', 'rate_15_minutes',
                  'rate_30_minutes', 'rate_45_minutes', 'rate_60_minutes', 'bank_holiday_multiplier', 'is_vatable',
                  'days_covered', 'time_from', 'time_until', 'start_date', 'end_date', 'is_active',
                  'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_days_covered(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError('days_covered must be a list of weekday names')
        days = [str(day).lower() for day in value]
        unknown = [day for day in days if day not in DAY_CHOICES and day not in SHORT_DAYS]
        if unknown:
            raise serializers.ValidationError(f"Unknown days: {', '.join(unknown)}")
        return days

    def validate(self, attrs):
        def current(field):
            return attrs.get(field, getattr(self.instance, field, None))

        if current('time_from') and current('time_until') and current('time_until') < current('time_from'):
            raise serializers.ValidationError({'time_until': 'End time must be after start time'})
        if current('start_date') and current('end_date') and current('end_date') < current('start_date'):
            raise serializers.ValidationError({'end_date': 'End date must be on or after start date'})
        client = current('client')
        branch = current('branch')
        if client and branch and client.branch_id != branch.id:
            raise serializers.ValidationError({'client': 'Client belongs to a different branch'})
        return attrs


class BankHolidaySerializer(serializers.ModelSerializer):
    class Meta:
        model = BankHoliday
        fields = ['id', 'date', 'name']


class InvoiceLineItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceLineItem
        fields = ['id', 'booking', 'description', 'visit_date', 'billing_minutes', 'unit_price', 'line_total', 'vat_amount']


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = ['id', 'invoice', 'amount', 'payment_date', 'payment_method', 'reference', 'notes',
                  'created_by', 'created_at']
        read_only_fields = ['invoice', 'created_by', 'created_at']

    def validate_amount(self, value):
        if value <= Decimal('0'):
            raise serializers.ValidationError('Payment amount must be greater than zero')
        return value


class InvoiceSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='client.full_name', read_only=True)
    due_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    line_items = InvoiceLineItemSerializer(many=True, read_only=True)
    payments = PaymentSerializer(many=True, read_only=True)

    class Meta:
        model = Invoice
        fields = ['id', 'client', 'client_name', 'branch', 'invoice_number', 'invoice_date', 'due_date',
                  'period_start', 'period_end', 'status', 'net_amount', 'vat_amount', 'total_amount',
                  'paid_amount', 'due_amount', 'notes', 'line_items', 'payments', 'created_by',
                  'created_at', 'updated_at']
        read_only_fields = ['client', 'branch', 'invoice_number', 'period_start', 'period_end', 'net_amount',
                            'vat_amount', 'total_amount', 'paid_amount', 'created_by', 'created_at', 'updated_at']

    def validate_status(self, value):
        if value in (Invoice.STATUS_PAID, Invoice.STATUS_PARTIAL):
            raise serializers.ValidationError('Paid status is set by recording payments')
        return value


class InvoiceListSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='client.full_name', read_only=True)
    due_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Invoice
        fields = ['id', 'client', 'client_name', 'branch', 'invoice_number', 'invoice_date', 'due_date',
                  'status', 'total_amount', 'paid_amount', 'due_amount']


class GenerateInvoiceSerializer(serializers.Serializer):
    client = serializers.IntegerField()
    period_start = serializers.DateField()
    period_end = serializers.DateField()
    due_date = serializers.DateField(required=False, allow_null=True)
    use_actual_time = serializers.BooleanField(default=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['period_end'] < attrs['period_start']:
            raise serializers.ValidationError({'period_end': 'Period end must be on or after period start'})
        if attrs.get('due_date') and attrs['due_date'] < attrs['period_start']:
            raise serializers.ValidationError({'due_date': 'Due date cannot be before the billing period'})
        return attrs
