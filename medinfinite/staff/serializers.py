from rest_framework import serializers
from .models import Staff, TrainingCourse, TrainingRecord, StaffDocument


class StaffSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    branch_name = serializers.CharField(source='branch.name', read_only=True)

    class Meta:
        model = Staff
        fields = ['id', 'user', 'branch', 'branch_name', 'first_name', 'last_name', 'full_name', 'email', 'phone',
                  'specialization', 'status', 'hire_date', 'dbs_status', 'dbs_check_date',
                  'late_arrival_count', 'missed_booking_count', 'punctuality_score', 'created_at', 'updated_at']
        read_only_fields = ['late_arrival_count', 'missed_booking_count', 'punctuality_score', 'created_at', 'updated_at']


class TrainingCourseSerializer(serializers.ModelSerializer):
    class Meta:
        model = TrainingCourse
        fields = ['id', 'branch', 'title', 'category', 'description', 'is_mandatory', 'valid_for_months',
                  'required_score', 'max_score', 'status', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate(self, attrs):
        required = attrs.get('required_score', getattr(self.instance, 'required_score', 0))
        maximum = attrs.get('max_score', getattr(self.instance, 'max_score', 100))
        if required > maximum:
            raise serializers.ValidationError({'required_score': 'Required score cannot exceed the maximum score'})
        return attrs


class TrainingRecordSerializer(serializers.ModelSerializer):
    staff_name = serializers.CharField(source='staff.full_name', read_only=True)
    course_title = serializers.CharField(source='course.title', read_only=True)
    course_category = serializers.CharField(source='course.category', read_only=True)

    class Meta:
        model = TrainingRecord
        fields = ['id', 'staff', 'staff_name', 'course', 'course_title', 'course_category', 'branch', 'status',
                  'assigned_date', 'completion_date', 'expiry_date', 'score', 'progress_percentage', 'notes',
                  'created_at', 'updated_at']
        read_only_fields = ['branch', 'created_at', 'updated_at']

    def validate(self, attrs):
        staff = attrs.get('staff', getattr(self.instance, 'staff', None))
        course = attrs.get('course', getattr(self.instance, 'course', None))
        if staff and course and staff.branch_id != course.branch_id:
            raise serializers.ValidationError({'course': 'Course belongs to a different branch than the staff member'})

        score = attrs.get('score', getattr(self.instance, 'score', None))
        if course and score is not None:
            if score > course.max_score:
                raise serializers.ValidationError({'score': f'Score cannot exceed {course.max_score}'})
            status = attrs.get('status', getattr(self.instance, 'status', None))
            if status == TrainingRecord.STATUS_COMPLETED and score < course.required_score:
                raise serializers.ValidationError({'score': f'A score of at least {course.required_score} is required to complete this course'})

        progress = attrs.get('progress_percentage')
        if progress is not None and progress > 100:
            raise serializers.ValidationError({'progress_percentage': 'Progress cannot exceed 100'})
        return attrs

    def create(self, validated_data):
        validated_data['branch'] = validated_data['staff'].branch
        return super().create(validated_data)


class StaffDocumentSerializer(serializers.ModelSerializer):
    class Meta:
        model = StaffDocument
        fields = ['id', 'staff', 'document_type', 'file', 'expiry_date', 'status', 'created_at', 'updated_at']
        read_only_fields = ['staff', 'created_at', 'updated_at']


class TrainingMetricsEmailSerializer(serializers.Serializer):
    branch = serializers.IntegerField()
    recipients = serializers.ListField(child=serializers.EmailField(), allow_empty=False)
    subject = serializers.CharField(max_length=255, required=False, allow_blank=True)
    message = serializers.CharField(required=False, allow_blank=True)
