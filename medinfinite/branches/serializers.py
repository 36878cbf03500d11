from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Organization, Branch, AdminBranch, DEFAULT_ADMIN_PERMISSIONS

User = get_user_model()


class OrganizationSerializer(serializers.ModelSerializer):
    branch_count = serializers.IntegerField(source='branches.count', read_only=True)

    class Meta:
        model = Organization
        fields = ['id', 'name', 'address', 'contact_phone', 'contact_email', 'website', 'logo',
                  'branch_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class BranchSerializer(serializers.ModelSerializer):
    organization_name = serializers.CharField(source='organization.name', read_only=True, default=None)

    class Meta:
        model = Branch
        fields = ['id', 'organization', 'organization_name', 'name', 'branch_type', 'country', 'currency',
                  'regulatory', 'status', 'address', 'phone', 'email', 'operating_hours',
                  'established_date', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class AdminBranchSerializer(serializers.ModelSerializer):
    admin_username = serializers.CharField(source='admin.username', read_only=True)
    admin_email = serializers.EmailField(source='admin.email', read_only=True)
    admin_name = serializers.CharField(source='admin.display_name', read_only=True)
    branch_name = serializers.CharField(source='branch.name', read_only=True)

    class Meta:
        model = AdminBranch
        fields = ['id', 'admin', 'admin_username', 'admin_email', 'admin_name', 'branch', 'branch_name',
                  'permissions', 'created_at']
        read_only_fields = ['created_at']


def validate_permission_keys(value):
    unknown = set(value or {}) - set(DEFAULT_ADMIN_PERMISSIONS)
    if unknown:
        raise serializers.ValidationError(f"Unknown permissions: {', '.join(sorted(unknown))}")
    return value


class CreateBranchAdminSerializer(serializers.Serializer):
    email = serializers.EmailField()
    first_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    password = serializers.CharField(write_only=True, required=False, allow_blank=True, min_length=8)
    branch_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    permissions = serializers.DictField(child=serializers.BooleanField(), required=False,
                                        validators=[validate_permission_keys])

    def validate_branch_ids(self, value):
        found = set(Branch.objects.filter(id__in=value).values_list('id', flat=True))
        missing = sorted(set(value) - found)
        if missing:
            raise serializers.ValidationError(f"Unknown branches: {missing}")
        return sorted(set(value))


class UpdateMemberSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=User.ROLE_CHOICES, required=False)
    branch_ids = serializers.ListField(child=serializers.IntegerField(), required=False)
    permissions = serializers.DictField(child=serializers.BooleanField(), required=False,
                                        validators=[validate_permission_keys])
    is_active = serializers.BooleanField(required=False)
    first_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)

    def validate_branch_ids(self, value):
        found = set(Branch.objects.filter(id__in=value).values_list('id', flat=True))
        missing = sorted(set(value) - found)
        if missing:
            raise serializers.ValidationError(f"Unknown branches: {missing}")
        return sorted(set(value))
