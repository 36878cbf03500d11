from rest_framework import serializers
from .models import Client, ClientNote
from .statuses import CLIENT_STATUSES, normalize_status


class ClientSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    branch_name = serializers.CharField(source='branch.name', read_only=True)
    status = serializers.CharField(required=False)

    class Meta:
        model = Client
        fields = ['id', 'branch', 'branch_name', 'user', 'title', 'first_name', 'last_name', 'full_name',
                  'preferred_name', 'date_of_birth', 'gender', 'email', 'phone', 'address', 'postcode', 'status',
                  'registered_on', 'emergency_contact', 'emergency_phone', 'gp_details', 'mobility_status',
                  'is_child', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_status(self, value):
        normalized = normalize_status(value)
        if normalized not in CLIENT_STATUSES:
            raise serializers.ValidationError(f"'{value}' is not a valid client status")
        return normalized


class ClientListSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    branch_name = serializers.CharField(source='branch.name', read_only=True)

    class Meta:
        model = Client
        fields = ['id', 'branch', 'branch_name', 'first_name', 'last_name', 'full_name', 'preferred_name',
                  'date_of_birth', 'phone', 'postcode', 'status', 'registered_on', 'is_child']


class ClientNoteSerializer(serializers.ModelSerializer):
    author_name = serializers.CharField(source='author.display_name', read_only=True, default=None)

    class Meta:
        model = ClientNote
        fields = ['id', 'client', 'author', 'author_name', 'title', 'content', 'created_at']
        read_only_fields = ['client', 'author', 'created_at']
