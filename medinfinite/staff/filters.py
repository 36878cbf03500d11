import django_filters
from django.db.models import Q

from .models import Staff, TrainingRecord


class StaffFilter(django_filters.FilterSet):
    """Filter for Staff lists"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    branch = django_filters.NumberFilter(field_name='branch_id', lookup_expr='exact')
    status = django_filters.CharFilter(field_name='status', lookup_expr='exact')
    dbs_status = django_filters.CharFilter(field_name='dbs_status', lookup_expr='exact')

    class Meta:
        model = Staff
        fields = ['search', 'branch', 'status', 'dbs_status']

    def filter_search(self, queryset, name, value):
        """Match every word against name, email, phone or specialization"""
        if not value:
            return queryset
        for word in value.split():
            queryset = queryset.filter(
                Q(first_name__icontains=word) |
                Q(last_name__icontains=word) |
                Q(email__icontains=word) |
                Q(phone__icontains=word) |
                Q(specialization__icontains=word)
            )
        return queryset


class TrainingRecordFilter(django_filters.FilterSet):
    staff = django_filters.NumberFilter(field_name='staff_id')
    course = django_filters.NumberFilter(field_name='course_id')
    branch = django_filters.NumberFilter(field_name='branch_id')
    status = django_filters.CharFilter(field_name='status')
    category = django_filters.CharFilter(field_name='course__category')
    expiring_before = django_filters.DateFilter(field_name='expiry_date', lookup_expr='lte')

    class Meta:
        model = TrainingRecord
        fields = ['staff', 'course', 'branch', 'status', 'category', 'expiring_before']
