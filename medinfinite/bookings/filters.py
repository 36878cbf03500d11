import django_filters
from django.db.models import Q

from .models import Booking


class BookingFilter(django_filters.FilterSet):
    """Filter for Booking lists"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    branch = django_filters.NumberFilter(field_name='branch_id')
    client = django_filters.NumberFilter(field_name='client_id')
    staff = django_filters.NumberFilter(field_name='staff_id')
    service = django_filters.NumberFilter(field_name='service_id')
    status = django_filters.CharFilter(method='filter_status')
    date_from = django_filters.DateFilter(field_name='start_time', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='start_time', lookup_expr='date__lte')
    is_late_start = django_filters.BooleanFilter(field_name='is_late_start')
    is_missed = django_filters.BooleanFilter(field_name='is_missed')
    unassigned = django_filters.BooleanFilter(field_name='staff', lookup_expr='isnull')

    class Meta:
        model = Booking
        fields = ['search', 'branch', 'client', 'staff', 'service', 'status', 'date_from', 'date_to',
                  'is_late_start', 'is_missed', 'unassigned']

    def filter_status(self, queryset, name, value):
        """Comma separated list of statuses"""
        statuses = [item.strip() for item in value.split(',') if item.strip()]
        return queryset.filter(status__in=statuses) if statuses else queryset

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        for word in value.split():
            queryset = queryset.filter(
                Q(client__first_name__icontains=word) |
                Q(client__last_name__icontains=word) |
                Q(staff__first_name__icontains=word) |
                Q(staff__last_name__icontains=word) |
                Q(notes__icontains=word)
            )
        return queryset
