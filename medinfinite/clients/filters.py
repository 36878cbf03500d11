import django_filters
from django.db.models import Q

from .models import Client
from .statuses import normalize_status


class ClientFilter(django_filters.FilterSet):
    """Filter for Client lists"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    branch = django_filters.NumberFilter(field_name='branch_id', lookup_expr='exact')
    status = django_filters.CharFilter(method='filter_status', label='Status')
    is_child = django_filters.BooleanFilter(field_name='is_child')
    registered_from = django_filters.DateFilter(field_name='registered_on', lookup_expr='gte')
    registered_to = django_filters.DateFilter(field_name='registered_on', lookup_expr='lte')

    class Meta:
        model = Client
        fields = ['search', 'branch', 'status', 'is_child', 'registered_from', 'registered_to']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        for word in value.split():
            queryset = queryset.filter(
                Q(first_name__icontains=word) |
                Q(last_name__icontains=word) |
                Q(preferred_name__icontains=word) |
                Q(email__icontains=word) |
                Q(phone__icontains=word) |
                Q(postcode__icontains=word)
            )
        return queryset

    def filter_status(self, queryset, name, value):
        """Accepts a comma separated list in any casing (e.g. new_enquiries,active)"""
        statuses = [normalize_status(item) for item in value.split(',') if item.strip()]
        if not statuses:
            return queryset
        return queryset.filter(status__in=statuses)
