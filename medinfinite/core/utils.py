"""Utility functions for audit logging, settings lookup and pagination"""
import logging
from decimal import Decimal, InvalidOperation

from django.core.paginator import Paginator

from .models import AuditLog, Setting

logger = logging.getLogger('medinfinite.core')


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, update, delete, approve, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., client name, invoice number)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            changes=changes or {},
            ip_address=ip_address
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def get_setting(key, default=None):
    """Return the value of a Setting row, or ``default`` when it is missing"""
    value = Setting.objects.filter(key=key).values_list('value', flat=True).first()
    return default if value is None else value


def get_decimal_setting(key, default):
    value = get_setting(key)
    if value is None:
        return Decimal(str(default))
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError):
        logger.warning(f"Setting {key} has a non-numeric value {value!r}, using {default}")
        return Decimal(str(default))


def get_int_setting(key, default):
    value = get_setting(key)
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        logger.warning(f"Setting {key} has a non-integer value {value!r}, using {default}")
        return default


def paginate(queryset, request, serializer_class, default_limit=50, context=None):
    """Paginate a queryset using the ``page`` and ``limit`` query parameters"""
    try:
        page = int(request.query_params.get('page', 1))
        limit = int(request.query_params.get('limit', default_limit))
    except (TypeError, ValueError):
        page, limit = 1, default_limit
    limit = max(1, min(limit, 500))

    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)

    serializer = serializer_class(page_obj, many=True, context=context or {'request': request})
    return {
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    }
