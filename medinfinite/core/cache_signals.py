"""
Cache invalidation signals
Automatically invalidate cache when data changes
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import invalidate_branch_cache, invalidate_dashboard_cache

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()

# Models whose changes move the dashboard numbers
DASHBOARD_MODELS = {'Booking', 'Client', 'Staff', 'Invoice', 'Payment', 'TrainingRecord'}


@contextmanager
def suspend_cache_signals():
    """
    Context manager to temporarily suspend cache invalidation signals.
    Useful for bulk operations to prevent excessive cache clearing.
    Remember to manually invalidate cache after the block!
    """
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = False


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


@receiver([post_save, post_delete])
def invalidate_branch_cache_on_change(sender, instance, **kwargs):
    """Invalidate branch caches when branches or admin links change"""
    if is_suspended():
        return

    model_name = sender.__name__
    if model_name == 'Branch':
        invalidate_branch_cache(instance.pk)
    elif model_name == 'AdminBranch':
        invalidate_branch_cache(instance.branch_id)


@receiver([post_save, post_delete])
def invalidate_dashboard_cache_on_change(sender, instance, **kwargs):
    """Invalidate dashboard KPIs when bookings, clients, staff or invoices change"""
    if is_suspended():
        return

    if sender.__name__ in DASHBOARD_MODELS:
        try:
            invalidate_dashboard_cache()
        except Exception as e:
            logger.warning(f"Error in invalidate_dashboard_cache_on_change signal: {e}")
