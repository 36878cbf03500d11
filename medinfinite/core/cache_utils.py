"""
Caching utilities for branch lists and dashboard aggregates
Uses Redis (django-redis) when configured, local memory otherwise
"""
from django.core.cache import cache
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
BRANCH_CACHE_TTL = 900  # 15 minutes
BRANCH_LIST_CACHE_TTL = 600  # 10 minutes
DASHBOARD_KPI_CACHE_TTL = 300  # 5 minutes

BRANCH_KEY_PREFIX = 'branch'
BRANCH_LIST_KEY_PREFIX = 'branch_list'
DASHBOARD_KEY_PREFIX = 'dashboard_kpis'


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern.
    django-redis exposes delete_pattern; other backends are cleared entirely.
    """
    try:
        if hasattr(cache, 'delete_pattern'):
            deleted = cache.delete_pattern(f"*{pattern}*")
            logger.info(f"Invalidated {deleted} cache keys matching pattern: {pattern}")
        else:
            cache.clear()
            logger.info(f"Cleared local cache for pattern: {pattern}")
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def get_branch_list_cache_key(scope_key='all'):
    """Cache key for the branch list visible to a scope (``all`` or sorted branch ids)"""
    return f"{BRANCH_LIST_KEY_PREFIX}:{scope_key}"


def get_branch_cache_key(branch_id):
    return f"{BRANCH_KEY_PREFIX}:{branch_id}"


def invalidate_branch_cache(branch_id=None):
    if branch_id is not None:
        cache.delete(get_branch_cache_key(branch_id))
    invalidate_cache_pattern(BRANCH_LIST_KEY_PREFIX)


def get_cached_dashboard_kpis(branch_ids, day):
    """Get cached dashboard KPIs"""
    cache_key = make_cache_key(DASHBOARD_KEY_PREFIX, tuple(sorted(branch_ids)) if branch_ids is not None else 'all', str(day))
    return cache.get(cache_key), cache_key


def cache_dashboard_kpis(cache_key, data, ttl=DASHBOARD_KPI_CACHE_TTL):
    """Cache dashboard KPIs data"""
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached dashboard KPIs: {cache_key}")


def invalidate_dashboard_cache():
    """Invalidate dashboard KPIs cache"""
    invalidate_cache_pattern(DASHBOARD_KEY_PREFIX)
