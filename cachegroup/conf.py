"""
Django settings used by the cache group app.

Settings:
    CACHEGROUP_CACHE_ALIAS: Alias in CACHES used as the store (default "default")
    CACHEGROUP_LOGGER: Name of the logger bound to the configuration
        (default "cachegroup")
    CACHEGROUP_AUTOCONFIGURE: Configure the process-wide configuration in
        AppConfig.ready() (default True)
"""

import os
from typing import Optional

from django.conf import settings
from django.core.cache import DEFAULT_CACHE_ALIAS


def get_cache_alias() -> str:
    return getattr(settings, 'CACHEGROUP_CACHE_ALIAS', DEFAULT_CACHE_ALIAS)


def get_logger_name() -> str:
    return getattr(settings, 'CACHEGROUP_LOGGER', 'cachegroup')


def autoconfigure_enabled() -> bool:
    return bool(getattr(settings, 'CACHEGROUP_AUTOCONFIGURE', True))


def build_redis_caches(location: Optional[str] = None, key_prefix: Optional[str] = None) -> dict:
    """
    Build a CACHES setting with a django-redis default cache.

    Version counters are stored without expiry regardless of TIMEOUT, which
    only applies to cached values.
    """
    return {
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": location or os.getenv("REDIS_URL", "redis://redis:6379/1"),
            "OPTIONS": {
                "CLIENT_CLASS": "django_redis.client.DefaultClient",
                "CONNECTION_POOL_KWARGS": {
                    "max_connections": 50,
                    "retry_on_timeout": True,
                },
                "SOCKET_CONNECT_TIMEOUT": 5,
                "SOCKET_TIMEOUT": 5,
            },
            "TIMEOUT": 300,
            "KEY_PREFIX": key_prefix or os.getenv("CACHE_KEY_PREFIX", "cachegroup"),
        },
    }
