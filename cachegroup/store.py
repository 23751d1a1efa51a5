"""
Store adapter over Django's cache framework.

The cache group layer never talks to a cache backend directly; it goes through
CacheStore, which narrows ``django.core.cache`` down to the handful of
operations the path resolution and value access code need:

- get / set / delete for single values
- get_many / set_many for batched access
- fetch_or_default for atomic read-or-initialize of version counters
- increment for version bumps

Any backend works (LocMemCache in tests, django-redis in production). Errors
raised by the backend propagate unchanged; callers log them with the cache or
group they concern.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Union

from django.core.cache.backends.base import DEFAULT_TIMEOUT, BaseCache

logger = logging.getLogger(__name__)


def _version_only(options: Mapping[str, Any]) -> Dict[str, Any]:
    if 'version' in options:
        return {'version': options['version']}
    return {}


class CacheStore:
    """
    Thin adapter around a Django cache backend.

    Options accepted by the methods are the Django backend keyword arguments:
    ``timeout`` (where the backend takes one) and ``version``. Anything else
    must already have been filtered out by the caller.

    Example Usage:
        >>> from django.core.cache import caches
        >>> store = CacheStore(caches['default'])
        >>> store.fetch_or_default('ROOT/user/_version', 1, timeout=None)
        1
        >>> store.increment('ROOT/user/_version')
        2
    """

    def __init__(self, backend: BaseCache):
        self.backend = backend

    def __repr__(self) -> str:
        return f"<CacheStore backend={type(self.backend).__name__}>"

    def get(self, key: str, default: Any = None, **options) -> Any:
        return self.backend.get(key, default, **_version_only(options))

    def set(self, key: str, value: Any, **options) -> None:
        self.backend.set(
            key,
            value,
            timeout=options.get('timeout', DEFAULT_TIMEOUT),
            **_version_only(options)
        )

    def delete(self, key: str, **options) -> bool:
        return bool(self.backend.delete(key, **_version_only(options)))

    def fetch_or_default(
        self,
        key: str,
        default: Union[Any, Callable[[], Any]],
        **options
    ) -> Any:
        """
        Return the stored value, or store and return ``default``.

        Relies on the backend's ``get_or_set``, which initializes with an
        atomic ``add``: when several processes race on a missing key, all of
        them end up returning the value that won.

        Args:
            key: Store key
            default: Value or zero-argument callable producing the value
            **options: ``timeout`` and ``version``

        Returns:
            The stored or newly initialized value
        """
        return self.backend.get_or_set(
            key,
            default,
            timeout=options.get('timeout', DEFAULT_TIMEOUT),
            **_version_only(options)
        )

    def increment(self, key: str, default: int = 1) -> int:
        """
        Increment a counter, initializing it to ``default`` first if absent.

        The counter never expires. Returns the incremented value, so a counter
        that did not exist yet comes back as ``default + 1``.
        """
        self.backend.add(key, default, timeout=None)
        try:
            return self.backend.incr(key)
        except ValueError:
            # Evicted between add() and incr()
            new_value = default + 1
            self.backend.set(key, new_value, timeout=None)
            logger.warning(
                f"Counter vanished before increment - key={key}, "
                f"operation=increment_fallback, new_value={new_value}"
            )
            return new_value

    def get_many(self, keys: Iterable[str], **options) -> Dict[str, Any]:
        """Return ``{key: value}`` for the keys present in the store."""
        keys = list(keys)
        if not keys:
            return {}
        return self.backend.get_many(keys, **_version_only(options))

    def set_many(self, data: Mapping[str, Any], **options) -> List[str]:
        """Store every entry; returns the keys the backend failed to write."""
        if not data:
            return []
        failed = self.backend.set_many(
            dict(data),
            timeout=options.get('timeout', DEFAULT_TIMEOUT),
            **_version_only(options)
        )
        return list(failed or [])

