"""
Write-once configuration binding the cache group layer to a store and a logger.

Groups are registered through a CacheConfiguration and keep a reference to it,
so they can be declared at import time and only touch the store once the
configuration has been set (normally from ``CacheGroupConfig.ready()``).
"""

import logging
from typing import Any, Mapping, Optional, Tuple

from cachegroup.exceptions import ConfigurationError
from cachegroup.groups import CacheGroup, check_segment
from cachegroup.metrics import CacheMetrics
from cachegroup.store import CacheStore

DEFAULT_LOGGER_NAME = 'cachegroup'


class CacheConfiguration:
    """
    Registry of root cache groups plus the store and logger they use.

    The store and logger can be set exactly once, either in the constructor
    or through ``configure()``.

    Example Usage:
        >>> from django.core.cache import caches
        >>> config = CacheConfiguration()
        >>> users = config.register_group('user', 'user_id')
        >>> profiles = users.register_cache('profile')
        >>> config.configure(caches['default'])
        >>> profiles.write({'user_id': 7}, {'name': 'Ann'})
    """

    def __init__(self, cache: Optional[Any] = None, logger: Optional[logging.Logger] = None):
        self._store: Optional[Any] = None
        self._logger: Optional[logging.Logger] = None
        self._groups = []
        self.metrics = CacheMetrics()

        if cache is not None:
            self.configure(cache, logger=logger)

    def __repr__(self) -> str:
        return f"<CacheConfiguration configured={self.is_configured} groups={len(self._groups)}>"

    @property
    def is_configured(self) -> bool:
        return self._store is not None

    def configure(self, cache: Any, logger: Optional[logging.Logger] = None) -> None:
        """
        Bind the store and logger. May only be called once.

        Args:
            cache: A Django cache (backend or the ``django.core.cache.cache``
                proxy), wrapped in a CacheStore, or a CacheStore instance
            logger: Logger used by groups and caches; defaults to the
                ``cachegroup`` logger

        Raises:
            ConfigurationError: If already configured
        """
        if self.is_configured:
            raise ConfigurationError("Cache groups are already configured")
        if cache is None:
            raise ConfigurationError("A cache store is required to configure cache groups")

        if not isinstance(cache, CacheStore):
            cache = CacheStore(cache)

        self._store = cache
        self._logger = logger

        self.logger.info(f"Cache groups configured - store={cache!r}, operation=configure")

    @property
    def store(self) -> Any:
        if self._store is None:
            raise ConfigurationError(
                "Cache groups are not configured; call configure() or add "
                "'cachegroup' to INSTALLED_APPS"
            )
        return self._store

    @property
    def logger(self) -> logging.Logger:
        if self._logger is None:
            return logging.getLogger(DEFAULT_LOGGER_NAME)
        return self._logger

    @property
    def groups(self) -> Tuple[CacheGroup, ...]:
        """Root groups, in registration order."""
        return tuple(self._groups)

    def register_group(
        self,
        name: str,
        key_name: str,
        default_options: Optional[Mapping[str, Any]] = None,
        static_version: Optional[int] = None,
    ) -> CacheGroup:
        """
        Register a root cache group.

        Args:
            name: Path segment for the group, unique among root groups
            key_name: Composite key field the group consumes
            default_options: Options inherited by every cache in the tree
            static_version: Fixed version; None for a store-backed version

        Returns:
            The new CacheGroup

        Raises:
            ConfigurationError: If the name is taken or invalid
        """
        name = check_segment(name, 'group name')
        if any(group.name == name for group in self._groups):
            raise ConfigurationError(f"Cache group '{name}' is already registered")

        group = CacheGroup(self, None, name, key_name, default_options, static_version)
        self._groups.append(group)
        return group

    def find_group(self, full_name: str) -> Optional[CacheGroup]:
        """
        Look up a registered group by its slash-separated full name.

        Example:
            >>> config.find_group('organization/user')
            <CacheGroup organization/user key=('organization_id', 'user_id')>
        """
        candidates = self._groups
        group = None
        for segment in full_name.strip('/').split('/'):
            group = next((g for g in candidates if g.name == segment), None)
            if group is None:
                return None
            candidates = group.children
        return group


# Process-wide configuration, set up by CacheGroupConfig.ready()
configuration = CacheConfiguration()
