"""
Named caches: the value access API of a cache group.

A Cache stores its values at ``{group path}/{cache name}``, so it follows every
version bump of its group and of the group's ancestors.
"""

from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from cachegroup.options import backend_kwargs, merge_options

_MISSING = object()


class Cache:
    """
    A named cache bound to one cache group.

    Created with ``CacheGroup.register_cache()``. Options passed to an
    operation are merged over the cache's options, which were merged over the
    group's default options at registration. Only ``timeout`` and ``version``
    reach the Django cache backend.

    Example Usage:
        >>> profiles = users.register_cache('profile', cache_options={'timeout': 600})
        >>> profiles.fetch({'user_id': 7}, lambda: load_profile(7))
        >>> profiles.read_multi([profiles.key(7), profiles.key(8)])
        {Key(user_id=7): {...}}
    """

    def __init__(self, group, name: str, cache_options: Optional[Mapping[str, Any]] = None):
        self.group = group
        self.name = name
        self.options = merge_options(group.default_options, cache_options)

    def __repr__(self) -> str:
        return f"<Cache {self.full_name}>"

    @property
    def key(self):
        """Composite key namedtuple type of the owning group."""
        return self.group.key

    @property
    def full_name(self) -> str:
        return f"{self.group.full_name}/{self.name}"

    @property
    def configuration(self):
        return self.group.configuration

    @property
    def store(self):
        return self.configuration.store

    @property
    def logger(self):
        return self.configuration.logger

    def path(self, key: Any, parent_path: Optional[str] = None) -> str:
        """Resolve the storage path of ``key`` in this cache."""
        return self._path_string(self.group.path(key, parent_path))

    def path_multi(self, keys: Iterable[Any]) -> Dict[tuple, str]:
        """Resolve many storage paths at once; keys are normalized to ``self.key``."""
        return {
            key: self._path_string(group_path)
            for key, group_path in self.group.path_multi(keys).items()
        }

    def fetch(
        self,
        key: Any,
        producer: Callable[[], Any],
        parent_path: Optional[str] = None,
        **options
    ) -> Any:
        """
        Return the cached value, computing and storing it on a miss.

        Args:
            key: Composite key
            producer: Zero-argument callable, only called on a miss
            parent_path: Precomputed group parent path
            **options: Overrides for this call

        Returns:
            The cached or freshly produced value
        """
        path = self.path(key, parent_path)
        kwargs = backend_kwargs(merge_options(self.options, options))

        with self._instrument('fetch'):
            value = self.store.get(path, default=_MISSING, **kwargs)

        hit = value is not _MISSING
        if hit:
            self.configuration.metrics.record_cache_hit(self.full_name)
        else:
            # Runs outside the store instrumentation
            produced = producer()
            with self._instrument('fetch'):
                # A concurrent writer may win the add; its value is returned
                value = self.store.fetch_or_default(path, lambda: produced, **kwargs)
            self.configuration.metrics.record_cache_miss(self.full_name)

        self.logger.debug(
            f"Cache fetch - cache={self.full_name}, path={path}, hit={hit}, "
            f"operation=fetch"
        )
        return value

    def read(self, key: Any, parent_path: Optional[str] = None, **options) -> Any:
        """Return the cached value, or None."""
        path = self.path(key, parent_path)
        merged = merge_options(self.options, options)

        with self._instrument('read'):
            value = self.store.get(path, **backend_kwargs(merged))

        if value is None:
            self.configuration.metrics.record_cache_miss(self.full_name)
        else:
            self.configuration.metrics.record_cache_hit(self.full_name)

        self.logger.debug(
            f"Cache read - cache={self.full_name}, path={path}, hit={value is not None}, "
            f"operation=read"
        )
        return value

    def write(self, key: Any, value: Any, parent_path: Optional[str] = None, **options) -> None:
        path = self.path(key, parent_path)
        merged = merge_options(self.options, options)

        with self._instrument('write'):
            self.store.set(path, value, **backend_kwargs(merged))

        self.logger.debug(
            f"Cache write - cache={self.full_name}, path={path}, "
            f"options={dict(merged)}, operation=write"
        )

    def delete(self, key: Any, parent_path: Optional[str] = None, **options) -> bool:
        """Delete the cached value; returns whether one was stored."""
        return self._delete_at(self.group.path(key, parent_path), **options)

    def _delete_at(self, group_path: str, **options) -> bool:
        path = self._path_string(group_path)
        merged = merge_options(self.options, options)

        with self._instrument('delete'):
            deleted = self.store.delete(path, **backend_kwargs(merged))

        self.logger.debug(
            f"Cache delete - cache={self.full_name}, path={path}, deleted={deleted}, "
            f"operation=delete"
        )
        return deleted

    def read_multi(self, keys: Iterable[Any], **options) -> Dict[tuple, Any]:
        """
        Read many values with one batched path resolution and one ``get_many``.

        Args:
            keys: Composite keys
            **options: Overrides for this call

        Returns:
            ``{key: value}`` for the keys that have a value, keys normalized
            to ``self.key``
        """
        keys = list(keys)
        if not keys:
            return {}

        key_paths = self.path_multi(keys)
        path_keys = {path: key for key, path in key_paths.items()}
        merged = merge_options(self.options, options)

        with self._instrument('read_multi'):
            raw = self.store.get_many(list(path_keys), **backend_kwargs(merged))

        values = {path_keys[path]: value for path, value in raw.items() if path in path_keys}

        metrics = self.configuration.metrics
        if values:
            metrics.record_cache_hit(self.full_name, count=len(values))
        if len(path_keys) > len(values):
            metrics.record_cache_miss(self.full_name, count=len(path_keys) - len(values))

        self.logger.debug(
            f"Cache multi-read - cache={self.full_name}, requested={len(path_keys)}, "
            f"found={len(values)}, operation=read_multi"
        )
        return values

    def write_multi(self, entries: Any, **options) -> List[str]:
        """
        Write many values with one batched path resolution and one ``set_many``.

        Not atomic: the backend may store some entries and fail others.

        Args:
            entries: Mapping of composite key to value, or an iterable of
                ``(key, value)`` pairs (for unhashable keys such as dicts)
            **options: Overrides for this call

        Returns:
            Storage paths the backend failed to write
        """
        items = list(entries.items() if isinstance(entries, Mapping) else entries)
        if not items:
            return []

        group_paths = self.group.path_list(key for key, _ in items)
        data = {
            self._path_string(group_path): value
            for group_path, (_, value) in zip(group_paths, items)
        }
        merged = merge_options(self.options, options)

        with self._instrument('write_multi'):
            failed = self.store.set_many(data, **backend_kwargs(merged))

        if failed:
            self.logger.warning(
                f"Cache multi-write incomplete - cache={self.full_name}, "
                f"failed={len(failed)}, operation=write_multi"
            )
        else:
            self.logger.debug(
                f"Cache multi-write - cache={self.full_name}, count={len(data)}, "
                f"operation=write_multi"
            )
        return failed

    @contextmanager
    def _instrument(self, operation: str):
        metrics = self.configuration.metrics
        try:
            with metrics.measure_latency(operation, cache_name=self.full_name):
                yield
        except Exception as e:
            metrics.record_error(operation)
            self.logger.error(
                f"Cache error - cache={self.full_name}, operation={operation}, error={str(e)}",
                exc_info=True
            )
            raise

    def _path_string(self, group_path: str) -> str:
        return f"{group_path}/{self.name}"
