"""
Cache groups: versioned namespaces arranged in a tree.

Every group consumes one field of a composite key and contributes one segment
to the storage path of the values cached under it:

    {parent_path}/{name}/{static_tag}/{version}/{key_value}

Key values are percent-encoded, so a value containing '/' cannot spill into
the segments of another group. The root of every path is ROOT_PATH. The version of a dynamic group lives in
the store under ``{parent_path}/{name}/_version`` and starts at 1; bumping it
changes the path of every value cached in the group and in all of its
descendants for that parent, which makes invalidation O(1) no matter how many
values sit underneath.

Example:
    >>> org = config.register_group('org', 'org_id')
    >>> user = org.register_child_group('user', 'user_id')
    >>> user.path({'org_id': 3, 'user_id': 9})
    'ROOT/org/1/1/3/user/1/1/9'
    >>> user.invalidate_cache_group({'org_id': 3})
    2
    >>> user.path({'org_id': 3, 'user_id': 9})
    'ROOT/org/1/1/3/user/1/2/9'
"""

import weakref
from collections import namedtuple
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import quote

from cachegroup.caches import Cache
from cachegroup.exceptions import ConfigurationError, MissingKeyError
from cachegroup.options import merge_options

ROOT_PATH = "ROOT"
VERSION_SEGMENT = "_version"

# Version of a dynamic group that has never been invalidated
INITIAL_VERSION = 1

# Static tag of dynamic groups
DYNAMIC_STATIC_TAG = 1


def check_segment(value: Any, what: str) -> str:
    """Validate a name used as a path segment."""
    segment = str(value)
    if not segment or '/' in segment:
        raise ConfigurationError(f"Invalid {what} {value!r}: must be non-empty and contain no '/'")
    return segment


def encode_key_value(value: Any) -> str:
    """Percent-encode a key value so it always occupies exactly one path segment."""
    return quote(str(value), safe='')


class CacheGroup:
    """
    A node in the tree of cache namespaces.

    Groups are created through ``CacheConfiguration.register_group()`` and
    ``CacheGroup.register_child_group()``, never directly. The topology is
    fixed once registered; only version counters in the store change.

    Attributes:
        configuration: CacheConfiguration providing store, logger and metrics
        name: Path segment, unique among siblings
        key_name: Composite key field consumed by this group
        key_schema: Key fields required here, root first
        key: namedtuple type with ``key_schema`` as fields
        default_options: Read-only options inherited by caches and children
        static_version: Fixed version, or None when stored in the cache
        children: Child groups, in registration order
        caches: Named caches, in registration order
    """

    def __init__(
        self,
        configuration,
        parent: Optional['CacheGroup'],
        name: str,
        key_name: str,
        default_options: Optional[Mapping[str, Any]] = None,
        static_version: Optional[int] = None,
    ):
        self.configuration = configuration
        self.name = check_segment(name, 'group name')
        self.key_name = str(key_name)

        parent_schema = parent.key_schema if parent is not None else ()
        if self.key_name in parent_schema:
            raise ConfigurationError(
                f"Key field '{self.key_name}' of cache group '{self.name}' "
                f"is already used by an ancestor group"
            )
        self.key_schema: Tuple[str, ...] = parent_schema + (self.key_name,)

        try:
            self.key = namedtuple('Key', self.key_schema)
        except ValueError as e:
            raise ConfigurationError(f"Invalid key field for cache group '{self.name}': {e}") from e

        if static_version is not None and (
            isinstance(static_version, bool) or not isinstance(static_version, int)
        ):
            raise ConfigurationError(
                f"static_version must be an integer, got {type(static_version).__name__}"
            )
        self.static_version = static_version

        self._parent_ref = weakref.ref(parent) if parent is not None else None
        self.default_options = merge_options(
            parent.default_options if parent is not None else None,
            default_options,
        )

        self.children: List['CacheGroup'] = []
        self.caches: List[Cache] = []

    def __repr__(self) -> str:
        return f"<CacheGroup {self.full_name} key={self.key_schema!r}>"

    @property
    def parent(self) -> Optional['CacheGroup']:
        if self._parent_ref is None:
            return None
        parent = self._parent_ref()
        if parent is None:
            raise ConfigurationError(f"Parent of cache group '{self.name}' no longer exists")
        return parent

    @property
    def full_name(self) -> str:
        """Slash-joined group names from the root down to this group."""
        parent = self.parent
        if parent is None:
            return self.name
        return f"{parent.full_name}/{self.name}"

    @property
    def is_static(self) -> bool:
        return self.static_version is not None

    @property
    def static_tag(self) -> int:
        return self.static_version if self.is_static else DYNAMIC_STATIC_TAG

    @property
    def store(self):
        return self.configuration.store

    @property
    def logger(self):
        return self.configuration.logger

    # Registration

    def register_child_group(
        self,
        name: str,
        key_name: str,
        default_options: Optional[Mapping[str, Any]] = None,
        static_version: Optional[int] = None,
    ) -> 'CacheGroup':
        """
        Register a group nested under this one.

        The child's key schema is this group's schema plus ``key_name`` and its
        default options are merged over this group's defaults.

        Raises:
            ConfigurationError: If a sibling already uses ``name`` or an
                ancestor already consumes ``key_name``
        """
        name = check_segment(name, 'group name')
        if any(child.name == name for child in self.children):
            raise ConfigurationError(f"Cache group '{self.full_name}/{name}' is already registered")

        group = CacheGroup(self.configuration, self, name, key_name, default_options, static_version)
        self.children.append(group)
        return group

    def register_cache(self, name: str, cache_options: Optional[Mapping[str, Any]] = None) -> Cache:
        """Register a named cache storing values under this group's paths."""
        name = check_segment(name, 'cache name')
        if any(cache.name == name for cache in self.caches):
            raise ConfigurationError(f"Cache '{self.full_name}/{name}' is already registered")

        cache = Cache(self, name, cache_options)
        self.caches.append(cache)
        return cache

    # Keys

    def key_value(self, key: Any, field: str) -> Any:
        """
        Extract one field from a composite key.

        Mappings are looked up by item, anything else (such as a ``key``
        namedtuple) by attribute. Fields beyond the schema are ignored.

        Raises:
            MissingKeyError: If the field is absent or None
        """
        if key is None:
            value = None
        elif isinstance(key, Mapping):
            value = key.get(field)
        else:
            value = getattr(key, field, None)

        if value is None:
            raise MissingKeyError(field, self.full_name)
        return value

    def normalize_key(self, key: Any) -> tuple:
        """Convert a composite key to this group's ``key`` namedtuple."""
        if isinstance(key, self.key):
            for field, value in zip(self.key_schema, key):
                if value is None:
                    raise MissingKeyError(field, self.full_name)
            return key
        return self.key(*(self.key_value(key, field) for field in self.key_schema))

    # Path resolution

    def path(self, key: Any, parent_path: Optional[str] = None) -> str:
        """
        Resolve the storage path of this group for a composite key.

        Args:
            key: Composite key providing every field of ``key_schema``
            parent_path: Already resolved parent path, to skip the version
                lookups of the ancestors

        Returns:
            ``{parent_path}/{name}/{static_tag}/{version}/{key_value}``

        Raises:
            MissingKeyError: If a required key field is missing
        """
        key_value = self.key_value(key, self.key_name)
        if parent_path is None:
            parent_path = self.parent_path(key)
        version = self.version(parent_path)

        path = self._path_string(parent_path, version, key_value)
        self.logger.debug(f"Cache path resolved - group={self.full_name}, path={path}, operation=path")
        return path

    def parent_path(self, parent_key: Any = None) -> str:
        """Resolve the path of the parent group, or ROOT_PATH for a root group."""
        parent = self.parent
        if parent is None:
            return ROOT_PATH
        return parent.path(parent_key)

    def version_path(self, parent_path: str) -> str:
        """Store key holding this group's version under ``parent_path``."""
        return f"{parent_path}/{self.name}/{VERSION_SEGMENT}"

    def version(self, parent_path: str) -> int:
        """
        Get the current version of this group under a parent path.

        Static groups return their fixed version without touching the store.
        Dynamic groups read the version counter, initializing it to 1 when it
        does not exist yet.
        """
        if self.is_static:
            return self.static_version

        version_path = self.version_path(parent_path)
        with self._store_errors('version_get'):
            version = self.store.fetch_or_default(version_path, INITIAL_VERSION, timeout=None)

        self.logger.debug(
            f"Cache version retrieved - group={self.full_name}, version={version}, "
            f"operation=version_get"
        )
        return int(version)

    # Batched path resolution

    def path_list(self, keys: Iterable[Any]) -> List[str]:
        """
        Resolve the paths of many keys, in input order.

        Ancestor paths are resolved level by level and every level fetches the
        versions of all distinct parent paths in one ``get_many``; only
        versions that do not exist yet cost an extra round trip each.
        """
        keys = list(keys)
        if not keys:
            return []

        key_values = [self.key_value(key, self.key_name) for key in keys]
        parent_paths = self.parent_path_list(keys)
        versions = self.version_multi(parent_paths)

        return [
            self._path_string(parent_path, versions[parent_path], key_value)
            for parent_path, key_value in zip(parent_paths, key_values)
        ]

    def path_multi(self, keys: Iterable[Any]) -> Dict[tuple, str]:
        """
        Resolve the paths of many keys at once.

        Returns:
            ``{key: path}`` where each key is normalized to ``self.key``; for
            every key the path equals ``self.path(key)``
        """
        keys = list(keys)
        paths = self.path_list(keys)
        return {self.normalize_key(key): path for key, path in zip(keys, paths)}

    def parent_path_list(self, keys: List[Any]) -> List[str]:
        """Resolve the parent path of many keys, in input order."""
        parent = self.parent
        if parent is None:
            return [ROOT_PATH] * len(keys)
        return parent.path_list(keys)

    def version_multi(self, parent_paths: Iterable[str]) -> Dict[str, int]:
        """
        Get this group's version under many parent paths at once.

        Returns:
            ``{parent_path: version}`` for every distinct parent path
        """
        parent_paths = list(dict.fromkeys(parent_paths))

        if self.is_static:
            return {parent_path: self.static_version for parent_path in parent_paths}

        version_paths = {parent_path: self.version_path(parent_path) for parent_path in parent_paths}
        versions = {}
        with self._store_errors('version_multi'):
            found = self.store.get_many(version_paths.values())
            for parent_path, version_path in version_paths.items():
                version = found.get(version_path)
                if version is None:
                    version = self.store.fetch_or_default(version_path, INITIAL_VERSION, timeout=None)
                versions[parent_path] = int(version)

        self.logger.debug(
            f"Cache versions retrieved - group={self.full_name}, count={len(versions)}, "
            f"missing={len(versions) - len(found)}, operation=version_multi"
        )
        return versions

    # Invalidation

    def invalidate_cache_group(self, parent_key: Any = None) -> int:
        """
        Invalidate every value cached in this group (and its descendants)
        under the parent identified by ``parent_key``.

        Args:
            parent_key: Composite key of the parent group; ignored for root
                groups

        Returns:
            The new version

        Raises:
            ConfigurationError: If this group is statically versioned
            MissingKeyError: If ``parent_key`` lacks a parent key field
        """
        if self.is_static:
            raise ConfigurationError(
                f"Cannot invalidate statically versioned cache group '{self.full_name}'"
            )

        return self._invalidate_at(self.parent_path(parent_key))

    def _invalidate_at(self, parent_path: str) -> int:
        version_path = self.version_path(parent_path)
        metrics = self.configuration.metrics

        with self._store_errors('invalidate'), metrics.measure_latency('invalidate'):
            new_version = self.store.increment(version_path, default=INITIAL_VERSION)

        metrics.record_invalidation(self.full_name)
        self.logger.info(
            f"Cache group invalidated - group={self.full_name}, parent_path={parent_path}, "
            f"new_version={new_version}, operation=invalidate"
        )
        return new_version

    def delete_all(self, key: Any, parent_path: Optional[str] = None) -> None:
        """
        Drop everything stored for ``key`` in this group.

        Deletes the value of ``key`` from every cache of this group and
        invalidates every child group for ``key``, which drops all descendant
        values at once.

        Args:
            key: Composite key of this group
            parent_path: Already resolved parent path, in which case ``key``
                only needs this group's own field

        Raises:
            ConfigurationError: If a child group is statically versioned;
                nothing is deleted in that case
        """
        static_children = [child.name for child in self.children if child.is_static]
        if static_children:
            raise ConfigurationError(
                f"Cannot delete all from cache group '{self.full_name}': "
                f"statically versioned children {static_children} cannot be invalidated"
            )

        # Resolved before deleting anything; a missing key field leaves the store untouched
        own_path = self.path(key, parent_path)

        for cache in self.caches:
            cache._delete_at(own_path)

        for child in self.children:
            child._invalidate_at(own_path)

    @contextmanager
    def _store_errors(self, operation: str):
        try:
            yield
        except Exception as e:
            self.configuration.metrics.record_error(operation)
            self.logger.error(
                f"Cache error - group={self.full_name}, operation={operation}, error={str(e)}",
                exc_info=True
            )
            raise

    def _path_string(self, parent_path: str, version: int, key_value: Any) -> str:
        return f"{parent_path}/{self.name}/{self.static_tag}/{version}/{encode_key_value(key_value)}"
