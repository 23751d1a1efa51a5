"""
Hierarchical cache namespaces with O(1) invalidation through version counters.

Groups form a tree, each consuming one field of a composite key; named caches
hang off groups and store values under paths that embed the version of every
ancestor group. Bumping a group's version drops everything below it.

    >>> import cachegroup
    >>> org = cachegroup.register_group('org', 'org_id')
    >>> user = org.register_child_group('user', 'user_id')
    >>> profiles = user.register_cache('profile')
    >>> profiles.write({'org_id': 1, 'user_id': 2}, {'name': 'Ann'})
    >>> org.invalidate_cache_group()
"""

from cachegroup.caches import Cache
from cachegroup.config import CacheConfiguration, configuration
from cachegroup.exceptions import CacheGroupError, ConfigurationError, MissingKeyError
from cachegroup.groups import ROOT_PATH, CacheGroup
from cachegroup.store import CacheStore

configure = configuration.configure
register_group = configuration.register_group

__all__ = [
    'Cache',
    'CacheConfiguration',
    'CacheGroup',
    'CacheGroupError',
    'CacheStore',
    'ConfigurationError',
    'MissingKeyError',
    'ROOT_PATH',
    'configuration',
    'configure',
    'register_group',
]
