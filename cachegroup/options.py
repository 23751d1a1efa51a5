"""Helpers for merging cache options down the group tree."""

from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

# Option names understood by django.core.cache backends
BACKEND_OPTIONS = ('timeout', 'version')

EMPTY_OPTIONS: Mapping[str, Any] = MappingProxyType({})


def merge_options(
    parent_options: Optional[Mapping[str, Any]],
    options: Optional[Mapping[str, Any]],
) -> Mapping[str, Any]:
    """
    Shallow-merge two option mappings into a read-only mapping.

    Keys from ``options`` win over ``parent_options``.

    Example:
        >>> dict(merge_options({'timeout': 60, 'tag': 'a'}, {'timeout': 5}))
        {'timeout': 5, 'tag': 'a'}
    """
    if not parent_options:
        merged = dict(options or {})
    elif not options:
        merged = dict(parent_options)
    else:
        merged = {**parent_options, **options}
    return MappingProxyType(merged)


def backend_kwargs(options: Mapping[str, Any]) -> Dict[str, Any]:
    """Select the options that can be passed on to a Django cache backend."""
    return {name: options[name] for name in BACKEND_OPTIONS if name in options}
