"""
Exceptions raised by the cache group layer.

Store failures are never wrapped: whatever the Django cache backend raises
reaches the caller unchanged.
"""

from django.core.exceptions import ImproperlyConfigured


class CacheGroupError(Exception):
    """Base class for all cache group errors."""


class ConfigurationError(CacheGroupError, ImproperlyConfigured):
    """
    Raised when the cache group layer is set up or used against its contract.

    Examples: configuring twice, using the store before configuring,
    invalidating a statically versioned group. Never retried.
    """


class MissingKeyError(CacheGroupError, KeyError):
    """
    Raised when a composite key does not supply a required field.

    Attributes:
        field: Name of the missing key field
        group: Name of the group that required it
    """

    def __init__(self, field: str, group: str):
        self.field = field
        self.group = group
        super().__init__(f"Missing required key '{field}' for cache group '{group}'")

    def __str__(self) -> str:
        # KeyError would repr() the message
        return self.args[0]
