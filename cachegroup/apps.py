"""
Django app configuration for cache groups.

Binds the process-wide cache group configuration to a Django cache and logger
during Django startup.
"""

import logging

from django.apps import AppConfig
from django.utils.module_loading import autodiscover_modules

logger = logging.getLogger(__name__)


class CacheGroupConfig(AppConfig):
    """
    Configuration for the cache group Django app.

    On startup the ``cache_groups`` module of every installed app is imported,
    so groups declared there are registered before any request or management
    command runs. The process-wide configuration is then bound to the cache
    named by CACHEGROUP_CACHE_ALIAS, unless the host already configured it
    itself or disabled this with CACHEGROUP_AUTOCONFIGURE = False.
    """

    name = 'cachegroup'
    verbose_name = 'Cache Groups'

    def ready(self):
        # Import here to avoid AppRegistryNotReady errors
        from django.core.cache import caches

        from cachegroup import conf
        from cachegroup.config import configuration

        autodiscover_modules('cache_groups')

        if not conf.autoconfigure_enabled():
            logger.debug("Cache group autoconfiguration disabled, skipping")
            return

        if configuration.is_configured:
            logger.debug("Cache groups already configured, skipping")
            return

        configuration.configure(
            caches[conf.get_cache_alias()],
            logger=logging.getLogger(conf.get_logger_name()),
        )
