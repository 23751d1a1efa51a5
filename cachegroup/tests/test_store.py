"""
Unit tests for the CacheStore adapter over Django's cache framework.
"""

from unittest.mock import MagicMock, patch

from django.core.cache import cache
from django.core.cache.backends.base import BaseCache
from django.test import TestCase

from cachegroup.store import CacheStore


class CacheStoreTests(TestCase):
    """CacheStore against the LocMem test cache."""

    def setUp(self):
        cache.clear()
        self.store = CacheStore(cache)

    def tearDown(self):
        cache.clear()

    def test_get_set_delete(self):
        self.assertIsNone(self.store.get('a'))
        self.store.set('a', {'x': 1}, timeout=30)
        self.assertEqual(self.store.get('a'), {'x': 1})
        self.assertTrue(self.store.delete('a'))
        self.assertFalse(self.store.delete('a'))

    def test_version_option_separates_values(self):
        self.store.set('a', 'v1', version=1)
        self.store.set('a', 'v2', version=2)
        self.assertEqual(self.store.get('a', version=1), 'v1')
        self.assertEqual(self.store.get('a', version=2), 'v2')

    def test_fetch_or_default_initializes(self):
        self.assertEqual(self.store.fetch_or_default('counter', 1, timeout=None), 1)
        self.assertEqual(cache.get('counter'), 1)

    def test_fetch_or_default_returns_existing(self):
        cache.set('counter', 5)
        self.assertEqual(self.store.fetch_or_default('counter', 1), 5)

    def test_fetch_or_default_calls_producer_only_on_miss(self):
        producer = MagicMock(return_value='made')
        self.assertEqual(self.store.fetch_or_default('k', producer), 'made')
        self.assertEqual(self.store.fetch_or_default('k', producer), 'made')
        producer.assert_called_once_with()

    def test_increment_missing_counter(self):
        self.assertEqual(self.store.increment('counter'), 2)
        self.assertEqual(self.store.increment('counter'), 3)

    def test_increment_existing_counter(self):
        cache.set('counter', 7)
        self.assertEqual(self.store.increment('counter'), 8)

    def test_get_many_omits_missing(self):
        cache.set('a', 1)
        self.assertEqual(self.store.get_many(['a', 'b']), {'a': 1})

    def test_get_many_empty(self):
        self.assertEqual(self.store.get_many([]), {})

    def test_set_many(self):
        self.assertEqual(self.store.set_many({'a': 1, 'b': 2}), [])
        self.assertEqual(cache.get_many(['a', 'b']), {'a': 1, 'b': 2})


class CacheStoreErrorTests(TestCase):
    """Backend failures propagate unchanged and are left to callers to log."""

    def setUp(self):
        self.backend = MagicMock(spec=BaseCache)
        self.store = CacheStore(self.backend)

    @patch('cachegroup.store.logger')
    def test_get_error_raised(self, mock_logger):
        self.backend.get.side_effect = ConnectionError("Redis connection failed")

        with self.assertRaises(ConnectionError):
            self.store.get('a')

        mock_logger.error.assert_not_called()

    @patch('cachegroup.store.logger')
    def test_get_many_error_raised(self, mock_logger):
        self.backend.get_many.side_effect = TimeoutError("timed out")

        with self.assertRaises(TimeoutError):
            self.store.get_many(['a', 'b'])

        mock_logger.error.assert_not_called()

    def test_get_passes_default(self):
        marker = object()
        self.backend.get.return_value = marker

        self.assertIs(self.store.get('a', default=marker, version=2), marker)
        self.backend.get.assert_called_once_with('a', marker, version=2)

    @patch('cachegroup.store.logger')
    def test_increment_fallback_when_counter_vanishes(self, mock_logger):
        self.backend.add.return_value = False
        self.backend.incr.side_effect = ValueError("Key 'counter' not found")

        self.assertEqual(self.store.increment('counter', default=1), 2)

        self.backend.set.assert_called_once_with('counter', 2, timeout=None)
        mock_logger.warning.assert_called_once()
