"""Property-based tests for cache group path resolution.

Properties covered:
- Batched resolution agrees with single-key resolution
- Statically versioned groups never touch the store
- Invalidation changes paths for one parent only, never reusing a path
"""

from collections import defaultdict
from unittest.mock import MagicMock

from django.core.cache import cache
from hypothesis import assume, given, settings
from hypothesis import strategies as st
from hypothesis.extra.django import TestCase as HypothesisTestCase

from cachegroup.config import CacheConfiguration
from cachegroup.store import CacheStore


# Strategy for generating identifiers (1 to 1,000,000)
id_strategy = st.integers(min_value=1, max_value=1_000_000)

# Strategy for generating string identifiers safe to embed in a path
slug_strategy = st.text(
    alphabet="abcdefghijklmnopqrstuvwxyz0123456789",
    min_size=1,
    max_size=16,
)


class TestPathMultiConsistency(HypothesisTestCase):
    """Property: path_multi(keys)[k] == path(k) for every key k."""

    def setUp(self):
        cache.clear()
        self.config = CacheConfiguration(cache)
        self.group = self.config.register_group('parentgroup', 'parentid')
        self.childgroup = self.group.register_child_group('childgroup', 'childid')

    def tearDown(self):
        cache.clear()

    @given(
        keys=st.lists(st.tuples(id_strategy, slug_strategy), min_size=1, max_size=20),
        invalidated=st.lists(id_strategy, max_size=5),
    )
    @settings(max_examples=50)
    def test_path_multi_matches_path(self, keys, invalidated):
        """Batched and single resolution agree after arbitrary invalidations."""
        for parent_id in invalidated:
            self.childgroup.invalidate_cache_group({'parentid': parent_id})

        composite_keys = [{'parentid': p, 'childid': c} for p, c in keys]
        paths = self.childgroup.path_multi(composite_keys)

        for key in composite_keys:
            expected = self.childgroup.path(key)
            assert paths[self.childgroup.key(**key)] == expected, (
                f"path_multi mismatch for {key}:\n"
                f"  Expected: {expected}\n"
                f"  Got:      {paths[self.childgroup.key(**key)]}"
            )

    @given(keys=st.lists(st.tuples(id_strategy, id_strategy), min_size=1, max_size=20))
    @settings(max_examples=30)
    def test_path_multi_batches_version_reads(self, keys):
        """One get_many per tree level, however many keys are resolved."""
        store = MagicMock(spec=CacheStore, wraps=CacheStore(cache))
        config = CacheConfiguration(store)
        group = config.register_group('parentgroup', 'parentid')
        childgroup = group.register_child_group('childgroup', 'childid')

        childgroup.path_multi([{'parentid': p, 'childid': c} for p, c in keys])

        assert store.get_many.call_count == 2, (
            f"Expected one get_many per level, got {store.get_many.call_count}"
        )


class TestStaticVersionProperties(HypothesisTestCase):
    """Property: statically versioned paths are constant and store-free."""

    @given(parent_id=id_strategy, child_id=slug_strategy, static_version=st.integers(min_value=1, max_value=1000))
    @settings(max_examples=50)
    def test_static_path_never_touches_store(self, parent_id, child_id, static_version):
        store = MagicMock(spec=CacheStore)
        config = CacheConfiguration(store)
        group = config.register_group('parentgroup', 'parentid', static_version=static_version)
        childgroup = group.register_child_group('childgroup', 'childid', static_version=2)
        key = {'parentid': parent_id, 'childid': child_id}

        first = childgroup.path(key)
        second = childgroup.path(key)
        batched = childgroup.path_multi([key])

        assert first == second
        assert batched == {childgroup.key(parent_id, child_id): first}
        assert first == (
            f"ROOT/parentgroup/{static_version}/{static_version}/{parent_id}"
            f"/childgroup/2/2/{child_id}"
        )
        assert store.method_calls == [], f"Store was accessed: {store.method_calls}"


class TestInvalidationProperties(HypothesisTestCase):
    """Property: invalidation affects exactly one parent and never reuses paths."""

    def setUp(self):
        cache.clear()
        self.config = CacheConfiguration(cache)
        self.group = self.config.register_group('parentgroup', 'parentid')
        self.childgroup = self.group.register_child_group('childgroup', 'childid')
        self.seen_paths = defaultdict(set)

    def tearDown(self):
        cache.clear()

    @given(parent_1=id_strategy, parent_2=id_strategy, child_id=id_strategy)
    @settings(max_examples=50)
    def test_invalidation_only_affects_its_parent(self, parent_1, parent_2, child_id):
        assume(parent_1 != parent_2)
        key_1 = {'parentid': parent_1, 'childid': child_id}
        key_2 = {'parentid': parent_2, 'childid': child_id}

        before_1 = self.childgroup.path(key_1)
        before_2 = self.childgroup.path(key_2)
        self.seen_paths[parent_1].add(before_1)

        self.childgroup.invalidate_cache_group({'parentid': parent_1})

        after_1 = self.childgroup.path(key_1)
        assert after_1 not in self.seen_paths[parent_1], (
            f"Path reused after invalidation: {after_1}"
        )
        assert self.childgroup.path(key_2) == before_2
        self.seen_paths[parent_1].add(after_1)

    @given(parent_id=id_strategy, child_id=id_strategy)
    @settings(max_examples=30)
    def test_root_invalidation_changes_every_descendant_path(self, parent_id, child_id):
        key = {'parentid': parent_id, 'childid': child_id}
        before_parent = self.group.path(key)
        before_child = self.childgroup.path(key)

        self.group.invalidate_cache_group()

        assert self.group.path(key) != before_parent
        assert self.childgroup.path(key) != before_child
