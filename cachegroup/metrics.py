"""
Cache metrics collection for named caches and cache groups.

This module tracks, in memory:
- Hit and miss counts per named cache
- Invalidation counts per cache group
- Operation latency, as running averages
- Error counts per operation

Each CacheConfiguration owns one CacheMetrics instance. Metrics can be read
back as dictionaries or exported in Prometheus exposition format.
"""

import logging
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class RunningAverage:
    """Count and total of observed values; constant size however many are added."""

    __slots__ = ('count', 'total')

    def __init__(self):
        self.count = 0
        self.total = 0.0

    def add(self, value: float) -> None:
        self.count += 1
        self.total += value

    @property
    def average(self) -> float:
        return self.total / self.count if self.count else 0.0


class CacheMetrics:
    """
    Collects and tracks cache performance metrics.

    Example Usage:
        >>> metrics = CacheMetrics()
        >>> metrics.record_cache_hit('user/profile')
        >>> metrics.record_cache_miss('user/profile')
        >>> with metrics.measure_latency('read', cache_name='user/profile'):
        ...     pass
        >>> metrics.get_cache_stats('user/profile')['hit_rate']
        0.5
    """

    def __init__(self):
        # Per-cache metrics
        self._cache_hits: Dict[str, int] = defaultdict(int)
        self._cache_misses: Dict[str, int] = defaultdict(int)
        self._cache_latencies: Dict[str, RunningAverage] = defaultdict(RunningAverage)

        # Per-group metrics
        self._group_invalidations: Dict[str, int] = defaultdict(int)

        # Global metrics
        self._operation_counts: Dict[str, int] = defaultdict(int)
        self._operation_latencies: Dict[str, RunningAverage] = defaultdict(RunningAverage)
        self._error_counts: Dict[str, int] = defaultdict(int)

    def record_cache_hit(self, cache_name: str, count: int = 1) -> None:
        """
        Record cache hits for a named cache.

        Args:
            cache_name: Full name of the cache (``group/.../cache``)
            count: Number of hits, for batched reads
        """
        self._cache_hits[cache_name] += count
        self._operation_counts['cache_hit'] += count

        logger.debug(f"Metric recorded - operation=cache_hit, cache={cache_name}, count={count}")

    def record_cache_miss(self, cache_name: str, count: int = 1) -> None:
        """
        Record cache misses for a named cache.

        Args:
            cache_name: Full name of the cache (``group/.../cache``)
            count: Number of misses, for batched reads
        """
        self._cache_misses[cache_name] += count
        self._operation_counts['cache_miss'] += count

        logger.debug(f"Metric recorded - operation=cache_miss, cache={cache_name}, count={count}")

    def record_invalidation(self, group_name: str) -> None:
        """Record a cache group invalidation."""
        self._group_invalidations[group_name] += 1
        self._operation_counts['invalidation'] += 1

        logger.debug(f"Metric recorded - operation=invalidation, group={group_name}")

    def record_error(self, operation: str) -> None:
        """
        Record a failed store operation.

        Args:
            operation: Operation that failed (e.g. 'read', 'invalidate')
        """
        self._error_counts[operation] += 1

        logger.debug(f"Metric recorded - operation=error, error_type={operation}")

    @contextmanager
    def measure_latency(self, operation: str, cache_name: Optional[str] = None):
        """
        Context manager to measure operation latency.

        Args:
            operation: Operation name (e.g. 'read', 'read_multi')
            cache_name: Optional cache name for per-cache metrics

        Example:
            >>> with metrics.measure_latency('read', cache_name='user/profile'):
            ...     value = store.get(path)
        """
        start_time = time.perf_counter()

        try:
            yield
        finally:
            latency_ms = (time.perf_counter() - start_time) * 1000

            self._operation_latencies[operation].add(latency_ms)

            if cache_name is not None:
                self._cache_latencies[cache_name].add(latency_ms)

            logger.debug(
                f"Metric recorded - operation=latency, type={operation}, "
                f"cache={cache_name}, latency_ms={latency_ms:.2f}"
            )

    def get_cache_stats(self, cache_name: str) -> Dict[str, float]:
        """
        Get statistics for a single named cache.

        Returns:
            Dictionary with:
            - hit_rate: Hit rate (0.0 to 1.0)
            - total_operations: Hits plus misses
            - hits, misses: Raw counts
            - avg_latency_ms: Average latency of measured operations
        """
        hits = self._cache_hits.get(cache_name, 0)
        misses = self._cache_misses.get(cache_name, 0)
        total = hits + misses

        latency = self._cache_latencies.get(cache_name)

        return {
            'hit_rate': hits / total if total > 0 else 0.0,
            'total_operations': total,
            'hits': hits,
            'misses': misses,
            'avg_latency_ms': latency.average if latency is not None else 0.0,
        }

    def get_global_stats(self) -> Dict[str, Any]:
        """
        Get statistics across all caches and groups.

        Returns:
            Dictionary with operation_counts, error_counts, avg_latencies,
            invalidations (per group) and total_caches.
        """
        avg_latencies = {
            operation: latency.average
            for operation, latency in self._operation_latencies.items()
        }

        caches = set(self._cache_hits) | set(self._cache_misses)

        return {
            'operation_counts': dict(self._operation_counts),
            'error_counts': dict(self._error_counts),
            'avg_latencies': avg_latencies,
            'invalidations': dict(self._group_invalidations),
            'total_caches': len(caches),
        }

    def reset(self) -> None:
        """Reset all metrics to zero."""
        self._cache_hits.clear()
        self._cache_misses.clear()
        self._cache_latencies.clear()
        self._group_invalidations.clear()
        self._operation_counts.clear()
        self._operation_latencies.clear()
        self._error_counts.clear()

        logger.info("Cache metrics reset")

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus exposition format."""
        lines = []

        lines.append("# HELP cachegroup_operations_total Total number of cache operations")
        lines.append("# TYPE cachegroup_operations_total counter")
        for operation, count in self._operation_counts.items():
            lines.append(f'cachegroup_operations_total{{operation="{operation}"}} {count}')

        lines.append("# HELP cachegroup_errors_total Total number of failed store operations")
        lines.append("# TYPE cachegroup_errors_total counter")
        for operation, count in self._error_counts.items():
            lines.append(f'cachegroup_errors_total{{operation="{operation}"}} {count}')

        lines.append("# HELP cachegroup_invalidations_total Invalidations per cache group")
        lines.append("# TYPE cachegroup_invalidations_total counter")
        for group_name, count in self._group_invalidations.items():
            lines.append(f'cachegroup_invalidations_total{{group="{group_name}"}} {count}')

        lines.append("# HELP cachegroup_operation_latency_ms Average operation latency in milliseconds")
        lines.append("# TYPE cachegroup_operation_latency_ms gauge")
        for operation, latency in self._operation_latencies.items():
            if latency.count:
                lines.append(
                    f'cachegroup_operation_latency_ms{{operation="{operation}"}} {latency.average:.2f}'
                )

        lines.append("# HELP cachegroup_hit_rate Hit rate per named cache")
        lines.append("# TYPE cachegroup_hit_rate gauge")
        for cache_name in sorted(set(self._cache_hits) | set(self._cache_misses)):
            stats = self.get_cache_stats(cache_name)
            lines.append(f'cachegroup_hit_rate{{cache="{cache_name}"}} {stats["hit_rate"]:.4f}')

        return '\n'.join(lines) + '\n'
