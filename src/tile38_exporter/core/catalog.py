# src/tile38_exporter/core/catalog.py
"""Catalog of every statistic published by the exporter.

Each entry maps a key of the ``stats`` object returned by ``SERVER ext`` to a
Prometheus metric type and help text. Order here is the order of the
exposition document.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Literal

MetricType = Literal["gauge", "counter"]

GAUGE: Final = "gauge"
COUNTER: Final = "counter"


@dataclass(frozen=True)
class MetricSpec:
    """One catalog entry: metric type, stats key and help text."""

    type: MetricType
    key: str
    description: str

    def __post_init__(self) -> None:
        if self.type not in (GAUGE, COUNTER):
            raise ValueError(f"unsupported metric type: {self.type!r}")
        if not self.key:
            raise ValueError("metric key must not be empty")


METRICS: Final[tuple[MetricSpec, ...]] = (
    # Go runtime / memory
    MetricSpec(GAUGE, "go_goroutines", "Number of goroutines that currently exist"),
    MetricSpec(GAUGE, "go_threads", "Number of OS threads created"),
    MetricSpec(GAUGE, "alloc_bytes", "Number of bytes allocated and still in use"),
    MetricSpec(COUNTER, "alloc_bytes_total", "Total number of bytes allocated, even if freed"),
    MetricSpec(GAUGE, "sys_cpus", "Number of CPUS available on the system"),
    MetricSpec(GAUGE, "sys_bytes", "Number of bytes obtained from system"),
    MetricSpec(COUNTER, "lookups_total", "Total number of pointer lookups"),
    MetricSpec(COUNTER, "mallocs_total", "Total number of mallocs"),
    MetricSpec(COUNTER, "frees_total", "Total number of frees"),
    MetricSpec(GAUGE, "heap_alloc_bytes", "Number of heap bytes allocated and still in use"),
    MetricSpec(GAUGE, "heap_sys_bytes", "Number of heap bytes obtained from system"),
    MetricSpec(GAUGE, "heap_idle_bytes", "Number of heap bytes waiting to be used"),
    MetricSpec(GAUGE, "heap_inuse_bytes", "Number of heap bytes that are in use"),
    MetricSpec(GAUGE, "heap_released_bytes", "Number of heap bytes released to OS"),
    MetricSpec(GAUGE, "heap_objects", "Number of allocated objects"),
    MetricSpec(GAUGE, "stack_inuse_bytes", "Number of bytes in use by the stack allocator"),
    MetricSpec(GAUGE, "stack_sys_bytes", "Number of bytes obtained from system for stack allocator"),
    MetricSpec(GAUGE, "mspan_inuse_bytes", "Number of bytes in use by mspan structures"),
    MetricSpec(GAUGE, "mspan_sys_bytes", "Number of bytes used for mspan structures obtained from system"),
    MetricSpec(GAUGE, "mcache_inuse_bytes", "Number of bytes in use by mcache structures"),
    MetricSpec(GAUGE, "mcache_sys_bytes", "Number of bytes used for mcache structures obtained from system"),
    MetricSpec(GAUGE, "buck_hash_sys_bytes", "Number of bytes used by the profiling bucket hash table"),
    MetricSpec(GAUGE, "gc_sys_bytes", "Number of bytes used for garbage collection system metadata"),
    MetricSpec(GAUGE, "other_sys_bytes", "Number of bytes used for other system allocations"),
    MetricSpec(GAUGE, "next_gc_bytes", "Number of heap bytes when next garbage collection will take place"),
    MetricSpec(GAUGE, "last_gc_time_seconds", "Number of seconds since 1970 of last garbage collection"),
    MetricSpec(
        GAUGE,
        "gc_cpu_fraction",
        "The fraction of this program's available CPU time used by the GC since the program started",
    ),
    # Tile38 server
    MetricSpec(GAUGE, "tile38_pid", "The process ID of the server"),
    MetricSpec(GAUGE, "tile38_max_heap_size", "Maximum heap size allowed"),
    MetricSpec(GAUGE, "tile38_read_only", "Whether or not the server is read-only"),
    MetricSpec(GAUGE, "tile38_pointer_size", "Size of pointer"),
    MetricSpec(COUNTER, "tile38_uptime_in_seconds", "Uptime of the Tile38 server in seconds"),
    MetricSpec(GAUGE, "tile38_connected_clients", "Number of currently connected Tile38 clients"),
    MetricSpec(GAUGE, "tile38_cluster_enabled", "Whether or not a cluster is enabled"),
    MetricSpec(GAUGE, "tile38_aof_enabled", "Whether or not the Tile38 AOF is enabled"),
    MetricSpec(GAUGE, "tile38_aof_rewrite_in_progress", "Whether or not an AOF shrink is currently in progress"),
    MetricSpec(GAUGE, "tile38_aof_last_rewrite_time_sec", "Length of time the last AOF shrink took"),
    MetricSpec(GAUGE, "tile38_aof_current_rewrite_time_sec", "Duration of the on-going AOF rewrite operation if any"),
    MetricSpec(GAUGE, "tile38_aof_size", "Total size of the AOF in bytes"),
    MetricSpec(GAUGE, "tile38_http_transport", "Whether or no the HTTP transport is being served"),
    MetricSpec(COUNTER, "tile38_total_connections_received", "Number of connections accepted by the server"),
    MetricSpec(COUNTER, "tile38_total_commands_processed", "Number of commands processed by the server"),
    MetricSpec(COUNTER, "tile38_expired_keys", "Number of key expiration events"),
    MetricSpec(GAUGE, "tile38_connected_slaves", "Number of connected slaves"),
    MetricSpec(GAUGE, "tile38_num_points", "Number of points in the database"),
    MetricSpec(GAUGE, "tile38_num_objects", "Number of objects in the database"),
    MetricSpec(GAUGE, "tile38_num_strings", "Number of string in the database"),
    MetricSpec(GAUGE, "tile38_num_collections", "Number of collections in the database"),
    MetricSpec(GAUGE, "tile38_num_hooks", "Number of hooks in the database"),
    MetricSpec(GAUGE, "tile38_avg_point_size", "Average point size in bytes"),
    MetricSpec(GAUGE, "tile38_in_memory_size", "Total in memory size of all collections"),
)


def catalog_keys(catalog: tuple[MetricSpec, ...] = METRICS) -> list[str]:
    """Stats keys in catalog order."""
    return [spec.key for spec in catalog]


__all__ = ["COUNTER", "GAUGE", "METRICS", "MetricSpec", "MetricType", "catalog_keys"]
