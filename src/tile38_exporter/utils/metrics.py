"""Exporter self-metrics.

A private prometheus_client registry describing the exporter itself (scrapes,
scrape failures, latency). It is served on its own route so the Tile38 catalog
document on /metrics stays exactly the catalog.
"""
from __future__ import annotations

import os
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

_REGISTRY = CollectorRegistry()
_COUNTERS: dict[str, Counter] = {}
_HISTS: dict[str, Histogram] = {}

# global switch: metrics can be disabled entirely (e.g. in unit tests)
_DISABLED = os.environ.get("METRICS_DISABLED", "0") == "1"

_DEFAULT_BUCKETS_MS = (5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0, 2500.0)


def reset_registry() -> None:
    """Reset the registry (tests)."""
    global _REGISTRY, _COUNTERS, _HISTS
    _REGISTRY = CollectorRegistry()
    _COUNTERS = {}
    _HISTS = {}


def _sanitize_name(name: str) -> str:
    """Prometheus compatibility: dots/dashes -> underscores."""
    return name.replace(".", "_").replace("-", "_")


def _buckets() -> tuple[float, ...]:
    env = os.environ.get("METRICS_BUCKETS_MS", "")
    try:
        vals = [float(x.strip()) for x in env.split(",") if x.strip()]
    except ValueError:
        vals = []
    # prometheus takes seconds
    return tuple(v / 1000.0 for v in (vals or _DEFAULT_BUCKETS_MS))


def _ensure_counter(name: str, labelnames: tuple[str, ...]) -> Counter:
    if name not in _COUNTERS:
        _COUNTERS[name] = Counter(name, name, list(labelnames), registry=_REGISTRY)
    return _COUNTERS[name]


def _ensure_hist(name: str, labelnames: tuple[str, ...]) -> Histogram:
    if name not in _HISTS:
        _HISTS[name] = Histogram(name, name, list(labelnames), buckets=_buckets(), registry=_REGISTRY)
    return _HISTS[name]


# -------------------- public API --------------------


def inc(name: str, **labels: Any) -> None:
    """Counter +1"""
    if _DISABLED:
        return
    name = _sanitize_name(name)
    labs = {k: str(v) for k, v in labels.items()}
    counter = _ensure_counter(name, tuple(sorted(labs)))
    if labs:
        counter.labels(**labs).inc()
    else:
        counter.inc()


def observe(name: str, value_sec: float, **labels: Any) -> None:
    """Record one histogram observation (seconds)."""
    if _DISABLED:
        return
    name = _sanitize_name(name)
    labs = {k: str(v) for k, v in labels.items()}
    h = _ensure_hist(name, tuple(sorted(labs)))
    if labs:
        h.labels(**labs).observe(float(value_sec))
    else:
        h.observe(float(value_sec))


def export_text() -> str:
    """Exposition text of the self-metrics registry."""
    if _DISABLED:
        return ""
    return generate_latest(_REGISTRY).decode("utf-8")


@asynccontextmanager
async def atimer(name: str, **labels: Any) -> AsyncIterator[None]:
    """
    Async context manager measuring the wrapped block:
        async with atimer("tile38_exporter_scrape_duration_seconds"):
            await client.fetch_status()
    """
    t0 = time.perf_counter()
    try:
        yield
    finally:
        observe(name, time.perf_counter() - t0, **labels)
