# src/tile38_exporter/core/render.py
"""Prometheus text exposition for catalog entries.

Every entry renders to exactly three lines:

    # HELP <name> <description>
    # TYPE <name> <type>
    <name> <value>
"""
from __future__ import annotations

import math
from decimal import Decimal
from typing import Any, Iterable, Mapping

from tile38_exporter.core.catalog import METRICS, MetricSpec
from tile38_exporter.core.extract import extract


def format_value(value: float) -> str:
    """Shortest round-trip decimal, never in exponent form, no trailing zeros."""
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    # repr() is the shortest round-trip form; Decimal expands its exponent
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def metric_name(spec: MetricSpec, namespace: str = "") -> str:
    if namespace:
        return f"{namespace}_{spec.key}"
    return spec.key


def render(spec: MetricSpec, value: float, namespace: str = "") -> str:
    """Render one catalog entry and its value."""
    name = metric_name(spec, namespace)
    return (
        f"# HELP {name} {spec.description}\n"
        f"# TYPE {name} {spec.type}\n"
        f"{name} {format_value(value)}\n"
    )


def render_catalog(
    stats: Mapping[str, Any],
    catalog: Iterable[MetricSpec] = METRICS,
    namespace: str = "",
) -> str:
    """The full exposition document: every entry, in catalog order."""
    return "".join(render(spec, extract(stats, spec.key), namespace) for spec in catalog)


def stats_from_status(doc: Mapping[str, Any]) -> Mapping[str, Any]:
    """The ``stats`` object of a status document; anything else reads as empty."""
    stats = doc.get("stats")
    if isinstance(stats, Mapping):
        return stats
    return {}


__all__ = ["format_value", "metric_name", "render", "render_catalog", "stats_from_status"]
