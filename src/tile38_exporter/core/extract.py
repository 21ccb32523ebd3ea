# src/tile38_exporter/core/extract.py
"""Turns a raw ``stats`` value into a sample value.

Policy:
  - missing key          -> NaN
  - true / false         -> 1.0 / 0.0
  - JSON number          -> the number, unchanged
  - anything else        -> NaN

NaN means "unavailable" and is never raised as an error, so one odd field
never aborts the rest of the document.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class StatKind(Enum):
    MISSING = "missing"
    BOOL = "bool"
    NUMBER = "number"
    OTHER = "other"


@dataclass(frozen=True)
class StatValue:
    kind: StatKind
    raw: Any = None


def classify(stats: Mapping[str, Any], key: str) -> StatValue:
    """Tag the value stored under ``key``."""
    if key not in stats:
        return StatValue(StatKind.MISSING)
    raw = stats[key]
    # bool first: bool is a subclass of int
    if isinstance(raw, bool):
        return StatValue(StatKind.BOOL, raw)
    if isinstance(raw, (int, float)):
        return StatValue(StatKind.NUMBER, raw)
    return StatValue(StatKind.OTHER, raw)


def to_float(value: StatValue) -> float:
    if value.kind is StatKind.BOOL:
        return 1.0 if value.raw else 0.0
    if value.kind is StatKind.NUMBER:
        try:
            return float(value.raw)
        except OverflowError:
            # integers beyond double range
            return math.inf if value.raw > 0 else -math.inf
    return math.nan


def extract(stats: Mapping[str, Any], key: str) -> float:
    """Sample value for ``key``; total, never raises."""
    return to_float(classify(stats, key))


__all__ = ["StatKind", "StatValue", "classify", "extract", "to_float"]
