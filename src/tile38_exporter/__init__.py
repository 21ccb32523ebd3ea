# src/tile38_exporter/__init__.py
"""
Root package of tile38_exporter.

Metadata only, no side-effect imports and no ENV reads.
"""
from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version as _pkg_version
from typing import Final

try:
    __version__: Final[str] = _pkg_version("tile38-exporter")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
