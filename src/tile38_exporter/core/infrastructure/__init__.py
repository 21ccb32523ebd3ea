# src/tile38_exporter/core/infrastructure/__init__.py
