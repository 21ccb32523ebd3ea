# src/tile38_exporter/core/__init__.py
