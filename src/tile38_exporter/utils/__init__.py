# src/tile38_exporter/utils/__init__.py
