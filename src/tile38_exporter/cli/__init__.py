# src/tile38_exporter/cli/__init__.py
