# src/tile38_exporter/app/__init__.py
