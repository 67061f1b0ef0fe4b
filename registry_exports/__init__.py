"""Asynchronous CSV export jobs for the gift registry dashboards."""

__version__ = "0.1.0"
