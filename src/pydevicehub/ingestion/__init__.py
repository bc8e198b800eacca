"""Ingestion layer.

This package contains adapters that turn raw producer submissions and
uploads into normalized store calls.
"""

__all__: list[str] = []
