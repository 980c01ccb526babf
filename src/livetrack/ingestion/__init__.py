"""Ingestion layer.

This package contains the provider capability, the generic feed provider and
the coordinator that fetches every provider concurrently.
"""

__all__: list[str] = []
