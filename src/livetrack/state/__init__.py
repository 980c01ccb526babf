"""State layer.

This package is the single source of truth for how provider deltas are
merged into canonical tracks and written to the document store.
"""
