"""Tiered dataroom group permissions: tree building, propagation and batching."""

__version__ = "0.1.0"
