"""Dependency-ordered runner for startup items, with launch wire-format helpers."""

__version__ = "0.1.0"
__all__ = ["items", "keys", "loader", "starter", "wire"]