"""Optimized Versions - transcoding job server for media libraries."""

__version__ = "0.1.0"
