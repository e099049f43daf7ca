"""
Snapshot loaders for RanchCore batch jobs.
"""

from .loader import load_entities

__all__ = ["load_entities"]
