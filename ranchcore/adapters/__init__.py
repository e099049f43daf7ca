"""
Adapters for RanchCore.

Concrete implementations of the port interfaces and snapshot loaders
that handle external I/O.
"""

from .snapshots import load_entities
from .storage import SQLiteEventSink

__all__ = ["SQLiteEventSink", "load_entities"]
