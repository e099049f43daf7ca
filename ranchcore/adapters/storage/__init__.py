"""
Storage adapters for RanchCore.

This module contains the SQLite-backed persistence sink for generated
occurrences.
"""

from .sqlite_events import SQLiteEventSink

__all__ = ["SQLiteEventSink"]
