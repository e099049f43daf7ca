"""
Port interfaces for RanchCore.

This module defines the Protocols that describe the contracts between
the engine and its persistence collaborator.
"""

from .sink import AsyncOccurrenceSinkPort, OccurrenceSinkPort

__all__ = ["OccurrenceSinkPort", "AsyncOccurrenceSinkPort"]
