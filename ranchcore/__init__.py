"""
RanchCore: spatio-temporal scheduling and proximity engine.

Pure computations over caller-supplied snapshots of tracked entities
and scheduled events, plus thin adapters for persistence and snapshot
loading.
"""

__version__ = "0.1.0"
