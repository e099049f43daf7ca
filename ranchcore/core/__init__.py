"""
Core domain models and typed errors for RanchCore.

The engine modules (proximity, recurrence, scheduling, lifecycle,
aggregation) are imported directly from their submodules.
"""

from .errors import (
    EngineValidationError,
    InvalidCoordinate,
    InvalidEventTransition,
    InvalidGeofence,
    InvalidQuery,
    InvalidRecurrenceRule,
    RanchEngineError,
)
from .models import Coordinate, Geofence, LocatedEntity, RecurrenceRule, ScheduledEvent

__all__ = [
    "Coordinate", "Geofence", "LocatedEntity", "RecurrenceRule", "ScheduledEvent",
    "RanchEngineError", "EngineValidationError", "InvalidCoordinate", "InvalidGeofence",
    "InvalidRecurrenceRule", "InvalidQuery", "InvalidEventTransition",
]
