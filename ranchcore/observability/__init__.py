"""
Observability for RanchCore.

Structured logging (loguru) and Prometheus metrics shared by the
engine modules and adapters.
"""

from .logging_setup import get_logger, setup_logging, setup_logging_dev, setup_logging_json, with_context

__all__ = ["get_logger", "setup_logging", "setup_logging_dev", "setup_logging_json", "with_context"]
