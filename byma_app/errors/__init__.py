"""
Error classification system for operations processing.

This module provides the exception hierarchy used across CSV ingestion,
fee resolution and arbitrage calculation.
"""

from .data_quality import (
    DataQualityError,
    MissingColumnsError,
    MissingDataError,
    MalformedDataError,
)
from .system_failures import (
    SystemFailureError,
    ConfigurationError,
    PersistenceError,
)
from .recovery import (
    GracefulDegradationError,
    UnknownInstrumentError,
)

__all__ = [
    # Data Quality Errors
    "DataQualityError",
    "MissingColumnsError",
    "MissingDataError",
    "MalformedDataError",
    # System Failures
    "SystemFailureError",
    "ConfigurationError",
    "PersistenceError",
    # Recovery Categories
    "GracefulDegradationError",
    "UnknownInstrumentError",
]
