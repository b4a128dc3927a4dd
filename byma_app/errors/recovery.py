"""
Recovery strategy classifications for error handling.

Lookup misses degrade to safe defaults instead of aborting a run.
"""

from typing import Optional


class GracefulDegradationError(Exception):
    """Errors that allow continued operation with reduced functionality."""

    def __init__(self, message: str, degraded_functionality: Optional[str] = None,
                 fallback_strategy: Optional[str] = None, **kwargs):
        super().__init__(message)
        self.degraded_functionality = degraded_functionality
        self.fallback_strategy = fallback_strategy
        self.allows_degradation = True


class UnknownInstrumentError(GracefulDegradationError):
    """Instrument code or symbol metadata is not present in the instrument table."""

    def __init__(self, message: str, key: Optional[str] = None,
                 fallback_value: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            degraded_functionality="instrument_lookup",
            fallback_strategy=f"use default {fallback_value}" if fallback_value else None,
            **kwargs,
        )
        self.key = key
        self.fallback_value = fallback_value
