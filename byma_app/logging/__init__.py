"""
Logging configuration and utilities for the BYMA operations processor.
"""
from .config import configure_logging, get_fee_logger, get_logger, get_pipeline_logger

__all__ = ["configure_logging", "get_logger", "get_fee_logger", "get_pipeline_logger"]
