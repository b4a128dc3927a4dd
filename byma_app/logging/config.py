"""
Centralized logging configuration for the BYMA operations processor.

This module provides standardized logging configuration using structlog
for all components. All logging throughout the system should use this
configuration to ensure consistent formatting and structured logging.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import FilteringBoundLogger


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None
) -> None:
    """
    Configure structlog for the entire application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: If True, output JSON format; otherwise human-readable
        include_timestamp: Include timestamp in log output
        include_caller: Include caller information (filename, line number)
        extra_processors: Additional structlog processors to include
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        level=log_level,
        stream=sys.stdout,
        format="%(message)s"  # structlog will handle formatting
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                        structlog.processors.CallsiteParameter.LINENO]
        ))

    if extra_processors:
        processors.extend(extra_processors)

    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def get_fee_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger for fee resolution and instrument lookups.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger bound to the fees subsystem
    """
    return get_logger(name).bind(subsystem="fees")


def get_pipeline_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger for CSV processing and arbitrage pipeline runs.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger bound to the pipeline subsystem
    """
    return get_logger(name).bind(subsystem="pipeline")


def log_exclusion_summary(
    logger: FilteringBoundLogger,
    file_name: str,
    valid_rows: int,
    exclusions: dict[str, int],
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log the outcome of row validation with standardized format.

    Args:
        logger: Structlog logger instance
        file_name: Name of the processed file
        valid_rows: Number of rows that passed validation
        exclusions: Exclusion counters by reason
        context: Additional context data
    """
    non_zero = {reason: count for reason, count in exclusions.items() if count}
    bound_logger = logger.bind(
        file_name=file_name,
        valid_rows=valid_rows,
        excluded_rows=sum(non_zero.values()),
        exclusions=non_zero,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("Row filtering complete")


def log_unknown_cfi_code(logger: FilteringBoundLogger, cfi_code: str, fallback: str) -> None:
    """
    Log the first encounter of an unrecognized instrument code.

    Args:
        logger: Structlog logger instance
        cfi_code: Unrecognized CFI code
        fallback: Category used instead
    """
    logger.warning("Unknown CFI code, using fallback category",
                   cfi_code=cfi_code, fallback=fallback)
