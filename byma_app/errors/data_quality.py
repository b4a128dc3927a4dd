"""
Data quality error classifications for CSV ingestion.

Row-level problems are never raised: they are counted as exclusion
reasons by the validator. These exceptions cover input problems that make
a whole file unusable.
"""

from typing import Optional, Dict, Any


class DataQualityError(Exception):
    """Base class for input data issues."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class MissingColumnsError(DataQualityError):
    """Required CSV columns are absent from every row; processing aborts."""

    def __init__(self, message: str, missing_columns: Optional[list] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.missing_columns = missing_columns or []
        self.recoverable = False


class MissingDataError(DataQualityError):
    """Required input is completely missing (no file, no rows, no configuration)."""

    def __init__(self, message: str, data_type: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.data_type = data_type


class MalformedDataError(DataQualityError):
    """Data exists but is in incorrect format."""

    def __init__(self, message: str, raw_data: Optional[str] = None,
                 expected_format: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw_data = raw_data
        self.expected_format = expected_format
