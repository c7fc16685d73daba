"""knotsync core -- errors, results, logging, settings, ids.

Architecture::

    errors.py       Structured error hierarchy (KnotSyncError, StoreError, ...)
    result.py       Result[T] envelope (Ok / Err / try_result_async)
    logging.py      Structured logging (structlog)
    settings.py     KnotSyncSettings (pydantic-settings) + get_settings()
    timestamps.py   Time-sortable ids + UTC helpers (stdlib-only)
"""

from knotsync.core.errors import (
    BatchTooLargeError,
    ConfigError,
    ConstraintError,
    ErrorCategory,
    ErrorContext,
    KnotSyncError,
    NotAuthenticatedError,
    NotFoundError,
    PartialCascadeFailure,
    SchemaError,
    StoreError,
    StoreReadFailure,
    StoreWriteFailure,
    ValidationError,
)
from knotsync.core.result import Err, Ok, Result

__all__ = [
    "BatchTooLargeError",
    "ConfigError",
    "ConstraintError",
    "ErrorCategory",
    "ErrorContext",
    "KnotSyncError",
    "NotAuthenticatedError",
    "NotFoundError",
    "PartialCascadeFailure",
    "SchemaError",
    "StoreError",
    "StoreReadFailure",
    "StoreWriteFailure",
    "ValidationError",
    "Err",
    "Ok",
    "Result",
]
