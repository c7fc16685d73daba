"""
Structured error types for knotsync.

Provides a typed hierarchy of errors with metadata for retry decisions,
error categorization, and repair of partially applied cascades through
error chaining.

Every mutating Sync Engine operation either succeeds completely or surfaces
exactly one of these errors to its caller. Store adapters translate driver
exceptions (Firestore ``GoogleAPICallError``, batch cap violations) into the
``StoreError`` branch so core logic never sees backend-specific exceptions.

Manifesto:
    - **Typed Error Hierarchy:** One class per failure the caller must tell apart
    - **Explicit Retry Semantics:** Store failures are retryable, input errors are not
    - **Rich Context:** Errors carry entity id, kind, and scope for repair
    - **Error Chaining:** The driver exception is kept as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                       KnotSyncError                           │
        │  (category, retryable, context, cause)                        │
        ├──────────────────────────────────────────────────────────────┤
        │                                                               │
        │  NotAuthenticatedError   NotFoundError      ValidationError   │
        │  (AUTH)                  (NOT_FOUND)        (VALIDATION)      │
        │                                                  │            │
        │                                        SchemaError            │
        │                                        ConstraintError        │
        │                                                               │
        │  StoreError              ConfigError                          │
        │  (STORE)                 (CONFIG)                             │
        │     │                        │                                │
        │  StoreReadFailure        MissingConfigError                   │
        │  StoreWriteFailure       InvalidConfigError                   │
        │  BatchTooLargeError                                           │
        │  PartialCascadeFailure                                        │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> error = StoreWriteFailure("batch rejected")
    >>> error.retryable
    True
    >>> error = NotFoundError.for_entity("spot", "s1")
    >>> error.context.entity_id
    's1'

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context, knotsync
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    AUTH = "AUTH"                 # No acting session
    NOT_FOUND = "NOT_FOUND"       # Referenced entity missing
    VALIDATION = "VALIDATION"     # Bad input, undecodable document
    STORE = "STORE"               # Reads, batches, cascades
    CONFIG = "CONFIG"             # Missing or invalid settings
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Typed fields cover the identifiers needed to locate the affected
    documents; anything else goes into ``metadata``.

    Attributes:
        operation: Sync Engine operation name (e.g. ``delete_spot``)
        entity_kind: ``spot``, ``knot``, ``group``, ``user``, ...
        entity_id: Document id of the entity
        scope: Collection path the failing write or read targeted
        user_id: Acting user id
        metadata: Additional key-value pairs
    """

    operation: str | None = None
    entity_kind: str | None = None
    entity_id: str | None = None
    scope: str | None = None
    user_id: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["operation", "entity_kind", "entity_id", "scope", "user_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class KnotSyncError(Exception):
    """
    Base exception for all knotsync errors.

    Subclasses set ``default_category`` and ``default_retryable`` so callers
    can decide on retries without inspecting messages.

    Examples:
        >>> error = KnotSyncError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(entity_kind="spot", entity_id="s1").context.entity_id
        's1'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> KnotSyncError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StoreWriteFailure("rejected").with_context(
                entity_kind="spot",
                entity_id=spot_id,
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# SESSION / LOOKUP ERRORS
# =============================================================================


class NotAuthenticatedError(KnotSyncError):
    """No acting session, or the session was invalidated at sign-out."""

    default_category = ErrorCategory.AUTH

    def __init__(self, message: str = "No authenticated acting session", **kwargs: Any):
        super().__init__(message, **kwargs)


class NotFoundError(KnotSyncError):
    """A referenced entity does not exist at any reachable scope."""

    default_category = ErrorCategory.NOT_FOUND

    @classmethod
    def for_entity(cls, kind: str, entity_id: str) -> NotFoundError:
        error = cls(f"{kind} not found: {entity_id}")
        error.with_context(entity_kind=kind, entity_id=entity_id)
        return error


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(KnotSyncError):
    """
    Input or document validation error.

    Never retryable - the data must be fixed.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class SchemaError(ValidationError):
    """A stored document does not decode into its entity type."""

    pass


class ConstraintError(ValidationError):
    """A domain constraint would be violated (e.g. removing a group creator)."""

    pass


# =============================================================================
# STORE ERRORS
# =============================================================================


class StoreError(KnotSyncError):
    """Document store error."""

    default_category = ErrorCategory.STORE


class StoreReadFailure(StoreError):
    """A read or query failed (network, permissions, backend outage)."""

    default_retryable = True


class StoreWriteFailure(StoreError):
    """
    An atomic batch was rejected.

    Nothing from the batch was applied, so the operation is safe to retry.
    """

    default_retryable = True


class BatchTooLargeError(StoreWriteFailure):
    """A batch exceeds the store's per-batch operation cap."""

    default_retryable = False

    def __init__(self, size: int, limit: int, message: str | None = None, **kwargs: Any):
        self.size = size
        self.limit = limit
        super().__init__(message or f"Batch of {size} writes exceeds cap of {limit}", **kwargs)


class PartialCascadeFailure(StoreError):
    """
    A later batch of a multi-batch cascade failed after earlier ones committed.

    Earlier batches only stripped references, so the remaining state is
    dangling-safe. The context identifies the entity and failing scope so a
    repair pass (see ``knotsync.sync.audit``) can finish the job.
    """

    default_retryable = True

    def __init__(
        self,
        message: str,
        *,
        committed_batches: int,
        total_batches: int,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.committed_batches = committed_batches
        self.total_batches = total_batches

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["committed_batches"] = self.committed_batches
        result["total_batches"] = self.total_batches
        return result


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(KnotSyncError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG


class MissingConfigError(ConfigError):
    """Required configuration is missing."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}")


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, KnotSyncError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "KnotSyncError",
    "NotAuthenticatedError",
    "NotFoundError",
    "ValidationError",
    "SchemaError",
    "ConstraintError",
    "StoreError",
    "StoreReadFailure",
    "StoreWriteFailure",
    "BatchTooLargeError",
    "PartialCascadeFailure",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "is_retryable",
]
