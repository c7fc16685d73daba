"""Tests for knotsync.core.errors module."""

import pytest

from knotsync.core.errors import (
    BatchTooLargeError,
    ConstraintError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    KnotSyncError,
    MissingConfigError,
    NotAuthenticatedError,
    NotFoundError,
    PartialCascadeFailure,
    SchemaError,
    StoreError,
    StoreReadFailure,
    StoreWriteFailure,
    ValidationError,
    is_retryable,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_empty_context_to_dict(self):
        assert ErrorContext().to_dict() == {}

    def test_to_dict_skips_none_and_merges_metadata(self):
        ctx = ErrorContext(entity_kind="spot", entity_id="s1", metadata={"batch": 2})
        assert ctx.to_dict() == {"entity_kind": "spot", "entity_id": "s1", "batch": 2}


class TestKnotSyncError:
    """Test the base error."""

    def test_defaults(self):
        error = KnotSyncError("boom")
        assert error.message == "boom"
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False
        assert str(error) == "boom"

    def test_with_context_sets_known_fields_and_metadata(self):
        error = KnotSyncError("boom").with_context(entity_id="s1", scope="apps/a/public/spots", extra="x")
        assert error.context.entity_id == "s1"
        assert error.context.scope == "apps/a/public/spots"
        assert error.context.metadata == {"extra": "x"}

    def test_cause_is_chained(self):
        cause = ConnectionError("down")
        error = StoreWriteFailure("rejected", cause=cause)
        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "down"

    def test_to_dict(self):
        error = NotFoundError.for_entity("knot", "k1")
        data = error.to_dict()
        assert data["error_type"] == "NotFoundError"
        assert data["category"] == "NOT_FOUND"
        assert data["context"] == {"entity_kind": "knot", "entity_id": "k1"}


class TestTaxonomy:
    """Categories and retry semantics of each branch."""

    def test_not_authenticated(self):
        error = NotAuthenticatedError()
        assert error.category == ErrorCategory.AUTH
        assert "session" in error.message

    @pytest.mark.parametrize("cls", [ValidationError, SchemaError, ConstraintError])
    def test_validation_family_not_retryable(self, cls):
        error = cls("bad", field="tag", value="")
        assert error.category == ErrorCategory.VALIDATION
        assert error.retryable is False
        assert error.to_dict()["field"] == "tag"

    def test_store_failures_retryable(self):
        assert StoreReadFailure("x").retryable is True
        assert StoreWriteFailure("x").retryable is True
        assert isinstance(StoreWriteFailure("x"), StoreError)

    def test_batch_too_large_is_write_failure_but_not_retryable(self):
        error = BatchTooLargeError(501, 500)
        assert isinstance(error, StoreWriteFailure)
        assert error.retryable is False
        assert "501" in error.message

    def test_partial_cascade_failure_counts(self):
        error = PartialCascadeFailure("half done", committed_batches=1, total_batches=3)
        data = error.to_dict()
        assert data["committed_batches"] == 1
        assert data["total_batches"] == 3
        assert error.category == ErrorCategory.STORE

    def test_config_errors(self):
        assert MissingConfigError("KEY").key == "KEY"
        error = InvalidConfigError("KEY", 7)
        assert error.category == ErrorCategory.CONFIG
        assert "7" in error.message


class TestIsRetryable:
    def test_knotsync_errors_use_flag(self):
        assert is_retryable(StoreWriteFailure("x")) is True
        assert is_retryable(ValidationError("x")) is False

    def test_builtin_network_errors(self):
        assert is_retryable(ConnectionError()) is True
        assert is_retryable(TimeoutError()) is True
        assert is_retryable(ValueError()) is False
