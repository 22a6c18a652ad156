"""
Domain exceptions for the assessment and population statistics subsystems.

None of these are fatal: each one has a degrade path at the layer that
catches it (HTTP 400 for invalid submissions, graceful failure for the
statistics update, the local fallback estimator for an unreachable engine).
"""

from typing import Any, Dict, Optional


class InvalidSubmissionError(ValueError):
    """Raised when a response set is malformed or incomplete.

    Always raised before any state is mutated.
    """


class SessionSealedError(ValueError):
    """Raised when a response is appended to a session that is already complete."""


class StorageError(Exception):
    """Raised by a storage backend when a read or write fails.

    Attributes:
        operation_name: Storage operation that failed (e.g. "get", "compare_and_set")
        key: Storage key involved
        original_error: The underlying exception, if any
    """

    def __init__(
        self,
        operation_name: str,
        key: str,
        original_error: Optional[Exception] = None,
    ):
        self.operation_name = operation_name
        self.key = key
        self.original_error = original_error
        message = f"Storage {operation_name} failed for key '{key}'"
        if original_error is not None:
            message = f"{message}: {original_error}"
        super().__init__(message)


class TransientStorageFailure(Exception):
    """Raised when an aggregate update could not be applied within the retry budget.

    Either every compare-and-swap attempt lost a race, or the storage
    backend kept failing. Callers are expected to treat this as a warning.

    Attributes:
        message: Human-readable description
        attempts: Number of attempts made
        original_error: Last storage error seen, if any
        context: Extra context for logging
    """

    def __init__(
        self,
        message: str,
        attempts: int,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.attempts = attempts
        self.original_error = original_error
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"{self.message} after {self.attempts} attempt(s)"
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            msg = f"{msg} (context: {ctx_str})"
        if self.original_error:
            msg = f"{msg} - caused by: {str(self.original_error)}"
        return msg


class EngineUnreachableError(Exception):
    """Raised by the assessment client when the statistics API cannot be used.

    Covers transport failures, non-2xx responses and undecodable bodies.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(message)
