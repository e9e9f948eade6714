"""
Errors raised by the NamespaceLabel reconciler.
"""

from typing import NamedTuple, Optional


class ObjectKey(NamedTuple):
    """Identity of one NamespaceLabel object."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class ReconcileError(Exception):
    """A fetch or persist call failed; the pass should be retried from scratch."""

    retryable = True

    def __init__(self, key: ObjectKey, operation: str, cause: Optional[BaseException] = None):
        self.key = key
        self.operation = operation
        self.cause = cause
        message = f"{operation} failed for namespacelabel {key}"
        if cause is not None:
            message = f"{message}: {describe_cause(cause)}"
        super().__init__(message)


class NamespaceLabelValidationError(ValueError):
    """A NamespaceLabel object failed admission validation."""


def describe_cause(cause: BaseException) -> str:
    status = getattr(cause, "status", None)
    reason = getattr(cause, "reason", None)
    if status is not None:
        return f"({status}) {reason}"
    return str(cause) or type(cause).__name__
