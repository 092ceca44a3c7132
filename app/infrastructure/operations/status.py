"""Outcome categories for adapter, store and service calls."""

from enum import Enum


class OperationStatus(Enum):
    """How a call ended, from the caller's point of view.

    Send workers retry only TRANSIENT_ERROR. Every other failure is final
    for the recipient or request it concerns: PERMANENT_ERROR covers bad
    input and unreachable recipients, UNAUTHORIZED a rejected token or
    missing scope, NOT_FOUND a missing notification, channel or user.
    """

    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"

    @property
    def is_retryable(self) -> bool:
        return self is OperationStatus.TRANSIENT_ERROR

    @property
    def is_final_failure(self) -> bool:
        """A failure that retrying the same call cannot fix."""
        return self is not OperationStatus.SUCCESS and not self.is_retryable
