from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class OperationInProgressError(DomainError):
    """Raised when a locked operation is started again before it finished."""

    def __init__(self, lock_key: str):
        super().__init__(f"Operation {lock_key} is already in progress")
        self.lock_key = lock_key


class RemoteApiError(DomainError):
    """Raised when the school REST API fails or cannot be reached.

    ``status_code`` is None for transport failures (DNS, refused, timeout).
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
