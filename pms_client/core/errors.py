from typing import List, Optional


class PMSError(Exception):
    """Base class for every error raised by the client core."""


class NetworkError(PMSError):
    """Transport failure, timeout or non-2xx response after retries ran out."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StorageError(PMSError):
    """The durable key/value store refused a write (quota, disk, driver)."""


class AuthError(PMSError):
    """Invalid or expired session; fatal to the current session."""


class LoginError(AuthError):
    def __init__(self, message: str, remaining_attempts: int):
        super().__init__(message)
        self.remaining_attempts = remaining_attempts


class LockoutError(PMSError):
    """Too many failed logins from this browser; retry after `retry_after` seconds."""

    def __init__(self, message: str, retry_after: float):
        super().__init__(message)
        self.retry_after = retry_after


class ValidationError(PMSError):
    """Business-rule rejection from a registered validator. Never queued for retry."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors) or "Validation failed")
        self.errors = list(errors)
