"""Error taxonomy shared by admission, queue, and compute layers."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for errors surfaced to relay callers."""

    http_status = 500


class AuthenticationError(RelayError):
    """Caller could not be authenticated."""

    http_status = 401


class UnauthorizedError(AuthenticationError):
    """Presented proxy key does not match the configured one."""

    http_status = 401


class InvalidSignatureError(AuthenticationError):
    """Prompt signature does not match the shared-secret HMAC."""

    http_status = 403


class RateLimitError(RelayError):
    """Client exhausted its request budget for the current window."""

    http_status = 429

    def __init__(self, message: str, *, client_key: str, limit: int) -> None:
        super().__init__(message)
        self.client_key = client_key
        self.limit = limit


class ValidationError(RelayError):
    """Submission is missing required fields or is malformed."""

    http_status = 400


class JobNotFoundError(RelayError):
    """No job exists with the requested id."""

    http_status = 404

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Request not found: {job_id}")
        self.job_id = job_id


class PersistenceError(RelayError):
    """Job or rate-limit storage is unavailable or corrupt."""

    http_status = 500


class ComputeFailure(RelayError):
    """External compute call failed; drives worker retry policy."""

    http_status = 502

    def __init__(self, cause: str, *, status_code: int | None = None) -> None:
        super().__init__(cause)
        self.cause = cause
        self.status_code = status_code
