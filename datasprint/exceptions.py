"""
Exception hierarchy for the datasprint package.

Every error raised on purpose by datasprint derives from DatasprintError so
callers can surface a single human-readable message without
inspecting error codes.
"""

from typing import Optional


class DatasprintError(Exception):
    """Base exception for datasprint errors"""
    pass


class ConfigurationError(DatasprintError):
    """Raised when required configuration (bucket, credentials) is missing"""
    pass


class SubmissionValidationError(DatasprintError):
    """Raised when a submission is rejected before any side effect"""
    pass


class AuthorizationError(SubmissionValidationError):
    """Raised when the caller is not a known, signed-in user"""
    pass


class NotFoundError(DatasprintError):
    """Raised when a challenge, submission or user does not exist"""
    pass


class StoreError(DatasprintError):
    """Raised when the document store rejects or fails an operation"""
    pass


class RelayError(DatasprintError):
    """Raised when the upload relay or the object store behind it fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PartialSubmissionError(DatasprintError):
    """
    Raised when a write fails after the submission record was created.

    The submission is not rolled back; `submission_id` identifies the record
    that exists while the challenge counter or the user's completion state
    may lag behind.
    """

    def __init__(self, message: str, submission_id: str, step: str):
        super().__init__(message)
        self.submission_id = submission_id
        self.step = step


__all__ = [
    "DatasprintError",
    "ConfigurationError",
    "SubmissionValidationError",
    "AuthorizationError",
    "NotFoundError",
    "StoreError",
    "RelayError",
    "PartialSubmissionError",
]
