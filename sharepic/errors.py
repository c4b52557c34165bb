"""
Error taxonomy shared by the stores, services and HTTP layer.
"""

from __future__ import annotations


class SharePicError(Exception):
    """Base class; `status_code` is the HTTP status the API answers with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(SharePicError):
    """A required backend was never wired at startup."""


class ValidationError(SharePicError):
    status_code = 400


class NotFound(SharePicError):
    status_code = 404


class ConflictError(SharePicError):
    status_code = 409


class StorageError(SharePicError):
    """Transport or backend failure while reading or writing."""


class BackendTimeout(StorageError):
    """A backend call outlived its deadline; it may still complete."""


class ServerError(SharePicError):
    def __init__(self, message: str, cause: BaseException | None = None):
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.cause = cause
