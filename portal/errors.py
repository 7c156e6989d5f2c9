from __future__ import annotations


class AuthorizationError(Exception):
    """Raised when the caller is authenticated but lacks the required role."""

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class StorageError(Exception):
    """A repository failure re-raised with a generic, user-safe message.

    The original exception is kept as ``__cause__`` and logged where it is
    caught; it never reaches the API response.
    """
