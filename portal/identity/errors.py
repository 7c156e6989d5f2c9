from __future__ import annotations

from typing import Optional


class IdentityProviderError(Exception):
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class IdentityProviderUnavailableError(IdentityProviderError):
    """The provider could not be reached (connection failure or timeout)."""


class WebhookVerificationError(ValueError):
    pass
