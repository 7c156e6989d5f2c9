from .client import IdentityClient, IdentityProvider, ProviderInvitation, ProviderSession
from .errors import (
    IdentityProviderError,
    IdentityProviderUnavailableError,
    WebhookVerificationError,
)

__all__ = [
    "IdentityClient",
    "IdentityProvider",
    "IdentityProviderError",
    "IdentityProviderUnavailableError",
    "ProviderInvitation",
    "ProviderSession",
    "WebhookVerificationError",
]
