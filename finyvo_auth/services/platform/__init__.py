"""Host platform collaborators."""

from finyvo_auth.services.platform.interface import (
    AppleCredentialProviderInterface,
    BrowserSessionInterface,
    NativeSignInCancelled,
)

__all__ = [
    "AppleCredentialProviderInterface",
    "BrowserSessionInterface",
    "NativeSignInCancelled",
]
