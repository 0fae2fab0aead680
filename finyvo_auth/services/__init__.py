"""Services package."""

from finyvo_auth.services.auth import (
    AuthError,
    AuthErrorCode,
    AuthService,
)
from finyvo_auth.services.backend import (
    AuthSubscription,
    BackendNetworkError,
    IdentityBackendError,
    IdentityBackendInterface,
)
from finyvo_auth.services.platform import (
    AppleCredentialProviderInterface,
    BrowserSessionInterface,
    NativeSignInCancelled,
)
from finyvo_auth.services.storage import (
    InMemoryOnboardingStorage,
    JsonFileOnboardingStorage,
    OnboardingStorageInterface,
    StorageError,
)

__all__ = [
    # Auth
    "AuthError",
    "AuthErrorCode",
    "AuthService",
    # Identity backend
    "AuthSubscription",
    "BackendNetworkError",
    "IdentityBackendError",
    "IdentityBackendInterface",
    # Platform
    "AppleCredentialProviderInterface",
    "BrowserSessionInterface",
    "NativeSignInCancelled",
    # Storage
    "InMemoryOnboardingStorage",
    "JsonFileOnboardingStorage",
    "OnboardingStorageInterface",
    "StorageError",
]
