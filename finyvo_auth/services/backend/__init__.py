"""Identity backend package."""

from finyvo_auth.services.backend.interface import (
    AuthStateCallback,
    AuthSubscription,
    BackendNetworkError,
    IdentityBackendError,
    IdentityBackendInterface,
)

__all__ = [
    "AuthStateCallback",
    "AuthSubscription",
    "BackendNetworkError",
    "IdentityBackendError",
    "IdentityBackendInterface",
]
