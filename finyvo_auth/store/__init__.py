"""Session store package."""

from finyvo_auth.store.actions import (
    Action,
    AuthEventReceived,
    LegacyOnboardingMigrated,
    LoadingFinished,
    OnboardingLoaded,
    OnboardingSet,
    RecoveryFlagSet,
    SessionCleared,
    SessionLoaded,
)
from finyvo_auth.store.reducer import reduce
from finyvo_auth.store.session_store import SessionStore, StateListener

__all__ = [
    "Action",
    "AuthEventReceived",
    "LegacyOnboardingMigrated",
    "LoadingFinished",
    "OnboardingLoaded",
    "OnboardingSet",
    "RecoveryFlagSet",
    "SessionCleared",
    "SessionLoaded",
    "SessionStore",
    "StateListener",
    "reduce",
]
