"""
Session Store Actions

Every state change goes through one of these. The store's methods and the
backend event callback build actions; nothing else writes state.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from finyvo_auth.models.auth import (
    AuthChangeEvent,
    OnboardingRecord,
    Session,
)


class _Action(BaseModel):
    model_config = ConfigDict(frozen=True)


class SessionLoaded(_Action):
    """Result of the initial session fetch (None when logged out or failed)."""
    session: Optional[Session] = None


class LoadingFinished(_Action):
    pass


class AuthEventReceived(_Action):
    """Backend-pushed auth change."""
    event: AuthChangeEvent
    session: Optional[Session] = None


class SessionCleared(_Action):
    """Local sign-out: session, user and recovery flag go; onboarding stays."""
    pass


class RecoveryFlagSet(_Action):
    value: bool


class OnboardingLoaded(_Action):
    record: OnboardingRecord


class OnboardingSet(_Action):
    """Flag for `user_id`, or the legacy slot when user_id is None."""
    user_id: Optional[str] = None
    value: bool


class LegacyOnboardingMigrated(_Action):
    """Move the legacy global flag under `user_id` and clear it."""
    user_id: str


Action = Union[
    SessionLoaded,
    LoadingFinished,
    AuthEventReceived,
    SessionCleared,
    RecoveryFlagSet,
    OnboardingLoaded,
    OnboardingSet,
    LegacyOnboardingMigrated,
]
