"""
Session Store Reducer

Pure function from (state, action) to the next state. No I/O.
"""

from finyvo_auth.models.auth import (
    AuthChangeEvent,
    AuthState,
    OnboardingRecord,
    Session,
)
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


def _with_session(state: AuthState, session, **changes) -> AuthState:
    return state.model_copy(update={
        "session": session,
        "user": session.user if isinstance(session, Session) else None,
        **changes,
    })


def _logged_out(state: AuthState) -> AuthState:
    return state.model_copy(update={
        "session": None,
        "user": None,
        "is_recovery_session": False,
    })


def _set_onboarding(record: OnboardingRecord, action: OnboardingSet) -> OnboardingRecord:
    if action.user_id is None:
        return record.model_copy(update={"legacy": action.value})
    return record.model_copy(update={
        "by_user": {**record.by_user, action.user_id: action.value},
    })


def _migrate_legacy(record: OnboardingRecord, user_id: str) -> OnboardingRecord:
    if record.legacy is None:
        return record
    by_user = dict(record.by_user)
    # A flag already stored for this user wins over the legacy value
    by_user.setdefault(user_id, record.legacy)
    return record.model_copy(update={"by_user": by_user, "legacy": None})


def reduce(state: AuthState, action: Action) -> AuthState:
    """Apply one action."""
    if isinstance(action, SessionLoaded):
        return _with_session(state, action.session)

    if isinstance(action, LoadingFinished):
        return state.model_copy(update={"is_loading": False})

    if isinstance(action, AuthEventReceived):
        if action.event == AuthChangeEvent.SIGNED_OUT:
            return _logged_out(state)
        if action.event == AuthChangeEvent.PASSWORD_RECOVERY:
            return _with_session(state, action.session, is_recovery_session=True)
        return _with_session(state, action.session)

    if isinstance(action, SessionCleared):
        return _logged_out(state)

    if isinstance(action, RecoveryFlagSet):
        return state.model_copy(update={"is_recovery_session": action.value})

    if isinstance(action, OnboardingLoaded):
        return state.model_copy(update={"onboarding": action.record})

    if isinstance(action, OnboardingSet):
        return state.model_copy(update={"onboarding": _set_onboarding(state.onboarding, action)})

    if isinstance(action, LegacyOnboardingMigrated):
        return state.model_copy(update={
            "onboarding": _migrate_legacy(state.onboarding, action.user_id),
        })

    raise TypeError(f"Unknown action: {type(action).__name__}")
