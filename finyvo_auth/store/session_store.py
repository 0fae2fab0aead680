"""
Session Store

Single source of truth for: is there a session, who is the user, is a
password recovery in progress, has this user onboarded.

DESIGN DECISION: An explicit container instead of a global singleton.
- One writer path: every change is an action applied by `reduce`
- The backend event subscription is owned here and torn down before a
  new one is created, so repeated `initialize()` never double-delivers
- The container is passed to the guard and the flows explicitly

Failure policy: initialization never raises. Whatever happens, the store
ends up in a decidable state (logged in or logged out) with loading cleared.
"""

from typing import Callable, Optional

from finyvo_auth.audit import AuditLogger
from finyvo_auth.models.auth import (
    AuthChangeEvent,
    AuthState,
    Session,
)
from finyvo_auth.services.auth.errors import normalize_error
from finyvo_auth.services.backend.interface import (
    AuthSubscription,
    IdentityBackendError,
    IdentityBackendInterface,
)
from finyvo_auth.services.storage import (
    InMemoryOnboardingStorage,
    OnboardingStorageInterface,
    StorageError,
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
from finyvo_auth.store.reducer import reduce


StateListener = Callable[[AuthState, AuthState], None]


class SessionStore:
    """
    Observable auth state container.

    Usage:
        store = SessionStore(backend, storage)
        unsubscribe = store.subscribe(lambda new, old: ...)
        await store.initialize()
    """

    def __init__(
        self,
        backend: IdentityBackendInterface,
        storage: Optional[OnboardingStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._backend = backend
        self._storage = storage or InMemoryOnboardingStorage()
        self._audit_logger = audit_logger or AuditLogger()
        self._state = AuthState()
        self._listeners: list[StateListener] = []
        self._subscription: Optional[AuthSubscription] = None

    # =========================================================================
    # Observation
    # =========================================================================

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._state.session

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def is_recovery_session(self) -> bool:
        return self._state.is_recovery_session

    @property
    def has_subscription(self) -> bool:
        return self._subscription is not None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Call `listener(new_state, old_state)` after every change.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, action: Action) -> AuthState:
        previous = self._state
        self._state = reduce(previous, action)
        if self._state != previous:
            for listener in list(self._listeners):
                try:
                    listener(self._state, previous)
                except Exception as e:
                    self._audit_logger.log_internal_error(
                        "store_listener_failed",
                        str(e),
                        details={"action": type(action).__name__},
                    )
        return self._state

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        """
        Load onboarding flags, fetch the current session and subscribe to
        backend auth events.

        Idempotent: a previous subscription is torn down first. Loading is
        cleared once, on the first call, whether or not the fetch worked.
        """
        self._teardown_subscription()

        try:
            self.dispatch(OnboardingLoaded(record=self._storage.load()))

            try:
                session = await self._backend.get_session()
            except Exception as e:
                self._audit_logger.log_session_init_failed(str(e))
                session = None

            self.dispatch(SessionLoaded(session=session))
            self._audit_logger.log_session_initialized(self._state.user_id, session is not None)

            self._subscription = self._backend.on_auth_state_change(self._on_auth_event)
            self._migrate_legacy_onboarding()
        finally:
            if self._state.is_loading:
                self.dispatch(LoadingFinished())

    def dispose(self) -> None:
        """Stop listening to backend events."""
        self._teardown_subscription()

    def _teardown_subscription(self) -> None:
        if self._subscription is not None:
            subscription, self._subscription = self._subscription, None
            subscription.unsubscribe()

    def _on_auth_event(self, event: AuthChangeEvent, session: Optional[Session]) -> None:
        self.dispatch(AuthEventReceived(event=event, session=session))
        self._audit_logger.log_auth_state_changed(event.value, self._state.user_id)
        if event == AuthChangeEvent.PASSWORD_RECOVERY:
            self._audit_logger.log_recovery_flag(True)
        self._migrate_legacy_onboarding()

    # =========================================================================
    # Sign-out
    # =========================================================================

    async def sign_out(self) -> None:
        """
        Sign out on the backend and clear local state.

        Local state is cleared even when the backend call fails; the
        normalized error is then re-raised. Onboarding flags are kept.

        Raises:
            AuthError: The backend sign-out failed
        """
        user_id = self._state.user_id
        try:
            await self._backend.sign_out()
        except IdentityBackendError as e:
            self._audit_logger.log_sign_out_failed(user_id, e.message)
            raise normalize_error(e) from e
        finally:
            self.dispatch(SessionCleared())

        self._audit_logger.log_signed_out(user_id)

    async def clear_recovery_and_sign_out(self) -> None:
        """
        End a password-reset flow: drop the recovery flag and sign out.

        Never raises; a failed backend sign-out still clears local state.
        """
        user_id = self._state.user_id
        try:
            await self._backend.sign_out()
            self._audit_logger.log_signed_out(user_id)
        except IdentityBackendError as e:
            self._audit_logger.log_sign_out_failed(user_id, normalize_error(e).message)
        finally:
            self.dispatch(SessionCleared())
        self._audit_logger.log_recovery_flag(False)

    # =========================================================================
    # Flags
    # =========================================================================

    def set_recovery_session(self, value: bool) -> None:
        if self._state.is_recovery_session != value:
            self.dispatch(RecoveryFlagSet(value=value))
            self._audit_logger.log_recovery_flag(value)

    def set_onboarded(self, value: bool) -> None:
        """
        Set the onboarding flag for the current user.

        With no current user the legacy global slot is written instead;
        it is migrated to whoever signs in next.
        """
        user_id = self._state.user_id
        self.dispatch(OnboardingSet(user_id=user_id, value=value))
        self._audit_logger.log_onboarding_updated(user_id, value)
        self._persist()

    def is_onboarded(self) -> bool:
        return self._state.is_onboarded

    def _migrate_legacy_onboarding(self) -> None:
        user_id = self._state.user_id
        legacy = self._state.onboarding.legacy
        if user_id is None or legacy is None:
            return
        self.dispatch(LegacyOnboardingMigrated(user_id=user_id))
        self._audit_logger.log_onboarding_migrated(user_id, legacy)
        self._persist()

    def _persist(self) -> None:
        try:
            self._storage.save(self._state.onboarding)
        except StorageError as e:
            # The in-memory flag still holds for this launch
            self._audit_logger.log_internal_error("onboarding_persist_failed", str(e))


