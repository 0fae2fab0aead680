"""Tests for the session store: reducer, initialization, sign-out, onboarding."""

import pytest

from finyvo_auth.models.auth import AuthChangeEvent, AuthState, OnboardingRecord
from finyvo_auth.services.auth import AuthError
from finyvo_auth.services.backend.interface import IdentityBackendError
from finyvo_auth.services.storage import InMemoryOnboardingStorage, StorageError
from finyvo_auth.store import (
    AuthEventReceived,
    LegacyOnboardingMigrated,
    LoadingFinished,
    OnboardingSet,
    RecoveryFlagSet,
    SessionCleared,
    SessionLoaded,
    SessionStore,
    reduce,
)

from tests.fakes import make_session, make_user


class TestReducer:
    """Tests for the pure reducer."""

    def test_session_loaded_sets_user(self):
        session = make_session()
        state = reduce(AuthState(), SessionLoaded(session=session))
        assert state.session == session
        assert state.user_id == "user-a"
        assert state.is_loading  # loading is cleared by its own action

    def test_loading_finished(self):
        assert not reduce(AuthState(), LoadingFinished()).is_loading

    def test_signed_out_event_clears_recovery(self):
        state = AuthState(session=make_session(), user=make_user(), is_recovery_session=True)
        state = reduce(state, AuthEventReceived(event=AuthChangeEvent.SIGNED_OUT, session=None))
        assert state.session is None
        assert state.user is None
        assert not state.is_recovery_session

    def test_password_recovery_event_sets_flag(self):
        state = reduce(
            AuthState(),
            AuthEventReceived(event=AuthChangeEvent.PASSWORD_RECOVERY, session=make_session()),
        )
        assert state.is_recovery_session
        assert state.is_authenticated

    def test_session_cleared_keeps_onboarding(self):
        record = OnboardingRecord(by_user={"user-a": True})
        state = AuthState(session=make_session(), user=make_user(), onboarding=record)
        state = reduce(state, SessionCleared())
        assert state.onboarding == record

    def test_onboarding_set_without_user_writes_legacy(self):
        state = reduce(AuthState(), OnboardingSet(user_id=None, value=True))
        assert state.onboarding.legacy is True
        assert state.onboarding.by_user == {}

    def test_legacy_migration_keeps_existing_flag(self):
        record = OnboardingRecord(by_user={"user-a": False}, legacy=True)
        state = reduce(AuthState(onboarding=record), LegacyOnboardingMigrated(user_id="user-a"))
        assert state.onboarding.by_user == {"user-a": False}
        assert state.onboarding.legacy is None

    def test_recovery_flag(self):
        assert reduce(AuthState(), RecoveryFlagSet(value=True)).is_recovery_session

    def test_unknown_action_rejected(self):
        with pytest.raises(TypeError):
            reduce(AuthState(), object())


class TestInitialize:
    """Tests for SessionStore.initialize()."""

    @pytest.mark.asyncio
    async def test_restores_session(self, backend, store):
        backend.session = make_session()
        await store.initialize()
        assert store.session == backend.session
        assert not store.is_loading
        assert store.has_subscription

    @pytest.mark.asyncio
    async def test_twice_leaves_one_subscription(self, backend, store):
        """Repeated initialization never double-delivers events."""
        await store.initialize()
        await store.initialize()
        assert backend.active_subscriptions == 1

        changes = []
        store.subscribe(lambda new, old: changes.append(new))
        backend.emit(AuthChangeEvent.SIGNED_IN, make_session())
        assert len(changes) == 1

    @pytest.mark.asyncio
    async def test_fetch_failure_still_finishes(self, backend, store):
        """A failed session fetch ends logged out, not loading, and still subscribed."""
        backend.errors["get_session"] = IdentityBackendError("boom")
        await store.initialize()
        assert store.session is None
        assert not store.is_loading
        assert backend.active_subscriptions == 1

    @pytest.mark.asyncio
    async def test_backend_events_update_state(self, backend, store):
        await store.initialize()
        backend.emit(AuthChangeEvent.SIGNED_IN, make_session())
        assert store.state.is_authenticated
        backend.emit(AuthChangeEvent.SIGNED_OUT, None)
        assert not store.state.is_authenticated

    @pytest.mark.asyncio
    async def test_dispose_unsubscribes(self, backend, store):
        await store.initialize()
        store.dispose()
        assert backend.active_subscriptions == 0
        assert not store.has_subscription

    @pytest.mark.asyncio
    async def test_listener_errors_do_not_break_dispatch(self, backend, store):
        def broken(new, old):
            raise RuntimeError("screen crashed")

        store.subscribe(broken)
        await store.initialize()
        assert not store.is_loading


class TestSignOut:
    """Tests for sign-out and the recovery variant."""

    @pytest.mark.asyncio
    async def test_sign_out_clears_state(self, backend, store):
        backend.session = make_session()
        await store.initialize()
        await store.sign_out()
        assert store.session is None
        assert backend.call_count("sign_out") == 1

    @pytest.mark.asyncio
    async def test_sign_out_failure_clears_then_raises(self, backend, store):
        backend.session = make_session()
        await store.initialize()
        backend.errors["sign_out"] = IdentityBackendError("network request failed")
        with pytest.raises(AuthError):
            await store.sign_out()
        assert store.session is None

    @pytest.mark.asyncio
    async def test_clear_recovery_and_sign_out_never_raises(self, backend, store):
        backend.session = make_session()
        await store.initialize()
        store.set_recovery_session(True)
        backend.errors["sign_out"] = IdentityBackendError("boom")
        await store.clear_recovery_and_sign_out()
        assert not store.is_recovery_session
        assert store.session is None


class TestOnboarding:
    """Tests for per-user onboarding flags."""

    @pytest.mark.asyncio
    async def test_per_user_isolation(self, backend, storage):
        """A's flag does not leak to B and survives B's visit."""
        store = SessionStore(backend, storage=storage)
        await store.initialize()

        user_a = make_user("user-a", "a@example.com")
        user_b = make_user("user-b", "b@example.com")

        backend.emit(AuthChangeEvent.SIGNED_IN, make_session(user_a))
        store.set_onboarded(True)
        assert store.is_onboarded()

        await store.sign_out()
        backend.emit(AuthChangeEvent.SIGNED_IN, make_session(user_b))
        assert not store.is_onboarded()

        await store.sign_out()
        backend.emit(AuthChangeEvent.SIGNED_IN, make_session(user_a))
        assert store.is_onboarded()
        assert storage.load().by_user == {"user-a": True}

    @pytest.mark.asyncio
    async def test_legacy_flag_migrates_to_first_user(self, backend):
        storage = InMemoryOnboardingStorage(OnboardingRecord(legacy=True))
        backend.session = make_session(make_user("user-a"))
        store = SessionStore(backend, storage=storage)

        await store.initialize()

        assert store.is_onboarded()
        assert storage.load() == OnboardingRecord(by_user={"user-a": True}, legacy=None)

    @pytest.mark.asyncio
    async def test_storage_failure_keeps_in_memory_flag(self, backend):
        class FailingStorage(InMemoryOnboardingStorage):
            def save(self, record):
                raise StorageError("disk full")

        store = SessionStore(backend, storage=FailingStorage())
        await store.initialize()
        backend.emit(AuthChangeEvent.SIGNED_IN, make_session())
        store.set_onboarded(True)
        assert store.is_onboarded()
