"""Tests for the navigation guard: rule table, guarded navigator, deep links."""

import asyncio

import pytest

from finyvo_auth.flows import ResetPasswordFlow
from finyvo_auth.models.auth import OnboardingRecord
from finyvo_auth.navigation import (
    GuardDecision,
    GuardedNavigator,
    GuardInputs,
    GuardState,
    InMemoryRouter,
    NavigationGuard,
    Route,
    evaluate,
    route_segments,
)
from finyvo_auth.services.auth import AuthService
from finyvo_auth.services.backend.interface import IdentityBackendError
from finyvo_auth.services.storage import InMemoryOnboardingStorage
from finyvo_auth.store import SessionStore

from tests.fakes import FakeIdentityBackend, ManualClock, make_session, make_user


RECOVERY_URL = "finyvo://reset-password?token_hash=Z&type=recovery"
SIGNUP_URL = "finyvo://email-verified?token_hash=Z&type=signup"


def inputs_on(path: str, **kwargs) -> GuardInputs:
    return GuardInputs(segments=tuple(route_segments(path)), **kwargs)


class TestRoutes:
    def test_segments(self):
        assert route_segments("/(auth)/sign-in") == ["(auth)", "sign-in"]
        assert route_segments("/(auth)/verify-email?email=a%40b.com") == ["(auth)", "verify-email"]
        assert route_segments("/") == []

    def test_screen(self):
        assert Route.RESET_PASSWORD.screen == "reset-password"
        assert Route.DASHBOARD.path == "/(tabs)/dashboard"


class TestGuardRules:
    """Tests for the prioritized rule table."""

    @pytest.mark.parametrize("kwargs", [
        {"is_loading": True},
        {"link_ready": False},
        {"processing_link": True},
    ])
    def test_booting_decides_nothing(self, kwargs):
        decision = evaluate(inputs_on(Route.DASHBOARD.path, is_recovery_session=True, **kwargs))
        assert decision == GuardDecision(state=GuardState.BOOTING)

    @pytest.mark.parametrize("has_session", [True, False])
    @pytest.mark.parametrize("is_onboarded", [True, False])
    @pytest.mark.parametrize("path", [r.path for r in Route if r != Route.RESET_PASSWORD] + ["/"])
    def test_recovery_always_forces_reset(self, has_session, is_onboarded, path):
        """No other rule overrides an active recovery session."""
        decision = evaluate(inputs_on(
            path,
            has_session=has_session,
            is_onboarded=is_onboarded,
            is_recovery_session=True,
        ))
        assert decision.state == GuardState.RECOVERY_FORCED
        assert decision.target == Route.RESET_PASSWORD
        assert decision.force

    def test_recovery_on_reset_screen_allowed(self):
        decision = evaluate(inputs_on(Route.RESET_PASSWORD.path, has_session=True, is_recovery_session=True))
        assert not decision.redirects

    @pytest.mark.parametrize("route", [Route.RESET_PASSWORD, Route.FORGOT_PASSWORD])
    def test_reset_and_forgot_allowed_without_session(self, route):
        decision = evaluate(inputs_on(route.path))
        assert decision.state == GuardState.UNAUTH_ROUTE_ALLOWED

    def test_session_without_onboarding_forced_to_onboarding(self):
        decision = evaluate(inputs_on(Route.DASHBOARD.path, has_session=True))
        assert decision.target == Route.ONBOARDING
        assert decision.force

    @pytest.mark.parametrize("route", [Route.VERIFY_EMAIL, Route.EMAIL_VERIFIED, Route.ONBOARDING])
    def test_excepted_screens_kept_for_signed_in_user(self, route):
        decision = evaluate(inputs_on(route.path, has_session=True))
        assert not decision.redirects

    def test_signed_in_user_leaves_auth_group(self):
        decision = evaluate(inputs_on(Route.SIGN_IN.path, has_session=True, is_onboarded=True))
        assert decision.state == GuardState.AUTHENTICATED_ROUTING
        assert decision.target == Route.DASHBOARD
        assert not decision.force

    def test_signed_in_user_stays_in_tabs(self):
        decision = evaluate(inputs_on(Route.DASHBOARD.path, has_session=True, is_onboarded=True))
        assert decision.state == GuardState.ALLOWED

    def test_no_session_outside_auth_group(self):
        decision = evaluate(inputs_on(Route.DASHBOARD.path))
        assert decision.state == GuardState.UNAUTH_REDIRECT
        assert decision.target == Route.SIGN_IN

    def test_no_session_on_onboarding(self):
        assert evaluate(inputs_on(Route.ONBOARDING.path)).target == Route.SIGN_IN

    @pytest.mark.parametrize("path", [Route.SIGN_IN.path, Route.SIGN_UP.path, "/"])
    def test_no_session_on_public_screens(self, path):
        assert not evaluate(inputs_on(path)).redirects


class TestGuardedNavigator:
    """Tests for the lease-based replace."""

    def test_same_target_is_noop_even_when_forced(self, audit_logger):
        router = InMemoryRouter(Route.SIGN_IN.path)
        navigator = GuardedNavigator(router, debounce_seconds=0.15, clock=ManualClock(), audit_logger=audit_logger)
        assert not navigator.replace(Route.SIGN_IN)
        assert not navigator.replace(Route.SIGN_IN, force=True)
        assert router.history == []

    def test_debounce_window(self, audit_logger):
        """Within the window only the first replace lands; after it, the next one does."""
        clock = ManualClock()
        router = InMemoryRouter("/")
        navigator = GuardedNavigator(router, debounce_seconds=0.15, clock=clock, audit_logger=audit_logger)

        assert navigator.replace(Route.SIGN_IN)
        clock.advance(0.1)
        assert not navigator.replace(Route.SIGN_UP)
        clock.advance(0.1)
        assert navigator.replace(Route.FORGOT_PASSWORD)
        assert router.history == [Route.SIGN_IN.path, Route.FORGOT_PASSWORD.path]

    def test_force_bypasses_lease(self, audit_logger):
        clock = ManualClock()
        router = InMemoryRouter("/")
        navigator = GuardedNavigator(router, debounce_seconds=0.15, clock=clock, audit_logger=audit_logger)

        navigator.replace(Route.SIGN_IN)
        assert navigator.is_locked()
        assert navigator.replace(Route.RESET_PASSWORD, force=True)
        assert router.current_path == Route.RESET_PASSWORD.path


class TestNavigationGuard:
    """Tests for the guard wired to a store and a router."""

    @pytest.mark.asyncio
    async def test_waits_for_link_ready(self, router, store, guard):
        router.navigate(Route.DASHBOARD.path)
        guard.start()
        await store.initialize()
        assert router.current_path == Route.DASHBOARD.path

        await guard.handle_url(None)
        assert guard.link_ready
        assert router.current_path == Route.SIGN_IN.path

    @pytest.mark.asyncio
    async def test_onboarded_user_sent_to_dashboard(self, backend, auth_service, navigator, router):
        backend.session = make_session(make_user("user-a"))
        storage = InMemoryOnboardingStorage(OnboardingRecord(by_user={"user-a": True}))
        store = SessionStore(backend, storage=storage)
        guard = NavigationGuard(store, auth_service, navigator)

        guard.start()
        await store.initialize()
        await guard.handle_url(None)

        assert router.current_path == Route.DASHBOARD.path
        guard.stop()

    @pytest.mark.asyncio
    async def test_new_user_sent_to_onboarding(self, backend, router, store, guard):
        backend.session = make_session()
        guard.start()
        await store.initialize()
        await guard.handle_url(None)
        assert router.current_path == Route.ONBOARDING.path

    @pytest.mark.asyncio
    async def test_recovery_link(self, backend, router, store, guard):
        guard.start()
        await store.initialize()

        await guard.handle_url(RECOVERY_URL)

        assert backend.call_count("verify_otp") == 1
        assert store.is_recovery_session
        assert router.current_path == Route.RESET_PASSWORD.path
        assert not guard.processing_link

    @pytest.mark.asyncio
    async def test_leaving_reset_for_a_new_link(self, router, store, auth_service, navigator, guard, settings):
        """Asking for a new link drops the recovery flag so the guard lets the user go."""
        guard.start()
        await store.initialize()
        await guard.handle_url(RECOVERY_URL)
        assert router.current_path == Route.RESET_PASSWORD.path

        flow = ResetPasswordFlow(auth_service, store, navigator, settings=settings)
        flow.redirect_to_forgot_password()
        guard.request_evaluation()

        assert not store.is_recovery_session
        assert router.current_path == Route.FORGOT_PASSWORD.path
        flow.dispose()

    @pytest.mark.asyncio
    async def test_same_link_twice_exchanged_once(self, backend, store, guard):
        guard.start()
        await store.initialize()

        await guard.handle_url(RECOVERY_URL)
        await guard.handle_url(RECOVERY_URL)

        assert backend.call_count("verify_otp") == 1

    @pytest.mark.asyncio
    async def test_failed_recovery_link_goes_to_forgot_password(self, backend, router, store, guard):
        backend.errors["verify_otp"] = IdentityBackendError("Token has expired or is invalid")
        guard.start()
        await store.initialize()

        await guard.handle_url(RECOVERY_URL)

        assert router.current_path == Route.FORGOT_PASSWORD.path
        assert guard.link_ready
        assert not guard.processing_link

    @pytest.mark.asyncio
    async def test_signup_link(self, backend, router, store, guard):
        guard.start()
        await store.initialize()

        await guard.handle_url(SIGNUP_URL)

        assert router.current_path == Route.EMAIL_VERIFIED.path
        assert not store.is_recovery_session

    @pytest.mark.asyncio
    async def test_failed_signup_link_goes_to_sign_in(self, backend, router, store, guard):
        router.navigate(Route.SIGN_UP.path)
        backend.errors["verify_otp"] = IdentityBackendError("Email link is invalid")
        guard.start()
        await store.initialize()

        await guard.handle_url(SIGNUP_URL)

        assert router.current_path == Route.SIGN_IN.path

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", [
        "finyvo://callback?code=abc",
        "finyvo://dashboard",
        "finyvo://somewhere?token_hash=Z&type=magiclink",
    ])
    async def test_links_left_alone(self, backend, store, guard, url):
        """OAuth returns and non-OTP links only open the gate."""
        guard.start()
        await store.initialize()

        await guard.handle_url(url)

        assert guard.link_ready
        assert backend.call_count("verify_otp") == 0
        assert backend.call_count("exchange_code_for_session") == 0

    @pytest.mark.asyncio
    async def test_links_processed_one_at_a_time(self, audit_logger):
        class SlowBackend(FakeIdentityBackend):
            def __init__(self):
                super().__init__()
                self.in_flight = 0
                self.max_in_flight = 0

            async def verify_otp(self, type, token_hash, email=None):
                self.in_flight += 1
                self.max_in_flight = max(self.max_in_flight, self.in_flight)
                await asyncio.sleep(0)
                try:
                    return await super().verify_otp(type, token_hash, email)
                finally:
                    self.in_flight -= 1

        backend = SlowBackend()
        store = SessionStore(backend, audit_logger=audit_logger)
        navigator = GuardedNavigator(InMemoryRouter(Route.SIGN_IN.path), debounce_seconds=0.15, clock=ManualClock())
        guard = NavigationGuard(store, AuthService(backend), navigator, audit_logger=audit_logger)
        guard.start()
        await store.initialize()

        await asyncio.gather(
            guard.handle_url("finyvo://reset-password?token_hash=A&type=recovery"),
            guard.handle_url("finyvo://reset-password?token_hash=B&type=recovery"),
        )

        assert backend.call_count("verify_otp") == 2
        assert backend.max_in_flight == 1
        guard.stop()

    @pytest.mark.asyncio
    async def test_stop_detaches(self, router, store, guard):
        guard.start()
        guard.stop()
        await store.initialize()
        await guard.handle_url(None)
        router.navigate(Route.DASHBOARD.path)
        assert router.current_path == Route.DASHBOARD.path
