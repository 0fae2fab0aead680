"""Tests for app boot, lifecycle and component wiring."""

import pytest

from finyvo_auth.flows import SignInFlow, VerifyEmailFlow
from finyvo_auth.models.auth import ResetPasswordCredentials
from finyvo_auth.navigation import GuardedNavigator, InMemoryRouter, NavigationGuard, Route
from finyvo_auth.orchestrator import AppController, AppLifecycleState, create_app_components
from finyvo_auth.services.auth import AuthService
from finyvo_auth.services.backend.interface import BackendNetworkError, IdentityBackendError
from finyvo_auth.services.storage import InMemoryOnboardingStorage
from finyvo_auth.store import SessionStore

from tests.fakes import ManualClock, make_session


@pytest.fixture
def splash():
    calls = []
    return calls


@pytest.fixture
def make_controller(backend, splash):
    controllers = []

    def make(initial_path=Route.DASHBOARD.path):
        controller = create_app_components(
            backend,
            router=InMemoryRouter(initial_path),
            hide_splash=lambda: splash.append("hidden"),
            use_storage=False,
        )
        controllers.append(controller)
        return controller

    yield make
    for controller in controllers:
        controller.shutdown()


class TestBoot:
    """Tests for the boot sequence."""

    @pytest.mark.asyncio
    async def test_boot_without_session(self, make_controller, splash):
        controller = make_controller()

        result = await controller.boot()

        assert result.connected
        assert not result.session_restored
        assert splash == ["hidden"]
        assert not controller.store.is_loading
        assert controller.navigator.router.current_path == Route.SIGN_IN.path

    @pytest.mark.asyncio
    async def test_boot_restores_session(self, backend, make_controller):
        backend.session = make_session()
        controller = make_controller(Route.SIGN_IN.path)

        result = await controller.boot()

        assert result.session_restored
        assert controller.navigator.router.current_path == Route.ONBOARDING.path

    @pytest.mark.asyncio
    async def test_probe_failure_still_boots(self, backend, make_controller, splash):
        backend.connected = False
        controller = make_controller()

        result = await controller.boot()

        assert not result.connected
        assert splash == ["hidden"]
        assert controller.store.has_subscription

    @pytest.mark.asyncio
    async def test_probe_exception_still_boots(self, backend, make_controller, splash):
        backend.errors["check_connection"] = BackendNetworkError("ConnectError")
        controller = make_controller()

        result = await controller.boot()

        assert not result.connected
        assert splash == ["hidden"]

    @pytest.mark.asyncio
    async def test_session_fetch_failure_still_boots(self, backend, make_controller, splash):
        backend.errors["get_session"] = IdentityBackendError("boom")
        controller = make_controller()

        result = await controller.boot()

        assert not result.session_restored
        assert splash == ["hidden"]

    @pytest.mark.asyncio
    async def test_splash_hidden_when_initialize_raises(self, backend, audit_logger):
        """The splash never hangs, whatever goes wrong."""
        class BrokenStore(SessionStore):
            async def initialize(self):
                raise RuntimeError("store exploded")

        hidden = []
        store = BrokenStore(backend, storage=InMemoryOnboardingStorage())
        auth_service = AuthService(backend)
        navigator = GuardedNavigator(InMemoryRouter(), debounce_seconds=0.15, clock=ManualClock())
        guard = NavigationGuard(store, auth_service, navigator)
        controller = AppController(
            backend,
            auth_service,
            store,
            navigator,
            guard,
            hide_splash=lambda: hidden.append(True),
            audit_logger=audit_logger,
        )

        with pytest.raises(RuntimeError):
            await controller.boot()

        assert hidden == [True]
        assert controller.splash_hidden
        controller.shutdown()

    @pytest.mark.asyncio
    async def test_initial_recovery_link(self, backend, make_controller):
        controller = make_controller(Route.SIGN_IN.path)

        await controller.boot("finyvo://reset-password?token_hash=T&type=recovery")

        assert controller.store.is_recovery_session
        assert controller.navigator.router.current_path == Route.RESET_PASSWORD.path
        assert backend.call_count("verify_otp") == 1

    @pytest.mark.asyncio
    async def test_open_url_after_boot(self, backend, make_controller):
        controller = make_controller(Route.SIGN_UP.path)
        await controller.boot()

        await controller.open_url("finyvo://email-verified?token_hash=T&type=signup")

        assert controller.navigator.router.current_path == Route.EMAIL_VERIFIED.path


class TestLifecycle:
    """Tests for foreground / background handling."""

    def test_auto_refresh_follows_app_state(self, backend, make_controller):
        controller = make_controller()

        controller.on_app_state_change(AppLifecycleState.ACTIVE.value)
        assert backend.auto_refresh

        controller.on_app_state_change(AppLifecycleState.BACKGROUND.value)
        assert not backend.auto_refresh

        controller.on_app_state_change("active")
        controller.on_app_state_change(AppLifecycleState.INACTIVE.value)
        assert not backend.auto_refresh

    @pytest.mark.asyncio
    async def test_shutdown_releases_subscriptions(self, backend, make_controller):
        controller = make_controller()
        await controller.boot()
        assert backend.active_subscriptions == 1

        controller.shutdown()

        assert backend.active_subscriptions == 0
        assert not backend.auto_refresh


class TestWiring:
    def test_guard_reads_the_store(self, make_controller):
        controller = make_controller()
        assert controller.guard.current_inputs().is_loading
        assert not controller.store.is_onboarded()

    def test_flow_factories(self, make_controller):
        controller = make_controller()
        assert isinstance(controller.sign_in_flow(), SignInFlow)
        flow = controller.verify_email_flow("ana@example.com")
        assert isinstance(flow, VerifyEmailFlow)
        assert flow.state.email == "ana@example.com"
        assert controller.reset_password_flow().state.booting

    def test_validator_uses_settings(self, make_controller):
        controller = make_controller()
        result = controller.validator.validate_reset(
            ResetPasswordCredentials(password="Secret123", confirm_password="Secret123")
        )
        assert controller.validator.get_user_friendly_summary(result) == "All good."
