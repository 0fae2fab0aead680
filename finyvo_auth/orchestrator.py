"""
App Orchestrator for Finyvo Auth

Ties the components together and defines the app-level sequences:
1. Boot (connectivity probe -> session store initialize -> hide splash)
2. Initial deep link (handed to the navigation guard, alongside boot)
3. Foreground / background (backend auto-refresh on / off)

DESIGN DECISION: The splash is hidden only after boot settles.
It is hidden in a `finally`, so a failed probe or a failed session
restore still ends the loading state instead of hanging on the splash.

DESIGN DECISION: Components are wired explicitly.
There is no global store; `create_app_components()` builds one of each
and hands them to whoever needs them.
"""

import asyncio
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

from finyvo_auth.audit import AuditLogger, configure_logging, create_correlation_id, get_logger
from finyvo_auth.config import get_settings
from finyvo_auth.flows import (
    ForgotPasswordFlow,
    ResetPasswordFlow,
    SignInFlow,
    SignUpFlow,
    SocialSignInFlow,
    VerifyEmailFlow,
)
from finyvo_auth.navigation import GuardedNavigator, InMemoryRouter, NavigationGuard, RouterInterface
from finyvo_auth.services.auth import AuthService
from finyvo_auth.services.backend import IdentityBackendInterface
from finyvo_auth.services.platform import AppleCredentialProviderInterface, BrowserSessionInterface
from finyvo_auth.services.storage import (
    InMemoryOnboardingStorage,
    JsonFileOnboardingStorage,
    OnboardingStorageInterface,
)
from finyvo_auth.store import SessionStore
from finyvo_auth.validation import CredentialValidator


logger = get_logger(__name__)


class AppLifecycleState(str, Enum):
    """Foreground state reported by the host platform."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    BACKGROUND = "background"


class BootResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    connected: bool
    session_restored: bool


class AppController:
    """
    Owns the wired components and runs the app-level sequences.

    Usage:
        controller = create_app_components(backend, router=router)
        await controller.boot(initial_url)
        controller.on_app_state_change("background")
        controller.shutdown()
    """

    def __init__(
        self,
        backend: IdentityBackendInterface,
        auth_service: AuthService,
        store: SessionStore,
        navigator: GuardedNavigator,
        guard: NavigationGuard,
        hide_splash: Optional[Callable[[], None]] = None,
        validator: Optional[CredentialValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._backend = backend
        self._auth = auth_service
        self._store = store
        self._navigator = navigator
        self._guard = guard
        self._hide_splash = hide_splash
        self._validator = validator or CredentialValidator()
        self._audit_logger = audit_logger or AuditLogger()
        self.splash_hidden = False

    @property
    def auth_service(self) -> AuthService:
        return self._auth

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def navigator(self) -> GuardedNavigator:
        return self._navigator

    @property
    def guard(self) -> NavigationGuard:
        return self._guard

    @property
    def validator(self) -> CredentialValidator:
        return self._validator

    # =========================================================================
    # Boot
    # =========================================================================

    async def boot(self, initial_url: Optional[str] = None) -> BootResult:
        """
        Start the guard, then restore the session while the initial deep
        link is handled.

        Never raises for backend trouble; the result reports what worked.
        """
        self._guard.start()
        connected, _ = await asyncio.gather(
            self._boot_session(),
            self._guard.handle_url(initial_url),
        )
        return BootResult(
            connected=connected,
            session_restored=self._store.session is not None,
        )

    async def _boot_session(self) -> bool:
        correlation_id = create_correlation_id()
        connected = False
        try:
            connected = await self._check_connection(correlation_id)
            await self._store.initialize()
        finally:
            self._finish_loading()
        return connected

    async def _check_connection(self, correlation_id) -> bool:
        try:
            connected = await self._backend.check_connection()
        except Exception as e:
            self._audit_logger.log_backend_unavailable(str(e), correlation_id)
            return False

        if not connected:
            self._audit_logger.log_backend_unavailable("Connectivity probe failed", correlation_id)
        return connected

    def _finish_loading(self) -> None:
        if self.splash_hidden:
            return
        self.splash_hidden = True
        if self._hide_splash is not None:
            self._hide_splash()

    async def open_url(self, url: str) -> None:
        """A deep link delivered while the app is running."""
        await self._guard.handle_url(url)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def on_app_state_change(self, state: str) -> None:
        """Refresh tokens only while the app is in the foreground."""
        if state == AppLifecycleState.ACTIVE.value:
            self._backend.start_auto_refresh()
        else:
            self._backend.stop_auto_refresh()

    def shutdown(self) -> None:
        self._guard.stop()
        self._store.dispose()
        self._backend.stop_auto_refresh()

    # =========================================================================
    # Flows (one per screen mount)
    # =========================================================================

    def sign_in_flow(self) -> SignInFlow:
        return SignInFlow(self._auth, audit_logger=self._audit_logger)

    def sign_up_flow(self) -> SignUpFlow:
        return SignUpFlow(
            self._auth,
            self._navigator,
            validator=self._validator,
            audit_logger=self._audit_logger,
        )

    def forgot_password_flow(self) -> ForgotPasswordFlow:
        return ForgotPasswordFlow(self._auth, audit_logger=self._audit_logger)

    def reset_password_flow(self) -> ResetPasswordFlow:
        return ResetPasswordFlow(
            self._auth,
            self._store,
            self._navigator,
            validator=self._validator,
            audit_logger=self._audit_logger,
        )

    def verify_email_flow(self, email: str = "") -> VerifyEmailFlow:
        return VerifyEmailFlow(self._auth, email=email, audit_logger=self._audit_logger)

    def social_sign_in_flow(self) -> SocialSignInFlow:
        return SocialSignInFlow(self._auth, self._navigator, audit_logger=self._audit_logger)


def create_app_components(
    backend: IdentityBackendInterface,
    router: Optional[RouterInterface] = None,
    storage: Optional[OnboardingStorageInterface] = None,
    apple_provider: Optional[AppleCredentialProviderInterface] = None,
    browser: Optional[BrowserSessionInterface] = None,
    hide_splash: Optional[Callable[[], None]] = None,
    use_storage: bool = True,
) -> AppController:
    """
    Factory function to create all application components.

    Args:
        backend: Identity backend client
        router: Host router; an in-memory router when omitted
        storage: Onboarding storage; defaults to the JSON file from settings
        use_storage: Set to False to keep onboarding flags in memory only
            (tests, previews)

    Returns:
        AppController owning the wired components
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    audit_logger = AuditLogger()

    if storage is None:
        if use_storage:
            storage = JsonFileOnboardingStorage(settings.storage.onboarding_store_path)
        else:
            storage = InMemoryOnboardingStorage()

    auth_service = AuthService(
        backend,
        apple_provider=apple_provider,
        browser=browser,
        settings=settings.auth,
        audit_logger=audit_logger,
    )
    store = SessionStore(backend, storage=storage, audit_logger=audit_logger)
    navigator = GuardedNavigator(
        router or InMemoryRouter(),
        debounce_seconds=settings.auth.navigation_debounce_seconds,
        audit_logger=audit_logger,
    )
    guard = NavigationGuard(store, auth_service, navigator, audit_logger=audit_logger)

    logger.info("app_components_created", environment=settings.app.app_environment)

    return AppController(
        backend,
        auth_service,
        store,
        navigator,
        guard,
        hide_splash=hide_splash,
        validator=CredentialValidator(settings.auth),
        audit_logger=audit_logger,
    )


async def create_supabase_app(**kwargs) -> AppController:
    """Same as `create_app_components()` with the Supabase backend from settings."""
    from finyvo_auth.services.backend.supabase_backend import SupabaseIdentityBackend

    backend = await SupabaseIdentityBackend.create()
    return create_app_components(backend, **kwargs)
