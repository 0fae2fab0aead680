"""
Social Sign-In Flow

Per-provider loading plus a shared error and `is_processing` flag.

DESIGN DECISION: Browser providers finish on the backend event.
The browser returning and the session actually being established are
separate moments. For Google and Facebook a one-shot SIGNED_IN
subscription is registered before the browser opens; that event, not
the browser result, navigates to the dashboard and clears loading.
Apple returns a session directly and navigates on its own result.

A cancelled sign-in is never shown as an error.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from finyvo_auth.audit import AuditLogger, get_logger
from finyvo_auth.flows.base import BaseFlow
from finyvo_auth.models.auth import AuthChangeEvent, OAuthProvider, Session
from finyvo_auth.models.routes import Route
from finyvo_auth.navigation.navigator import GuardedNavigator
from finyvo_auth.services.auth.errors import AuthError, AuthErrorCode
from finyvo_auth.services.auth.service import AuthService
from finyvo_auth.services.backend.interface import AuthSubscription


logger = get_logger(__name__)

PROVIDER_ERROR_MESSAGES: dict[OAuthProvider, str] = {
    OAuthProvider.APPLE: "Could not sign in with Apple",
    OAuthProvider.GOOGLE: "Could not sign in with Google",
    OAuthProvider.FACEBOOK: "Could not sign in with Facebook",
}


class SocialSignInState(BaseModel):
    model_config = ConfigDict(frozen=True)

    loading: Optional[OAuthProvider] = None
    error: Optional[str] = None
    is_processing: bool = False


class SocialSignInFlow(BaseFlow[SocialSignInState]):
    """
    Apple, Google and Facebook sign-in buttons.

    Only one provider runs at a time; taps while one is running are ignored.
    """

    def __init__(
        self,
        auth_service: AuthService,
        navigator: GuardedNavigator,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(SocialSignInState(), audit_logger)
        self._auth = auth_service
        self._navigator = navigator
        self._subscription: Optional[AuthSubscription] = None

    @property
    def listening(self) -> bool:
        return self._subscription is not None

    def is_loading(self, provider: Union[OAuthProvider, str]) -> bool:
        return self._state.loading == OAuthProvider(provider)

    async def sign_in_with_apple(self) -> None:
        await self.sign_in_with_provider(OAuthProvider.APPLE)

    async def sign_in_with_google(self) -> None:
        await self.sign_in_with_provider(OAuthProvider.GOOGLE)

    async def sign_in_with_facebook(self) -> None:
        await self.sign_in_with_provider(OAuthProvider.FACEBOOK)

    async def sign_in_with_provider(self, provider: Union[OAuthProvider, str]) -> None:
        try:
            provider = OAuthProvider(provider)
        except ValueError:
            self._update(error=f"Provider {provider} is not supported")
            return

        if self._state.loading is not None or self._state.is_processing:
            return

        self._update(loading=provider, error=None, is_processing=True)

        if provider != OAuthProvider.APPLE:
            self._listen_for_sign_in()

        try:
            result = await self._auth.sign_in_with_provider(provider)
        except Exception as e:
            self._handle_error(e, provider)
            return

        if provider == OAuthProvider.APPLE:
            if result.session is not None:
                self._navigator.replace(Route.DASHBOARD, reason="social_sign_in")
            self._finish()
        elif not result.success:
            self._stop_listening()
            self._finish()

    # =========================================================================
    # One-shot SIGNED_IN listener
    # =========================================================================

    def _listen_for_sign_in(self) -> None:
        self._stop_listening()
        self._subscription = self._auth.on_auth_state_change(self._on_auth_event)

    def _on_auth_event(self, event: AuthChangeEvent, session: Optional[Session]) -> None:
        if event != AuthChangeEvent.SIGNED_IN or session is None:
            return
        self._stop_listening()
        self._navigator.replace(Route.DASHBOARD, reason="social_sign_in")
        self._finish()

    def _stop_listening(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    # =========================================================================
    # Outcome
    # =========================================================================

    def _finish(self) -> None:
        self._update(loading=None, is_processing=False)

    def _handle_error(self, error: Exception, provider: OAuthProvider) -> None:
        self._stop_listening()

        if isinstance(error, AuthError) and error.code == AuthErrorCode.OAUTH_CANCELLED.value:
            self._finish()
            return

        logger.info("social_sign_in_failed", provider=provider.value, error=str(error))
        message = error.message if isinstance(error, AuthError) else PROVIDER_ERROR_MESSAGES[provider]
        self._update(error=message, loading=None, is_processing=False)

    def clear_error(self) -> None:
        self._update(error=None)

    def reset(self) -> None:
        self._stop_listening()
        self._reset_state()

    def dispose(self) -> None:
        self._stop_listening()
