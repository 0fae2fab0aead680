"""
Auth Service

Stateless facade between the per-flow state machines and the identity backend.

DESIGN DECISION: Each operation owns its error policy.
- sign_in passes backend errors through untouched; the sign-in flow maps them
- everything else raises AuthError, normalized by the service table
- local checks (name, password length, email) run before any network call

OAuth comes in two strategies:
1. Native credential (Apple): nonce-bound identity token exchange
2. Browser redirect (Google, Facebook): authorization URL opened in the
   system browser, result parsed when the browser returns
"""

import asyncio
import hashlib
import secrets
from typing import Optional, Union

from finyvo_auth.audit import AuditLogger, get_logger
from finyvo_auth.config import AuthSettings, get_settings
from finyvo_auth.deeplink import build_callback_url, build_redirect, parse_callback
from finyvo_auth.models.auth import (
    AuthResponse,
    BrowserResultType,
    CallbackMode,
    CallbackParams,
    OAuthProvider,
    OAuthResult,
    OtpType,
    ProcessAuthResult,
    Session,
    User,
    normalize_email,
)
from finyvo_auth.models.routes import Route
from finyvo_auth.services.auth.errors import (
    DUPLICATE_EMAIL_MESSAGE,
    AuthError,
    AuthErrorCode,
    is_duplicate_email_error,
    normalize_error,
)
from finyvo_auth.services.backend.interface import (
    AuthStateCallback,
    AuthSubscription,
    IdentityBackendError,
    IdentityBackendInterface,
)
from finyvo_auth.services.platform.interface import (
    AppleCredentialProviderInterface,
    BrowserSessionInterface,
    NativeSignInCancelled,
)


logger = get_logger(__name__)

# Extra authorize-URL options per browser provider
PROVIDER_OPTIONS: dict[OAuthProvider, dict] = {
    OAuthProvider.GOOGLE: {
        "query_params": {"access_type": "offline", "prompt": "consent"},
    },
    OAuthProvider.FACEBOOK: {
        "scopes": "public_profile,email",
    },
}


def generate_nonce(num_bytes: int = 16) -> tuple[str, str]:
    """
    Create an Apple sign-in nonce.

    Returns:
        (raw, hashed): the raw hex nonce goes to the backend, its
        SHA-256 hex digest goes to the native prompt
    """
    try:
        raw = secrets.token_hex(num_bytes)
    except (OSError, NotImplementedError) as e:
        raise AuthError(
            AuthErrorCode.NONCE_FAILED,
            "Could not generate a secure nonce for Apple sign-in",
            raw=e,
        ) from e
    hashed = hashlib.sha256(raw.encode("utf-8")).hexdigest()
    return raw, hashed


class AuthService:
    """
    Auth operations used by the flows and the navigation guard.

    Holds no auth state of its own; the session store and the backend
    client own everything stateful.
    """

    def __init__(
        self,
        backend: IdentityBackendInterface,
        apple_provider: Optional[AppleCredentialProviderInterface] = None,
        browser: Optional[BrowserSessionInterface] = None,
        settings: Optional[AuthSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._backend = backend
        self._apple = apple_provider
        self._browser = browser
        self._settings = settings or get_settings().auth
        self._audit_logger = audit_logger or AuditLogger()
        self._background: set[asyncio.Task] = set()

    @property
    def pending_tasks(self) -> list[asyncio.Task]:
        """Fire-and-forget tasks still running (resends after a duplicate sign-up)."""
        return list(self._background)

    def build_redirect(self, path: Union[Route, str]) -> str:
        """Deep link into the app for `path`, using the configured scheme."""
        value = path.path if isinstance(path, Route) else path
        return build_redirect(value, self._settings.redirect_scheme)

    def _check_password(self, password: str) -> None:
        minimum = self._settings.min_password_length
        if len(password or "") < minimum:
            raise AuthError(
                AuthErrorCode.WEAK_PASSWORD,
                f"Password must be at least {minimum} characters",
            )

    @staticmethod
    def _check_email(email: str) -> str:
        normalized = normalize_email(email)
        if not normalized:
            raise AuthError(AuthErrorCode.INVALID_EMAIL, "Email is required")
        return normalized

    # =========================================================================
    # Email & password
    # =========================================================================

    async def sign_in(self, email: str, password: str) -> AuthResponse:
        """
        Sign in with email and password.

        Raises:
            IdentityBackendError: Unchanged from the backend
        """
        return await self._backend.sign_in_with_password(normalize_email(email), password)

    async def sign_up(self, email: str, password: str, full_name: str) -> AuthResponse:
        """
        Register a new account.

        Both an explicit "already registered" error and a success whose user
        has no identities mean the email is taken; both raise DUPLICATE_EMAIL
        after scheduling a best-effort verification resend.

        Raises:
            AuthError: INVALID_NAME, WEAK_PASSWORD, DUPLICATE_EMAIL or a
                normalized backend error
        """
        normalized = normalize_email(email)
        name = (full_name or "").strip()

        if not name:
            raise AuthError(AuthErrorCode.INVALID_NAME, "Name is required")
        self._check_password(password)

        try:
            response = await self._backend.sign_up(
                normalized,
                password,
                metadata={"full_name": name},
                email_redirect_to=self.build_redirect(Route.VERIFY_EMAIL),
            )
        except IdentityBackendError as e:
            if is_duplicate_email_error(e):
                self._resend_in_background(normalized)
                raise AuthError(AuthErrorCode.DUPLICATE_EMAIL, DUPLICATE_EMAIL_MESSAGE, raw=e) from e
            raise normalize_error(e) from e

        if response.user is not None and response.user.identities == []:
            self._resend_in_background(normalized)
            raise AuthError(AuthErrorCode.DUPLICATE_EMAIL, DUPLICATE_EMAIL_MESSAGE)

        return response

    def _resend_in_background(self, email: str) -> None:
        task = asyncio.ensure_future(self._resend_quietly(email))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _resend_quietly(self, email: str) -> None:
        try:
            await self.resend_verification(email)
        except AuthError as e:
            # Must never change the outcome of the sign-up that scheduled it
            logger.info("background_resend_failed", code=e.code)
        except Exception as e:
            logger.warning("background_resend_failed", error=str(e))

    async def forgot_password(self, email: str) -> None:
        """Send a recovery link that opens the reset-password screen."""
        normalized = self._check_email(email)
        try:
            await self._backend.reset_password_for_email(
                normalized,
                redirect_to=self.build_redirect(Route.RESET_PASSWORD),
            )
        except IdentityBackendError as e:
            raise normalize_error(e) from e

    async def resend_verification(self, email: str) -> None:
        normalized = self._check_email(email)
        try:
            await self._backend.resend("signup", normalized)
        except IdentityBackendError as e:
            raise normalize_error(e) from e

    async def update_password(self, password: str) -> User:
        """Change the password of the current (usually recovery) session."""
        self._check_password(password)
        try:
            return await self._backend.update_user(password)
        except IdentityBackendError as e:
            raise normalize_error(e) from e

    async def sign_out(self) -> None:
        try:
            await self._backend.sign_out()
        except IdentityBackendError as e:
            raise normalize_error(e) from e

    # =========================================================================
    # Session access
    # =========================================================================

    async def get_current_session(self) -> Optional[Session]:
        try:
            return await self._backend.get_session()
        except IdentityBackendError as e:
            raise normalize_error(e) from e

    async def get_current_user(self) -> Optional[User]:
        try:
            return await self._backend.get_user()
        except IdentityBackendError as e:
            raise normalize_error(e) from e

    async def set_session_from_tokens(self, access_token: str, refresh_token: str) -> AuthResponse:
        try:
            return await self._backend.set_session(access_token, refresh_token)
        except IdentityBackendError as e:
            raise normalize_error(e) from e

    def on_auth_state_change(self, callback: AuthStateCallback) -> AuthSubscription:
        return self._backend.on_auth_state_change(callback)

    # =========================================================================
    # Callback reconciliation
    # =========================================================================

    async def process_auth_callback(self, source: Union[str, CallbackParams]) -> ProcessAuthResult:
        """
        Exchange a callback URL into a session.

        Exactly one exchange runs. When several shapes are present the
        precedence is token pair, then code, then token_hash.

        Returns:
            ProcessAuthResult tagged hash / pkce / otp, or `none` when the
            URL carries nothing recognizable

        Raises:
            AuthError: The exchange failed
        """
        params = source if isinstance(source, CallbackParams) else parse_callback(source)

        if params.is_ambiguous:
            logger.warning(
                "ambiguous_callback",
                shapes=[shape.value for shape in params.shapes],
                using=params.shapes[0].value,
            )

        try:
            if params.has_token_pair:
                data = await self._backend.set_session(params.access_token, params.refresh_token)
                return ProcessAuthResult(mode=CallbackMode.HASH, data=data)

            if params.code:
                data = await self._backend.exchange_code_for_session(params.code)
                return ProcessAuthResult(mode=CallbackMode.PKCE, data=data)

            if params.token_hash:
                otp_type = self._otp_type(params.type)
                data = await self._backend.verify_otp(
                    otp_type.value,
                    params.token_hash,
                    email=params.email,
                )
                return ProcessAuthResult(mode=CallbackMode.OTP, otp_type=otp_type, data=data)
        except IdentityBackendError as e:
            raise normalize_error(e) from e

        return ProcessAuthResult.none()

    @staticmethod
    def _otp_type(value: Optional[str]) -> OtpType:
        if not value:
            return OtpType.RECOVERY
        try:
            return OtpType(value)
        except ValueError:
            raise AuthError(AuthErrorCode.UNKNOWN_ERROR, f"Unsupported link type: {value}")

    # =========================================================================
    # OAuth
    # =========================================================================

    async def check_oauth_availability(self) -> dict[OAuthProvider, bool]:
        """Apple depends on the device; browser providers are always available."""
        apple = False
        if self._apple is not None:
            try:
                apple = await self._apple.is_available()
            except Exception as e:
                logger.warning("apple_availability_check_failed", error=str(e))
        return {
            OAuthProvider.APPLE: apple,
            OAuthProvider.GOOGLE: True,
            OAuthProvider.FACEBOOK: True,
        }

    async def sign_in_with_provider(self, provider: OAuthProvider) -> OAuthResult:
        if provider == OAuthProvider.APPLE:
            return await self.sign_in_with_apple()
        return await self._web_oauth(provider)

    async def sign_in_with_apple(self) -> OAuthResult:
        """
        Native Apple sign-in.

        The hashed nonce goes to the native prompt and the raw nonce to the
        backend, binding the identity token to this attempt.

        Raises:
            AuthError: APPLE_NOT_AVAILABLE, OAUTH_CANCELLED (user dismissed
                the prompt), APPLE_TOKEN_MISSING or a normalized backend error
        """
        if self._apple is None or not await self._apple.is_available():
            raise AuthError(
                AuthErrorCode.APPLE_NOT_AVAILABLE,
                "Sign in with Apple is not available on this device",
            )

        raw_nonce, hashed_nonce = generate_nonce(self._settings.nonce_bytes)

        try:
            credential = await self._apple.request_credential(hashed_nonce)
        except NativeSignInCancelled as e:
            raise AuthError(AuthErrorCode.OAUTH_CANCELLED, "Sign-in cancelled", raw=e) from e

        if not credential.identity_token:
            raise AuthError(
                AuthErrorCode.APPLE_TOKEN_MISSING,
                "Apple did not return an identity token",
            )

        try:
            response = await self._backend.sign_in_with_id_token(
                OAuthProvider.APPLE.value,
                credential.identity_token,
                nonce=raw_nonce,
            )
        except IdentityBackendError as e:
            raise normalize_error(e) from e

        return OAuthResult(
            success=True,
            provider=OAuthProvider.APPLE,
            user=response.user,
            session=response.session,
        )

    async def sign_in_with_google(self) -> OAuthResult:
        return await self._web_oauth(OAuthProvider.GOOGLE)

    async def sign_in_with_facebook(self) -> OAuthResult:
        return await self._web_oauth(OAuthProvider.FACEBOOK)

    async def _web_oauth(self, provider: OAuthProvider) -> OAuthResult:
        """
        Browser-redirect OAuth.

        A cancelled or dismissed browser is not an error: the result comes
        back with cancelled=True.
        """
        if self._browser is None:
            raise AuthError(AuthErrorCode.UNKNOWN_ERROR, "No browser session available")

        return_url = build_callback_url(self._settings.redirect_scheme)

        try:
            auth_url = await self._backend.sign_in_with_oauth(
                provider.value,
                redirect_to=return_url,
                **PROVIDER_OPTIONS.get(provider, {}),
            )
        except IdentityBackendError as e:
            raise normalize_error(e) from e

        if not auth_url:
            raise AuthError(
                AuthErrorCode.OAUTH_URL_MISSING,
                f"Could not start {provider.value} sign-in",
            )

        result = await self._browser.open_auth_session(auth_url, return_url)

        if result.type in (BrowserResultType.CANCEL, BrowserResultType.DISMISS):
            return OAuthResult(success=False, cancelled=True, provider=provider)

        if result.type != BrowserResultType.SUCCESS:
            raise AuthError(AuthErrorCode.UNKNOWN_ERROR, "Another sign-in is already in progress")

        response = AuthResponse()
        if result.url:
            params = parse_callback(result.url)
            if params.error:
                raise AuthError(
                    AuthErrorCode.UNKNOWN_ERROR,
                    params.error_description or params.error,
                )
            try:
                if params.code:
                    response = await self._backend.exchange_code_for_session(params.code)
                elif params.has_token_pair:
                    response = await self._backend.set_session(
                        params.access_token,
                        params.refresh_token,
                    )
            except IdentityBackendError as e:
                raise normalize_error(e) from e

        return OAuthResult(
            success=True,
            provider=provider,
            user=response.user,
            session=response.session,
        )
