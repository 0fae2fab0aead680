"""
Supabase Identity Backend

DESIGN DECISION: Supabase is the hosted identity backend because:
1. Email/password, OTP links and OAuth providers come out of the box
2. Its client already persists and restores the session
3. The app's data tables live in the same project

This adapter is the only module that touches the Supabase client. It:
- Converts Supabase's response models into this package's Session / User
- Converts Supabase and transport exceptions into IdentityBackendError
- Runs its own auto-refresh loop so it can be paused when the app is
  backgrounded (the client's built-in timer is disabled)
"""

import asyncio
from typing import Any, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions
from supabase_auth.errors import AuthError as SupabaseAuthError
from supabase_auth.errors import AuthRetryableError
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from finyvo_auth.audit import get_logger
from finyvo_auth.config import get_settings
from finyvo_auth.models.auth import (
    AuthChangeEvent,
    AuthResponse,
    Session,
    User,
)
from finyvo_auth.services.backend.interface import (
    AuthStateCallback,
    AuthSubscription,
    BackendNetworkError,
    IdentityBackendError,
    IdentityBackendInterface,
)


logger = get_logger(__name__)

# PostgREST answers that still prove the backend is reachable:
# no rows, JWT missing/invalid, RLS denial.
REACHABLE_ERROR_CODES = frozenset({"PGRST116", "PGRST301", "PGRST302", "42501", "401", "403"})

CONNECTION_PROBE_TABLE = "users"


def _dump(raw: Any) -> dict:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    return raw.model_dump()


def to_user(raw: Any) -> Optional[User]:
    """Convert a Supabase user (model or dict) into a User."""
    if raw is None:
        return None
    return User.model_validate(_dump(raw))


def to_session(raw: Any) -> Optional[Session]:
    """Convert a Supabase session (model or dict) into a Session."""
    if raw is None:
        return None
    return Session.model_validate(_dump(raw))


def to_auth_response(raw: Any) -> AuthResponse:
    return AuthResponse(
        user=to_user(getattr(raw, "user", None)),
        session=to_session(getattr(raw, "session", None)),
    )


class _SupabaseSubscription(AuthSubscription):
    """Wraps the client's subscription so unsubscribe can be called twice."""

    def __init__(self, subscription: Any):
        self._subscription = subscription
        self._active = True

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._subscription.unsubscribe()


class SupabaseIdentityBackend(IdentityBackendInterface):
    """
    Identity backend backed by the Supabase async client.

    Use `await SupabaseIdentityBackend.create()` to build one from settings.
    """

    def __init__(
        self,
        client: AsyncClient,
        refresh_interval: Optional[float] = None,
        connection_attempts: Optional[int] = None,
    ):
        auth_settings = get_settings().auth
        self._client = client
        self._refresh_interval = refresh_interval or auth_settings.auto_refresh_interval_seconds
        self._connection_attempts = connection_attempts or auth_settings.connection_check_attempts
        self._refresh_task: Optional[asyncio.Task] = None

    @classmethod
    async def create(cls) -> "SupabaseIdentityBackend":
        """Build the async client from SUPABASE_URL / SUPABASE_ANON_KEY."""
        settings = get_settings().supabase
        client = await acreate_client(
            settings.url,
            settings.anon_key,
            options=AsyncClientOptions(
                auto_refresh_token=False,
                persist_session=True,
                flow_type="pkce",
            ),
        )
        return cls(client)

    @property
    def _auth(self):
        return self._client.auth

    async def _call(self, operation: str, awaitable):
        """Await a client call, translating its exceptions."""
        try:
            return await awaitable
        except (httpx.HTTPError, AuthRetryableError) as e:
            logger.warning("backend_unreachable", operation=operation, error=str(e))
            raise BackendNetworkError(
                "Network request failed",
                status=getattr(e, "status", None),
            ) from e
        except SupabaseAuthError as e:
            raise IdentityBackendError(
                getattr(e, "message", None) or str(e),
                code=getattr(e, "code", None),
                status=getattr(e, "status", None),
            ) from e

    # =========================================================================
    # Credentials
    # =========================================================================

    async def sign_in_with_password(self, email: str, password: str) -> AuthResponse:
        response = await self._call(
            "sign_in_with_password",
            self._auth.sign_in_with_password({"email": email, "password": password}),
        )
        return to_auth_response(response)

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: Optional[dict[str, Any]] = None,
        email_redirect_to: Optional[str] = None,
    ) -> AuthResponse:
        options: dict[str, Any] = {"data": metadata or {}}
        if email_redirect_to:
            options["email_redirect_to"] = email_redirect_to
        response = await self._call(
            "sign_up",
            self._auth.sign_up({"email": email, "password": password, "options": options}),
        )
        return to_auth_response(response)

    async def sign_out(self) -> None:
        await self._call("sign_out", self._auth.sign_out())

    async def get_session(self) -> Optional[Session]:
        return to_session(await self._call("get_session", self._auth.get_session()))

    async def get_user(self) -> Optional[User]:
        response = await self._call("get_user", self._auth.get_user())
        return to_user(getattr(response, "user", None))

    def on_auth_state_change(self, callback: AuthStateCallback) -> AuthSubscription:
        def relay(event: str, session: Any) -> None:
            try:
                change = AuthChangeEvent(event)
            except ValueError:
                logger.debug("auth_event_ignored", auth_event=event)
                return
            callback(change, to_session(session))

        return _SupabaseSubscription(self._auth.on_auth_state_change(relay))

    # =========================================================================
    # Links & OTP
    # =========================================================================

    async def reset_password_for_email(self, email: str, redirect_to: Optional[str] = None) -> None:
        options = {"redirect_to": redirect_to} if redirect_to else {}
        await self._call(
            "reset_password_for_email",
            self._auth.reset_password_for_email(email, options),
        )

    async def verify_otp(
        self,
        type: str,
        token_hash: str,
        email: Optional[str] = None,
    ) -> AuthResponse:
        params: dict[str, Any] = {"type": type, "token_hash": token_hash}
        if email:
            params["email"] = email
        response = await self._call("verify_otp", self._auth.verify_otp(params))
        return to_auth_response(response)

    async def exchange_code_for_session(self, code: str) -> AuthResponse:
        response = await self._call(
            "exchange_code_for_session",
            self._auth.exchange_code_for_session({"auth_code": code}),
        )
        return to_auth_response(response)

    async def set_session(self, access_token: str, refresh_token: str) -> AuthResponse:
        response = await self._call(
            "set_session",
            self._auth.set_session(access_token, refresh_token),
        )
        return to_auth_response(response)

    async def update_user(self, password: str) -> User:
        response = await self._call(
            "update_user",
            self._auth.update_user({"password": password}),
        )
        user = to_user(getattr(response, "user", None))
        if user is None:
            raise IdentityBackendError("No user returned after update")
        return user

    async def resend(self, type: str, email: str, email_redirect_to: Optional[str] = None) -> None:
        params: dict[str, Any] = {"type": type, "email": email}
        if email_redirect_to:
            params["options"] = {"email_redirect_to": email_redirect_to}
        await self._call("resend", self._auth.resend(params))

    # =========================================================================
    # OAuth
    # =========================================================================

    async def sign_in_with_oauth(
        self,
        provider: str,
        redirect_to: str,
        scopes: Optional[str] = None,
        query_params: Optional[dict[str, str]] = None,
    ) -> Optional[str]:
        options: dict[str, Any] = {
            "redirect_to": redirect_to,
            "skip_browser_redirect": True,
        }
        if scopes:
            options["scopes"] = scopes
        if query_params:
            options["query_params"] = query_params
        response = await self._call(
            "sign_in_with_oauth",
            self._auth.sign_in_with_oauth({"provider": provider, "options": options}),
        )
        return getattr(response, "url", None)

    async def sign_in_with_id_token(
        self,
        provider: str,
        token: str,
        nonce: Optional[str] = None,
    ) -> AuthResponse:
        params: dict[str, Any] = {"provider": provider, "token": token}
        if nonce:
            params["nonce"] = nonce
        response = await self._call(
            "sign_in_with_id_token",
            self._auth.sign_in_with_id_token(params),
        )
        return to_auth_response(response)

    # =========================================================================
    # Connectivity & refresh
    # =========================================================================

    async def _probe(self) -> None:
        try:
            await self._client.table(CONNECTION_PROBE_TABLE).select("id").limit(1).execute()
        except APIError as e:
            if str(e.code) not in REACHABLE_ERROR_CODES:
                raise

    async def check_connection(self) -> bool:
        """
        Probe the REST endpoint with a one-row select.

        Retried with exponential backoff; an answer that is only an
        authorization or no-rows error still counts as connected.
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._connection_attempts),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
                reraise=True,
            ):
                with attempt:
                    await self._probe()
        except (APIError, httpx.HTTPError) as e:
            logger.error("backend_connection_failed", error=str(e))
            return False

        logger.info("backend_connection_ok")
        return True

    async def _auto_refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self._refresh_interval)
            try:
                # get_session refreshes the access token when it has expired
                await self._auth.get_session()
            except (SupabaseAuthError, httpx.HTTPError) as e:
                logger.warning("auto_refresh_failed", error=str(e))

    def start_auto_refresh(self) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            return
        self._refresh_task = asyncio.get_running_loop().create_task(self._auto_refresh_loop())

    def stop_auto_refresh(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None
