"""
Abstract Identity Backend Interface

DESIGN DECISION: The hosted identity backend is an opaque collaborator.
The orchestration layer only relies on the operations below. This allows us to:
1. Run the whole store / guard / flow stack against an in-memory fake in tests
2. Keep the Supabase client's response shapes out of business logic
3. Swap providers without touching the flows

All methods return this package's own models (Session, User, AuthResponse).
Failures raise IdentityBackendError; transport failures raise its subclass
BackendNetworkError.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from finyvo_auth.models.auth import (
    AuthChangeEvent,
    AuthResponse,
    Session,
    User,
)


AuthStateCallback = Callable[[AuthChangeEvent, Optional[Session]], None]


class AuthSubscription(ABC):
    """Handle returned by `on_auth_state_change`."""

    @abstractmethod
    def unsubscribe(self) -> None:
        """Stop delivering events to the registered callback. Idempotent."""
        pass


class IdentityBackendInterface(ABC):
    """
    Abstract interface for the identity backend.

    Any provider (Supabase, a fake for tests...) must implement these methods.
    """

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> AuthResponse:
        """
        Authenticate with email and password.

        Raises:
            IdentityBackendError: Wrong credentials, unconfirmed email...
        """
        pass

    @abstractmethod
    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: Optional[dict[str, Any]] = None,
        email_redirect_to: Optional[str] = None,
    ) -> AuthResponse:
        """
        Register a new account.

        Returns:
            AuthResponse whose session is None when email confirmation
            is required. A user with an empty identities list means the
            email is already registered.
        """
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        """Revoke the current session on the backend."""
        pass

    @abstractmethod
    async def get_session(self) -> Optional[Session]:
        """Current session as persisted by the backend client, if any."""
        pass

    @abstractmethod
    async def get_user(self) -> Optional[User]:
        """Fresh user record for the current session."""
        pass

    @abstractmethod
    def on_auth_state_change(self, callback: AuthStateCallback) -> AuthSubscription:
        """
        Register a callback for backend-pushed auth events.

        Args:
            callback: Called with (event, session) for every change

        Returns:
            Subscription handle; call `unsubscribe()` to stop delivery
        """
        pass

    @abstractmethod
    async def reset_password_for_email(self, email: str, redirect_to: Optional[str] = None) -> None:
        """Send a password-recovery link."""
        pass

    @abstractmethod
    async def verify_otp(
        self,
        type: str,
        token_hash: str,
        email: Optional[str] = None,
    ) -> AuthResponse:
        """
        Verify a one-time link's token_hash.

        Args:
            type: OTP type (recovery, signup, email_change...)
            token_hash: Hash carried by the emailed link
            email: Email the link was sent to, when known
        """
        pass

    @abstractmethod
    async def exchange_code_for_session(self, code: str) -> AuthResponse:
        """Exchange a PKCE authorization code for a session."""
        pass

    @abstractmethod
    async def set_session(self, access_token: str, refresh_token: str) -> AuthResponse:
        """Adopt a token pair delivered in a URL fragment."""
        pass

    @abstractmethod
    async def update_user(self, password: str) -> User:
        """Change the current user's password."""
        pass

    @abstractmethod
    async def resend(self, type: str, email: str, email_redirect_to: Optional[str] = None) -> None:
        """Resend a confirmation email (type is usually 'signup')."""
        pass

    @abstractmethod
    async def sign_in_with_oauth(
        self,
        provider: str,
        redirect_to: str,
        scopes: Optional[str] = None,
        query_params: Optional[dict[str, str]] = None,
    ) -> Optional[str]:
        """
        Request a provider authorization URL without opening a browser.

        Returns:
            The URL to open, or None if the backend did not return one
        """
        pass

    @abstractmethod
    async def sign_in_with_id_token(
        self,
        provider: str,
        token: str,
        nonce: Optional[str] = None,
    ) -> AuthResponse:
        """Exchange a native provider identity token (Apple) for a session."""
        pass

    @abstractmethod
    async def check_connection(self) -> bool:
        """Probe backend reachability. Never raises."""
        pass

    @abstractmethod
    def start_auto_refresh(self) -> None:
        """Begin refreshing the session in the background (app foreground)."""
        pass

    @abstractmethod
    def stop_auto_refresh(self) -> None:
        """Stop background refresh (app background)."""
        pass


class IdentityBackendError(Exception):
    """Base exception for identity backend operations."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


class BackendNetworkError(IdentityBackendError):
    """Could not reach the identity backend."""
    pass
