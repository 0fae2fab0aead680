"""
Platform Collaborator Interfaces

The native Apple sign-in prompt and the system browser auth session are
supplied by the host app. Only their boundary is described here.
"""

from abc import ABC, abstractmethod

from finyvo_auth.models.auth import AppleCredential, BrowserResult


class AppleCredentialProviderInterface(ABC):
    """Native "Sign in with Apple" prompt."""

    @abstractmethod
    async def is_available(self) -> bool:
        """Whether the device can show the native prompt."""
        pass

    @abstractmethod
    async def request_credential(self, hashed_nonce: str) -> AppleCredential:
        """
        Show the native prompt.

        Args:
            hashed_nonce: SHA-256 hex digest of the raw nonce

        Returns:
            The credential, carrying the identity token when one was issued

        Raises:
            NativeSignInCancelled: The user dismissed the prompt
        """
        pass


class BrowserSessionInterface(ABC):
    """System browser session used for redirect-based OAuth."""

    @abstractmethod
    async def open_auth_session(self, url: str, return_url: str) -> BrowserResult:
        """
        Open `url` and wait until the browser navigates to `return_url`
        or is closed.
        """
        pass


class NativeSignInCancelled(Exception):
    """The user dismissed a native sign-in prompt."""
    pass
