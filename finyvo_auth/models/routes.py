"""
Route Surface

Logical destinations the guard and the flows navigate between.
Paths follow the app router's group syntax: `(auth)` screens are
reachable without a session, `(tabs)` screens need one.
"""

from enum import Enum


AUTH_GROUP = "(auth)"
TABS_GROUP = "(tabs)"


class Route(str, Enum):
    SIGN_IN = "/(auth)/sign-in"
    SIGN_UP = "/(auth)/sign-up"
    FORGOT_PASSWORD = "/(auth)/forgot-password"
    RESET_PASSWORD = "/(auth)/reset-password"
    VERIFY_EMAIL = "/(auth)/verify-email"
    EMAIL_VERIFIED = "/(auth)/email-verified"
    ONBOARDING = "/(auth)/onboarding"
    DASHBOARD = "/(tabs)/dashboard"

    @property
    def path(self) -> str:
        return self.value

    @property
    def screen(self) -> str:
        """Last path segment, e.g. 'sign-in'."""
        return self.value.rsplit("/", 1)[-1]


def route_segments(path: str) -> list[str]:
    """Split a path into its segments: '/(auth)/sign-in' -> ['(auth)', 'sign-in']."""
    return [part for part in (path or "").split("?", 1)[0].split("/") if part]
