"""
Navigation Guard Rules

DESIGN DECISION: The guard is a prioritized rule table, not nested ifs.
Rules are evaluated top to bottom and the first one that applies decides.
The order is the policy:

    booting > recovery > reset/forgot allowance > onboarding
            > authenticated routing > unauthenticated redirect

`evaluate()` is pure, so every combination of inputs can be tested without
a router, a store or an event loop.
"""

from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

from finyvo_auth.models.routes import AUTH_GROUP, Route


class GuardState(str, Enum):
    """Named outcome of one evaluation."""
    BOOTING = "booting"
    RECOVERY_FORCED = "recovery_forced"
    UNAUTH_ROUTE_ALLOWED = "unauth_route_allowed"
    AUTHENTICATED_ONBOARDING = "authenticated_onboarding"
    AUTHENTICATED_ROUTING = "authenticated_routing"
    UNAUTH_REDIRECT = "unauth_redirect"
    ALLOWED = "allowed"


# Auth-group screens a signed-in user may stay on
AUTHENTICATED_EXCEPTIONS = frozenset({
    Route.VERIFY_EMAIL.screen,
    Route.EMAIL_VERIFIED.screen,
    Route.ONBOARDING.screen,
})


class GuardInputs(BaseModel):
    """Everything the guard looks at, captured at one instant."""
    model_config = ConfigDict(frozen=True)

    is_loading: bool = False
    link_ready: bool = True
    processing_link: bool = False
    has_session: bool = False
    is_onboarded: bool = False
    is_recovery_session: bool = False
    segments: tuple[str, ...] = ()

    @property
    def in_auth_group(self) -> bool:
        return bool(self.segments) and self.segments[0] == AUTH_GROUP

    def on(self, route: Route) -> bool:
        return route.screen in self.segments

    @property
    def on_excepted_screen(self) -> bool:
        return any(segment in AUTHENTICATED_EXCEPTIONS for segment in self.segments)


class GuardDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: GuardState
    target: Optional[Route] = None
    force: bool = False

    @property
    def redirects(self) -> bool:
        return self.target is not None


class GuardRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: GuardState
    applies: Callable[[GuardInputs], bool]
    target: Optional[Route] = None
    force: bool = False

    def decision(self) -> GuardDecision:
        return GuardDecision(state=self.state, target=self.target, force=self.force)


RULES: tuple[GuardRule, ...] = (
    # Nothing is decided until boot is done and any deep link is settled
    GuardRule(
        state=GuardState.BOOTING,
        applies=lambda i: i.is_loading or not i.link_ready or i.processing_link,
    ),
    # A recovery session never leaks out of the reset screen
    GuardRule(
        state=GuardState.RECOVERY_FORCED,
        applies=lambda i: i.is_recovery_session and not i.on(Route.RESET_PASSWORD),
        target=Route.RESET_PASSWORD,
        force=True,
    ),
    GuardRule(
        state=GuardState.UNAUTH_ROUTE_ALLOWED,
        applies=lambda i: i.on(Route.RESET_PASSWORD) or i.on(Route.FORGOT_PASSWORD),
    ),
    GuardRule(
        state=GuardState.AUTHENTICATED_ONBOARDING,
        applies=lambda i: i.has_session and not i.is_onboarded and not i.on_excepted_screen,
        target=Route.ONBOARDING,
        force=True,
    ),
    GuardRule(
        state=GuardState.AUTHENTICATED_ROUTING,
        applies=lambda i: i.has_session and i.in_auth_group and not i.on_excepted_screen,
        target=Route.DASHBOARD,
    ),
    GuardRule(
        state=GuardState.ALLOWED,
        applies=lambda i: i.has_session,
    ),
    GuardRule(
        state=GuardState.UNAUTH_REDIRECT,
        applies=lambda i: not i.in_auth_group and len(i.segments) > 0,
        target=Route.SIGN_IN,
    ),
    # Onboarding needs a session
    GuardRule(
        state=GuardState.UNAUTH_REDIRECT,
        applies=lambda i: i.on(Route.ONBOARDING),
        target=Route.SIGN_IN,
    ),
)


def evaluate(inputs: GuardInputs, rules: tuple[GuardRule, ...] = RULES) -> GuardDecision:
    """First applicable rule wins; no match means the screen is allowed."""
    for rule in rules:
        if rule.applies(inputs):
            return rule.decision()
    return GuardDecision(state=GuardState.ALLOWED)
