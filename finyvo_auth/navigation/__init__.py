"""Navigation guard package."""

from finyvo_auth.models.routes import AUTH_GROUP, Route, route_segments
from finyvo_auth.navigation.guard import NavigationGuard
from finyvo_auth.navigation.navigator import GuardedNavigator, NavigationLease
from finyvo_auth.navigation.router import InMemoryRouter, RouterInterface
from finyvo_auth.navigation.rules import (
    RULES,
    GuardDecision,
    GuardInputs,
    GuardRule,
    GuardState,
    evaluate,
)

__all__ = [
    "AUTH_GROUP",
    "GuardDecision",
    "GuardInputs",
    "GuardRule",
    "GuardState",
    "GuardedNavigator",
    "InMemoryRouter",
    "NavigationGuard",
    "NavigationLease",
    "RULES",
    "Route",
    "RouterInterface",
    "evaluate",
    "route_segments",
]
