"""
Shared fixtures for Finyvo Auth tests.

Test strategy:
1. Pure pieces (parser, reducer, guard rules, error tables) tested directly
2. Stateful pieces (store, guard, flows) tested against an in-memory backend
3. No real network calls in tests
"""

import pytest

from finyvo_auth.audit import AuditLogger
from finyvo_auth.config import AuthSettings
from finyvo_auth.navigation import GuardedNavigator, InMemoryRouter, NavigationGuard
from finyvo_auth.services.auth import AuthService
from finyvo_auth.services.storage import InMemoryOnboardingStorage
from finyvo_auth.store import SessionStore

from tests.fakes import FakeAppleProvider, FakeBrowser, FakeIdentityBackend, ManualClock


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def settings():
    return AuthSettings()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def backend():
    return FakeIdentityBackend()


@pytest.fixture
def browser():
    return FakeBrowser()


@pytest.fixture
def apple():
    return FakeAppleProvider()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def storage():
    return InMemoryOnboardingStorage()


@pytest.fixture
def auth_service(backend, apple, browser, settings, audit_logger):
    return AuthService(
        backend,
        apple_provider=apple,
        browser=browser,
        settings=settings,
        audit_logger=audit_logger,
    )


@pytest.fixture
def store(backend, storage, audit_logger):
    return SessionStore(backend, storage=storage, audit_logger=audit_logger)


@pytest.fixture
def router():
    return InMemoryRouter("/(auth)/sign-in")


@pytest.fixture
def navigator(router, clock, audit_logger):
    return GuardedNavigator(router, debounce_seconds=0.15, clock=clock, audit_logger=audit_logger)


@pytest.fixture
def guard(store, auth_service, navigator, audit_logger):
    guard = NavigationGuard(store, auth_service, navigator, audit_logger=audit_logger)
    yield guard
    guard.stop()
