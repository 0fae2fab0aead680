"""
Data Models Package

This package contains all Pydantic models used by the Finyvo auth layer.
Everything the store, the guard and the flows exchange conforms to these schemas.
"""

from finyvo_auth.models.auth import (
    CALLBACK_PARAM_KEYS,
    AppleCredential,
    AuthChangeEvent,
    AuthResponse,
    AuthState,
    BrowserResult,
    BrowserResultType,
    CallbackKind,
    CallbackMode,
    CallbackParams,
    FlowError,
    ForgotPasswordCredentials,
    OAuthProvider,
    OAuthResult,
    OnboardingRecord,
    OtpType,
    ProcessAuthResult,
    ResetPasswordCredentials,
    Session,
    SignInCredentials,
    SignUpCredentials,
    User,
    UserIdentity,
    ValidationIssue,
    ValidationResult,
    normalize_email,
)
from finyvo_auth.models.routes import AUTH_GROUP, TABS_GROUP, Route, route_segments
from finyvo_auth.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Auth models
    "CALLBACK_PARAM_KEYS",
    "AppleCredential",
    "AuthChangeEvent",
    "AuthResponse",
    "AuthState",
    "BrowserResult",
    "BrowserResultType",
    "CallbackKind",
    "CallbackMode",
    "CallbackParams",
    "FlowError",
    "ForgotPasswordCredentials",
    "OAuthProvider",
    "OAuthResult",
    "OnboardingRecord",
    "OtpType",
    "ProcessAuthResult",
    "ResetPasswordCredentials",
    "Session",
    "SignInCredentials",
    "SignUpCredentials",
    "User",
    "UserIdentity",
    "ValidationIssue",
    "ValidationResult",
    "normalize_email",
    # Routes
    "AUTH_GROUP",
    "TABS_GROUP",
    "Route",
    "route_segments",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
