"""
Tests for Finyvo Auth models

Test strategy:
1. Unit tests for the pydantic models (credentials, snapshots, audit events)
2. Settings defaults, so the stack runs with no environment at all
"""

from uuid import uuid4

import pytest
from pydantic import ValidationError

from finyvo_auth.config import AuthSettings, validate_all_settings
from finyvo_auth.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finyvo_auth.models.auth import (
    AuthState,
    CallbackParams,
    OnboardingRecord,
    SignInCredentials,
    SignUpCredentials,
    User,
    UserIdentity,
    ValidationIssue,
    ValidationResult,
)

from tests.fakes import make_session, make_user


class TestUserModels:
    """Tests for backend-owned user records."""

    def test_user_metadata_accessors(self):
        """Test full name and initials from metadata."""
        user = make_user(full_name="Ana Lopez")
        assert user.full_name == "Ana Lopez"
        assert user.initials == "AL"

    def test_email_confirmation(self):
        assert make_user(confirmed=True).is_email_confirmed
        assert not make_user(confirmed=False).is_email_confirmed

    def test_identities_default_is_none(self):
        """An empty list and a missing list mean different things."""
        user = User(id="user-a")
        assert user.identities is None
        assert make_user(identities=[]).identities == []

    def test_identity_provider(self):
        assert UserIdentity(provider="google").provider == "google"


class TestAuthState:
    """Tests for the session store snapshot."""

    def test_defaults(self):
        state = AuthState()
        assert state.is_loading
        assert not state.is_authenticated
        assert not state.is_recovery_session

    def test_onboarding_per_user(self):
        record = OnboardingRecord(by_user={"user-a": True})
        state = AuthState(session=make_session(), user=make_user("user-a"), onboarding=record)
        assert state.is_onboarded
        assert not state.needs_onboarding

        other = AuthState(session=make_session(), user=make_user("user-b"), onboarding=record)
        assert other.needs_onboarding

    def test_legacy_slot_without_user(self):
        assert AuthState(onboarding=OnboardingRecord(legacy=True)).is_onboarded

    def test_snapshot_is_frozen(self):
        with pytest.raises(ValidationError):
            AuthState().is_loading = False


class TestCredentials:
    """Tests for credential normalization."""

    def test_sign_in_email_normalized(self):
        credentials = SignInCredentials(email="  Ana@Example.COM ", password="x")
        assert credentials.email == "ana@example.com"

    def test_sign_up_name_stripped(self):
        credentials = SignUpCredentials(email="a@b.co", password="x", full_name="  Ana  ")
        assert credentials.full_name == "Ana"


class TestCallbackParams:
    def test_empty(self):
        assert CallbackParams().is_empty

    def test_token_pair_needs_both(self):
        assert not CallbackParams(access_token="A").has_token_pair


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="email",
                    issue_type="missing",
                    message="Email is required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors
        assert result.error_count == 1
        assert result.first_error.field == "email"

    def test_validation_result_warnings_only(self):
        """Test result with only warnings."""
        result = ValidationResult(
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="password",
                    issue_type="weak",
                    message="Mix letters and numbers",
                    severity="warning",
                ),
            ],
        )
        assert not result.has_errors
        assert result.first_error is None

    def test_unknown_severity_rejected(self):
        with pytest.raises(ValidationError):
            ValidationIssue(field="email", issue_type="missing", message="x", severity="fatal")


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.SESSION_INITIALIZED,
            description="Session store initialized",
        )
        assert event.event_type == AuditEventType.SESSION_INITIALIZED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.DEEP_LINK_FAILED,
            correlation_id=correlation_id,
            description="Deep link processing failed: recovery",
            error_message="Token has expired",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "deep_link_failed"
        assert log_dict["correlation_id"] == str(correlation_id)
        assert log_dict["error_message"] == "Token has expired"

    def test_audit_event_builder_redirect_issued(self):
        """Test AuditEventBuilder.redirect_issued."""
        event = AuditEventBuilder.redirect_issued(
            "/(auth)/sign-in",
            "/(tabs)/dashboard",
            forced=False,
            reason="authenticated_routing",
        )
        assert event.event_type == AuditEventType.REDIRECT_ISSUED
        assert event.severity == AuditSeverity.DEBUG
        assert event.details["to"] == "/(tabs)/dashboard"

    def test_audit_event_builder_onboarding_without_user(self):
        """Writing the legacy slot is worth a warning."""
        event = AuditEventBuilder.onboarding_updated(None, True)
        assert event.severity == AuditSeverity.WARNING
        assert event.is_user_action

    def test_audit_event_builder_unmatched_error(self):
        event = AuditEventBuilder.backend_error_unmatched("sign_in", "weird message", "GENERIC")
        assert event.error_code == "GENERIC"
        assert event.details == {"table": "sign_in"}


class TestSettings:
    """Every setting has a usable default."""

    def test_auth_defaults(self):
        settings = AuthSettings()
        assert settings.redirect_scheme == "finyvo"
        assert settings.min_password_length == 8
        assert settings.navigation_debounce_seconds == pytest.approx(0.15)
        assert settings.forgot_password_max_requests == 3
        assert settings.forgot_password_window_seconds == 30
        assert settings.verify_email_cooldown_seconds == 45

    def test_minimum_password_length_bounded(self):
        with pytest.raises(ValidationError):
            AuthSettings(min_password_length=2)

    def test_validate_all_settings_reports_missing_backend(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
        monkeypatch.chdir("/")

        results = validate_all_settings()

        assert results["auth"] is True
        assert results["supabase"] is False
