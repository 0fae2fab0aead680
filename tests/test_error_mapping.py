"""Tests for error normalization and the per-flow pattern tables."""

import pytest

from finyvo_auth.flows.forgot_password import build_forgot_password_errors
from finyvo_auth.flows.reset_password import build_reset_password_errors
from finyvo_auth.flows.sign_in import build_sign_in_errors
from finyvo_auth.flows.verify_email import build_verify_email_errors
from finyvo_auth.services.auth import (
    AuthError,
    AuthErrorCode,
    ErrorPattern,
    ErrorTable,
    error_text,
    is_duplicate_email_error,
    normalize_error,
)
from finyvo_auth.services.backend.interface import BackendNetworkError, IdentityBackendError


class TestErrorTable:
    """Tests for the table mechanics."""

    @pytest.fixture
    def table(self):
        return ErrorTable(
            name="sample",
            patterns=[
                ErrorPattern(code="FIRST", message="first", patterns=(r"alpha",)),
                ErrorPattern(code="SECOND", message="second", patterns=(r"alpha.*beta", r"gamma")),
            ],
            fallback=ErrorPattern(code="GENERIC", message="generic"),
        )

    def test_first_match_wins(self, table):
        assert table.classify("alpha then beta").code == "FIRST"

    def test_case_insensitive(self, table):
        assert table.classify(RuntimeError("GAMMA ray")).code == "SECOND"

    def test_fallback(self, table):
        """Unmatched text never surfaces raw."""
        error = table.classify("something nobody expected")
        assert error.code == "GENERIC"
        assert error.message == "generic"

    def test_none_is_fallback(self, table):
        assert table.classify(None).code == "GENERIC"

    def test_error_for(self, table):
        assert table.error_for("SECOND").message == "second"
        assert table.error_for("MISSING").code == "GENERIC"

    def test_network_error_without_network_row(self, table):
        assert table.classify(BackendNetworkError("x")).code == "GENERIC"


class TestErrorText:
    def test_auth_error_includes_raw(self):
        error = AuthError(AuthErrorCode.UNKNOWN_ERROR, "Oops", raw=IdentityBackendError("Token expired", code="otp_expired"))
        text = error_text(error)
        assert "oops" in text
        assert "token expired" in text
        assert "otp_expired" in text

    def test_plain_string(self):
        assert error_text("ABC") == "abc"


class TestNormalizeError:
    """Tests for the service-level normalization."""

    def test_auth_error_passes_through(self):
        error = AuthError(AuthErrorCode.INVALID_NAME, "Name is required")
        assert normalize_error(error) is error

    @pytest.mark.parametrize("message", [
        "User already registered",
        "Email address already registered",
        "duplicate key value violates unique constraint",
    ])
    def test_duplicate_email(self, message):
        assert normalize_error(IdentityBackendError(message)).code == AuthErrorCode.DUPLICATE_EMAIL.value

    def test_duplicate_by_code(self):
        assert is_duplicate_email_error(IdentityBackendError("Conflict", code="user_already_exists"))

    def test_invalid_credentials(self):
        error = normalize_error(IdentityBackendError("Invalid login credentials"))
        assert error.code == AuthErrorCode.INVALID_CREDENTIALS.value

    def test_email_not_confirmed(self):
        error = normalize_error(IdentityBackendError("Email not confirmed"))
        assert error.code == AuthErrorCode.EMAIL_NOT_CONFIRMED.value

    def test_transport_failure(self):
        error = normalize_error(BackendNetworkError("ConnectError"))
        assert error.code == AuthErrorCode.NETWORK_ERROR.value

    def test_unknown_keeps_raw(self):
        raw = RuntimeError("kaboom")
        error = normalize_error(raw)
        assert error.code == AuthErrorCode.UNKNOWN_ERROR.value
        assert error.raw is raw
        assert "kaboom" not in error.message


class TestFlowTables:
    """The same backend wording maps differently per flow."""

    @pytest.mark.parametrize("message,code", [
        ("Invalid login credentials", "INVALID_CREDENTIALS"),
        ("Email not confirmed", "EMAIL_NOT_VERIFIED"),
        ("Account locked", "ACCOUNT_LOCKED"),
        ("Too many requests", "RATE_LIMIT"),
        ("Network request failed", "NETWORK_ERROR"),
        ("Database error querying schema", "GENERIC"),
    ])
    def test_sign_in(self, message, code):
        assert build_sign_in_errors().classify(IdentityBackendError(message)).code == code

    def test_sign_in_classifies_normalized_errors(self):
        error = normalize_error(IdentityBackendError("Email not confirmed"))
        assert build_sign_in_errors().classify(error).code == "EMAIL_NOT_VERIFIED"

    @pytest.mark.parametrize("message,code", [
        ("User not found", "USER_NOT_FOUND"),
        ("Unable to validate email address: invalid format", "INVALID_EMAIL"),
        ("Email rate limit exceeded", "RATE_LIMIT"),
        ("Error sending recovery email: smtp error", "SERVICE_UNAVAILABLE"),
        ("Fetch failed", "NETWORK_ERROR"),
    ])
    def test_forgot_password(self, message, code):
        assert build_forgot_password_errors().classify(IdentityBackendError(message)).code == code

    @pytest.mark.parametrize("message,code", [
        ("Token has expired or is invalid", "INVALID_TOKEN"),
        ("Email link has expired", "EXPIRED_TOKEN"),
        ("Password is too weak", "WEAK_PASSWORD"),
        ("Auth session missing! no session", "SESSION_ERROR"),
    ])
    def test_reset_password(self, message, code):
        assert build_reset_password_errors().classify(IdentityBackendError(message)).code == code

    @pytest.mark.parametrize("message,code", [
        ("Email already confirmed", "ALREADY_VERIFIED"),
        ("For security purposes, too many requests", "RATE_LIMIT"),
        ("User not found", "USER_NOT_FOUND"),
    ])
    def test_verify_email(self, message, code):
        assert build_verify_email_errors().classify(IdentityBackendError(message)).code == code

    @pytest.mark.parametrize("builder", [
        build_sign_in_errors,
        build_forgot_password_errors,
        build_reset_password_errors,
        build_verify_email_errors,
    ])
    def test_transport_failure_is_network_error(self, builder):
        assert builder().classify(BackendNetworkError("ConnectTimeout")).code == "NETWORK_ERROR"
