"""Tests for local credential validation."""

import pytest

from finyvo_auth.config import AuthSettings
from finyvo_auth.models.auth import (
    ResetPasswordCredentials,
    SignInCredentials,
    SignUpCredentials,
    ValidationIssue,
    ValidationResult,
)
from finyvo_auth.validation import CredentialValidator


@pytest.fixture
def validator():
    return CredentialValidator(AuthSettings())


class TestSignIn:
    def test_valid(self, validator):
        result = validator.validate_sign_in(SignInCredentials(email="ana@example.com", password="x"))
        assert result.is_valid
        assert result.issues == []

    def test_missing_fields(self, validator):
        result = validator.validate_sign_in(SignInCredentials(email="", password=""))
        assert not result.is_valid
        assert {issue.field for issue in result.issues} == {"email", "password"}

    def test_bad_email(self, validator):
        result = validator.validate_sign_in(SignInCredentials(email="ana@", password="x"))
        assert result.first_error.issue_type == "invalid_format"
        assert result.first_error.suggested_fix is not None


class TestSignUp:
    """Tests for sign-up validation."""

    def test_weak_mix_is_only_a_warning(self, validator):
        """Sign-up accepts a long password without mixed characters."""
        result = validator.validate_sign_up(SignUpCredentials(
            email="ana@example.com",
            password="alllowercase",
            full_name="Ana",
        ))
        assert result.is_valid
        assert len(result.warnings) == 1

    def test_short_password_blocks(self, validator):
        result = validator.validate_sign_up(SignUpCredentials(
            email="ana@example.com",
            password="Ab1",
            full_name="Ana",
        ))
        assert not result.is_valid
        assert result.first_error.issue_type == "too_short"

    def test_missing_name(self, validator):
        result = validator.validate_sign_up(SignUpCredentials(
            email="ana@example.com",
            password="Secret123",
            full_name="   ",
        ))
        assert result.first_error.field == "full_name"

    def test_min_length_from_settings(self):
        validator = CredentialValidator(AuthSettings(min_password_length=12))
        result = validator.validate_sign_up(SignUpCredentials(
            email="ana@example.com",
            password="Secret12345",
            full_name="Ana",
        ))
        assert result.error_count == 1


class TestReset:
    @pytest.mark.parametrize("password,confirm,issue_type", [
        ("", "Secret123", "missing"),
        ("Secret123", "Secret124", "mismatch"),
        ("Sec1", "Sec1", "too_short"),
        ("alllowercase1", "alllowercase1", "weak"),
    ])
    def test_errors(self, validator, password, confirm, issue_type):
        result = validator.validate_reset(ResetPasswordCredentials(password=password, confirm_password=confirm))
        assert not result.is_valid
        assert result.first_error.issue_type == issue_type

    def test_valid(self, validator):
        result = validator.validate_reset(ResetPasswordCredentials(password="Secret123", confirm_password="Secret123"))
        assert result.is_valid
        assert result.warnings == []


class TestSummary:
    def test_all_good(self, validator):
        assert validator.get_user_friendly_summary(ValidationResult(is_valid=True)) == "All good."

    def test_errors_then_warnings(self, validator):
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(field="password", issue_type="weak", message="Mix it up", severity="warning"),
                ValidationIssue(field="email", issue_type="missing", message="Email is required"),
            ],
            warnings=["Mix it up"],
        )
        summary = validator.get_user_friendly_summary(result)
        assert summary.splitlines() == ["- Email is required", "- Mix it up (optional)"]
