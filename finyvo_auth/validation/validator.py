"""
Credential Validation

DESIGN DECISION: Credentials are checked locally before any network call.
Two kinds of findings:

ERRORS - block submission:
- Missing email, password or name
- Malformed email
- Password shorter than the configured minimum
- Confirmation that does not match (reset)

WARNINGS - shown, do not block:
- Sign-up password without upper-case, lower-case and a digit

The reset-password screen is stricter: there the mixed-character rule
is an error, matching what the reset flow enforces.

IMPORTANT: Validation never rewrites input. Email normalization
happens in the credential models, not here.
"""

import re
from typing import Optional

from finyvo_auth.config import AuthSettings, get_settings
from finyvo_auth.models.auth import (
    ResetPasswordCredentials,
    SignInCredentials,
    SignUpCredentials,
    ValidationIssue,
    ValidationResult,
)


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class CredentialValidator:
    """
    Validates sign-in, sign-up and reset-password input.

    Usage:
        validator = CredentialValidator()
        result = validator.validate_sign_up(credentials)
        if not result.is_valid:
            show(result.first_error.message)
    """

    def __init__(self, settings: Optional[AuthSettings] = None):
        self._settings = settings or get_settings().auth

    def _validate_email(self, email: str) -> list[ValidationIssue]:
        if not email:
            return [ValidationIssue(
                field="email",
                issue_type="missing",
                message="Email is required",
            )]
        if not EMAIL_PATTERN.match(email):
            return [ValidationIssue(
                field="email",
                issue_type="invalid_format",
                message="Enter a valid email address",
                suggested_fix="Check for typos, e.g. name@example.com",
            )]
        return []

    def _validate_password(
        self,
        password: str,
        require_mixed: bool,
    ) -> list[ValidationIssue]:
        """
        Length is always an error; the character mix is an error only
        when `require_mixed` is set.
        """
        if not password:
            return [ValidationIssue(
                field="password",
                issue_type="missing",
                message="Password is required",
            )]

        issues = []
        minimum = self._settings.min_password_length
        if len(password) < minimum:
            issues.append(ValidationIssue(
                field="password",
                issue_type="too_short",
                message=f"Password must be at least {minimum} characters",
            ))

        has_mix = (
            re.search(r"[a-z]", password)
            and re.search(r"[A-Z]", password)
            and re.search(r"\d", password)
        )
        if not has_mix:
            issues.append(ValidationIssue(
                field="password",
                issue_type="weak",
                message="Password should include upper-case and lower-case letters and a number",
                severity="error" if require_mixed else "warning",
                suggested_fix="Mix letters of both cases with at least one number",
            ))

        return issues

    @staticmethod
    def _result(issues: list[ValidationIssue]) -> ValidationResult:
        return ValidationResult(
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
            warnings=[issue.message for issue in issues if issue.severity == "warning"],
        )

    def validate_sign_in(self, credentials: SignInCredentials) -> ValidationResult:
        """Only presence and email format; password rules are the backend's call."""
        issues = self._validate_email(credentials.email)
        if not credentials.password:
            issues.append(ValidationIssue(
                field="password",
                issue_type="missing",
                message="Password is required",
            ))
        return self._result(issues)

    def validate_sign_up(self, credentials: SignUpCredentials) -> ValidationResult:
        issues = []
        if not credentials.full_name:
            issues.append(ValidationIssue(
                field="full_name",
                issue_type="missing",
                message="Name is required",
            ))
        issues.extend(self._validate_email(credentials.email))
        issues.extend(self._validate_password(credentials.password, require_mixed=False))
        return self._result(issues)

    def validate_reset(self, credentials: ResetPasswordCredentials) -> ValidationResult:
        if not credentials.password or not credentials.confirm_password:
            return self._result([ValidationIssue(
                field="password",
                issue_type="missing",
                message="Fill in both fields",
            )])

        if credentials.password != credentials.confirm_password:
            return self._result([ValidationIssue(
                field="confirm_password",
                issue_type="mismatch",
                message="Passwords do not match",
            )])

        return self._result(self._validate_password(credentials.password, require_mixed=True))

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """One line per issue, errors first."""
        if result.is_valid and not result.warnings:
            return "All good."

        lines = []
        for issue in result.issues:
            if issue.severity == "error":
                lines.append(f"- {issue.message}")
        for warning in result.warnings:
            lines.append(f"- {warning} (optional)")
        return "\n".join(lines)
