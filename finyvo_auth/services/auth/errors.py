"""
Auth Error Taxonomy

DESIGN DECISION: Backend error text is classified by pattern tables.
The identity backend only gives free-text messages, so mapping them to
categories is inherently heuristic. Each table is:
- Pure (text in, {code, message} out)
- Ordered (first matching pattern wins)
- Closed by a generic fallback, so a raw backend string never reaches a screen

Unmatched text is logged so new patterns can be added later.
Each flow owns its table; the same backend message can mean different
things in different flows.
"""

import re
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from finyvo_auth.audit import AuditLogger
from finyvo_auth.models.auth import FlowError
from finyvo_auth.services.backend.interface import BackendNetworkError, IdentityBackendError


class AuthErrorCode(str, Enum):
    """Categories raised by the Auth Service."""
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    EMAIL_NOT_CONFIRMED = "EMAIL_NOT_CONFIRMED"
    NETWORK_ERROR = "NETWORK_ERROR"
    OAUTH_CANCELLED = "OAUTH_CANCELLED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    # Local checks, raised before any network call
    INVALID_NAME = "INVALID_NAME"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    INVALID_EMAIL = "INVALID_EMAIL"
    SESSION_ERROR = "SESSION_ERROR"
    APPLE_NOT_AVAILABLE = "APPLE_NOT_AVAILABLE"
    APPLE_TOKEN_MISSING = "APPLE_TOKEN_MISSING"
    NONCE_FAILED = "NONCE_FAILED"
    OAUTH_URL_MISSING = "OAUTH_URL_MISSING"


class AuthError(Exception):
    """
    Normalized error raised by the Auth Service.

    `raw` keeps the original exception so flow tables can still look
    at the backend's own wording.
    """

    def __init__(
        self,
        code: Union[AuthErrorCode, str],
        message: str,
        raw: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.code = code.value if isinstance(code, AuthErrorCode) else code
        self.message = message
        self.raw = raw

    def __repr__(self) -> str:
        return f"AuthError(code={self.code!r}, message={self.message!r})"


def error_text(error: Union[BaseException, str, None]) -> str:
    """Everything classifiable about an error, as one lowercase string."""
    if error is None:
        return ""
    if isinstance(error, str):
        return error.lower()

    parts = []
    if isinstance(error, AuthError):
        parts.extend([error.message, error.code])
        if error.raw is not None:
            parts.append(error_text(error.raw))
    elif isinstance(error, IdentityBackendError):
        parts.extend([error.message, error.code or ""])
    else:
        parts.append(str(error))
    return " ".join(p for p in parts if p).lower()


# =============================================================================
# PATTERN TABLES
# =============================================================================

class ErrorPattern(BaseModel):
    """One row of a table: regexes that map to a code and a message."""
    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    patterns: tuple[str, ...] = Field(default_factory=tuple)

    def matches(self, text: str) -> bool:
        return any(re.search(p, text, re.IGNORECASE) for p in self.patterns)


class ErrorTable:
    """
    Ordered pattern table with a generic fallback.

    Usage:
        table = ErrorTable("sign_in", [ErrorPattern(...), ...], fallback)
        flow_error = table.classify(exc)
    """

    def __init__(
        self,
        name: str,
        patterns: list[ErrorPattern],
        fallback: ErrorPattern,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.name = name
        self.patterns = list(patterns)
        self.fallback = fallback
        self._audit_logger = audit_logger or AuditLogger()

    def match(self, text: str) -> Optional[ErrorPattern]:
        return next((p for p in self.patterns if p.matches(text)), None)

    def classify(self, error: Union[BaseException, str, None]) -> FlowError:
        """Map an error to {code, message}; never raises."""
        if isinstance(error, BackendNetworkError):
            network = self.by_code("NETWORK_ERROR")
            if network is not None:
                return FlowError(code=network.code, message=network.message)

        text = error_text(error)
        pattern = self.match(text)
        if pattern is None:
            self._audit_logger.log_unmatched_error(self.name, text, self.fallback.code)
            pattern = self.fallback
        return FlowError(code=pattern.code, message=pattern.message)

    def by_code(self, code: str) -> Optional[ErrorPattern]:
        if code == self.fallback.code:
            return self.fallback
        return next((p for p in self.patterns if p.code == code), None)

    def error_for(self, code: str) -> FlowError:
        """FlowError for a code raised locally (validation, throttling)."""
        pattern = self.by_code(code) or self.fallback
        return FlowError(code=pattern.code, message=pattern.message)


# =============================================================================
# AUTH SERVICE TABLE
# =============================================================================

DUPLICATE_EMAIL_MESSAGE = "An account with this email already exists. Do you want to sign in?"

DUPLICATE_EMAIL_PATTERNS = ErrorPattern(
    code=AuthErrorCode.DUPLICATE_EMAIL.value,
    message=DUPLICATE_EMAIL_MESSAGE,
    patterns=(
        r"user_already_exists",
        r"already registered",
        r"already exists",
        r"email already registered",
        r"duplicate",
        r"user already",
    ),
)

SERVICE_ERROR_TABLE = ErrorTable(
    name="auth_service",
    patterns=[
        ErrorPattern(
            code=AuthErrorCode.INVALID_CREDENTIALS.value,
            message="Incorrect email or password",
            patterns=(r"invalid login credentials", r"invalid_credentials"),
        ),
        ErrorPattern(
            code=AuthErrorCode.EMAIL_NOT_CONFIRMED.value,
            message="Please confirm your email before signing in",
            patterns=(r"email not confirmed", r"email_not_confirmed"),
        ),
        ErrorPattern(
            code=AuthErrorCode.NETWORK_ERROR.value,
            message="Connection error. Check your internet connection",
            patterns=(r"network request failed",),
        ),
    ],
    fallback=ErrorPattern(
        code=AuthErrorCode.UNKNOWN_ERROR.value,
        message="Something went wrong. Please try again",
    ),
)


def is_duplicate_email_error(error: Union[BaseException, str, None]) -> bool:
    return DUPLICATE_EMAIL_PATTERNS.matches(error_text(error))


def normalize_error(error: BaseException) -> AuthError:
    """
    Map any exception to an AuthError.

    Already-normalized errors pass through unchanged.
    """
    if isinstance(error, AuthError):
        return error

    if is_duplicate_email_error(error):
        return AuthError(AuthErrorCode.DUPLICATE_EMAIL, DUPLICATE_EMAIL_MESSAGE, raw=error)

    flow_error = SERVICE_ERROR_TABLE.classify(error)
    return AuthError(flow_error.code, flow_error.message, raw=error)
