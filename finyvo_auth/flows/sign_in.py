"""
Sign-In Flow

States: idle -> loading -> idle | error

The flow only tracks loading and error. Navigation after a successful
sign-in is left to the caller (in practice the navigation guard reacts
to the new session).

DESIGN DECISION: The attempt counter is cosmetic.
From the fifth consecutive failure the mapped message is replaced by a
"too many attempts" message. Requests are still sent; the backend stays
the only real rate limiter.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from finyvo_auth.audit import AuditLogger
from finyvo_auth.config import AuthSettings, get_settings
from finyvo_auth.flows.base import BaseFlow, FlowStatus
from finyvo_auth.models.auth import FlowError, SignInCredentials
from finyvo_auth.services.auth.errors import ErrorPattern, ErrorTable
from finyvo_auth.services.auth.service import AuthService


class SignInErrorCode(str, Enum):
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
    RATE_LIMIT = "RATE_LIMIT"
    NETWORK_ERROR = "NETWORK_ERROR"
    GENERIC = "GENERIC"


TOO_MANY_ATTEMPTS_MESSAGE = "Too many failed attempts. Wait a few minutes or reset your password."


def build_sign_in_errors(audit_logger: Optional[AuditLogger] = None) -> ErrorTable:
    return ErrorTable(
        name="sign_in",
        patterns=[
            ErrorPattern(
                code=SignInErrorCode.INVALID_CREDENTIALS.value,
                message="Incorrect email or password. Check your details and try again.",
                patterns=(
                    r"invalid.*(login|credential|password)",
                    r"incorrect.*(password|email)",
                    r"authentication.*failed",
                    r"bad.*credentials",
                ),
            ),
            ErrorPattern(
                code=SignInErrorCode.ACCOUNT_LOCKED.value,
                message="Your account is temporarily locked. Contact support.",
                patterns=(r"account.*locked", r"suspended", r"disabled.*account"),
            ),
            ErrorPattern(
                code=SignInErrorCode.EMAIL_NOT_VERIFIED.value,
                message="Please verify your email before signing in.",
                patterns=(
                    r"email.*not.*verified",
                    r"email.*not.*confirmed",
                    r"verify.*email",
                    r"confirmation.*required",
                ),
            ),
            ErrorPattern(
                code=SignInErrorCode.RATE_LIMIT.value,
                message="Too many attempts. Wait a moment and try again.",
                patterns=(r"rate.*limit", r"too many.*(attempts|requests)", r"throttle"),
            ),
            ErrorPattern(
                code=SignInErrorCode.NETWORK_ERROR.value,
                message="Connection error. Check your internet and try again.",
                patterns=(
                    r"network.*(error|request failed)",
                    r"connection.*failed",
                    r"fetch.*failed",
                    r"no.*internet",
                    r"offline",
                ),
            ),
        ],
        fallback=ErrorPattern(
            code=SignInErrorCode.GENERIC.value,
            message="Could not sign in. Please try again.",
        ),
        audit_logger=audit_logger,
    )


class SignInState(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: FlowStatus = FlowStatus.IDLE
    error: Optional[FlowError] = None
    attempts: int = 0

    @property
    def loading(self) -> bool:
        return self.status == FlowStatus.LOADING

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None


class SignInResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    error_code: Optional[str] = None


class SignInFlow(BaseFlow[SignInState]):
    """
    Email/password sign-in.

    Usage:
        flow = SignInFlow(auth_service)
        result = await flow.sign_in(SignInCredentials(email=..., password=...))
    """

    def __init__(
        self,
        auth_service: AuthService,
        settings: Optional[AuthSettings] = None,
        error_table: Optional[ErrorTable] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(SignInState(), audit_logger)
        self._auth = auth_service
        self._threshold = (settings or get_settings().auth).sign_in_attempt_threshold
        self._errors = error_table or build_sign_in_errors(self._audit_logger)

    @property
    def too_many_attempts(self) -> bool:
        return self._state.attempts >= self._threshold

    async def sign_in(self, credentials: SignInCredentials) -> SignInResult:
        attempt = self._state.attempts + 1
        self._update(status=FlowStatus.LOADING, error=None, attempts=attempt)

        try:
            await self._auth.sign_in(credentials.email, credentials.password)
        except Exception as e:
            error = self._errors.classify(e)
            if attempt >= self._threshold:
                error = FlowError(
                    code=SignInErrorCode.RATE_LIMIT.value,
                    message=TOO_MANY_ATTEMPTS_MESSAGE,
                )
            self._update(status=FlowStatus.ERROR, error=error)
            return SignInResult(success=False, error_code=error.code)

        self._update(status=FlowStatus.IDLE, attempts=0)
        return SignInResult(success=True)

    def clear_error(self) -> None:
        status = FlowStatus.IDLE if self._state.status == FlowStatus.ERROR else self._state.status
        self._update(status=status, error=None)

    def reset_attempts(self) -> None:
        self._update(attempts=0)
