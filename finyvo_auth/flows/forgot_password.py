"""
Forgot-Password Flow

States: idle -> loading -> email_sent | error

DESIGN DECISION: Local rolling-window rate limit.
Every send attempt, successful or not, is stamped. With the window full
(3 stamps in the last 30 seconds by default) the next attempt is refused
locally with the time left until the oldest stamp expires. The backend
is not called at all in that case.
"""

import math
import time
from collections import deque
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

from finyvo_auth.audit import AuditLogger
from finyvo_auth.config import AuthSettings, get_settings
from finyvo_auth.flows.base import BaseFlow, FlowStatus
from finyvo_auth.models.auth import FlowError, ForgotPasswordCredentials
from finyvo_auth.services.auth.errors import ErrorPattern, ErrorTable
from finyvo_auth.services.auth.service import AuthService


class ForgotPasswordErrorCode(str, Enum):
    USER_NOT_FOUND = "USER_NOT_FOUND"
    INVALID_EMAIL = "INVALID_EMAIL"
    RATE_LIMIT = "RATE_LIMIT"
    NETWORK_ERROR = "NETWORK_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    GENERIC = "GENERIC"


def build_forgot_password_errors(audit_logger: Optional[AuditLogger] = None) -> ErrorTable:
    return ErrorTable(
        name="forgot_password",
        patterns=[
            ErrorPattern(
                code=ForgotPasswordErrorCode.USER_NOT_FOUND.value,
                message="We could not find an account with that email.",
                patterns=(
                    r"user.*not.*found",
                    r"no.*user.*email",
                    r"email.*not.*registered",
                    r"account.*not.*exist",
                ),
            ),
            ErrorPattern(
                code=ForgotPasswordErrorCode.INVALID_EMAIL.value,
                message="That email address is not valid.",
                patterns=(r"invalid.*email", r"email.*invalid", r"malformed.*email", r"email.*required"),
            ),
            ErrorPattern(
                code=ForgotPasswordErrorCode.RATE_LIMIT.value,
                message="Too many requests. Wait a moment and try again.",
                patterns=(r"rate.*limit", r"too.*many.*request", r"throttle", r"exceeded.*limit"),
            ),
            ErrorPattern(
                code=ForgotPasswordErrorCode.NETWORK_ERROR.value,
                message="Connection error. Check your internet and try again.",
                patterns=(
                    r"network.*(error|request failed)",
                    r"connection.*failed",
                    r"fetch.*failed",
                    r"no.*internet",
                    r"offline",
                ),
            ),
            ErrorPattern(
                code=ForgotPasswordErrorCode.SERVICE_UNAVAILABLE.value,
                message="The email service is unavailable right now. Try again later.",
                patterns=(
                    r"service.*unavailable",
                    r"email.*service.*down",
                    r"smtp.*error",
                    r"mail.*server.*error",
                ),
            ),
        ],
        fallback=ErrorPattern(
            code=ForgotPasswordErrorCode.GENERIC.value,
            message="Could not send the reset email. Please try again.",
        ),
        audit_logger=audit_logger,
    )


class ForgotPasswordState(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: FlowStatus = FlowStatus.IDLE
    error: Optional[FlowError] = None
    email_sent: bool = False

    @property
    def loading(self) -> bool:
        return self.status == FlowStatus.LOADING


class ForgotPasswordResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    error_code: Optional[str] = None
    wait_time: float = 0.0


class ForgotPasswordFlow(BaseFlow[ForgotPasswordState]):
    """Request a password-reset email, throttled locally."""

    def __init__(
        self,
        auth_service: AuthService,
        settings: Optional[AuthSettings] = None,
        clock: Callable[[], float] = time.monotonic,
        error_table: Optional[ErrorTable] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(ForgotPasswordState(), audit_logger)
        settings = settings or get_settings().auth
        self._auth = auth_service
        self._max_requests = settings.forgot_password_max_requests
        self._window = float(settings.forgot_password_window_seconds)
        self._clock = clock
        self._errors = error_table or build_forgot_password_errors(self._audit_logger)
        self._attempts: deque[float] = deque()

    @property
    def email_sent(self) -> bool:
        return self._state.email_sent

    def _prune(self, now: float) -> None:
        while self._attempts and now - self._attempts[0] >= self._window:
            self._attempts.popleft()

    def get_wait_time(self) -> float:
        """Seconds until another attempt is allowed (0 when allowed now)."""
        now = self._clock()
        self._prune(now)
        if len(self._attempts) < self._max_requests:
            return 0.0
        return max(0.0, self._attempts[0] + self._window - now)

    def can_retry(self) -> bool:
        return self.get_wait_time() == 0.0

    async def send_reset_email(self, credentials: ForgotPasswordCredentials) -> ForgotPasswordResult:
        wait_time = self.get_wait_time()
        if wait_time > 0:
            error = FlowError(
                code=ForgotPasswordErrorCode.RATE_LIMIT.value,
                message=f"Too many requests. Try again in {math.ceil(wait_time)} seconds.",
            )
            self._update(status=FlowStatus.ERROR, error=error)
            return ForgotPasswordResult(success=False, error_code=error.code, wait_time=wait_time)

        self._attempts.append(self._clock())
        self._update(status=FlowStatus.LOADING, error=None, email_sent=False)

        try:
            await self._auth.forgot_password(credentials.email)
        except Exception as e:
            error = self._errors.classify(e)
            self._update(status=FlowStatus.ERROR, error=error)
            return ForgotPasswordResult(success=False, error_code=error.code)

        self._update(status=FlowStatus.EMAIL_SENT, email_sent=True)
        return ForgotPasswordResult(success=True)

    def reset(self) -> None:
        """Back to idle. The rate-limit window is kept."""
        self._reset_state()

    def clear_error(self) -> None:
        status = FlowStatus.IDLE if self._state.status == FlowStatus.ERROR else self._state.status
        self._update(status=status, error=None)
