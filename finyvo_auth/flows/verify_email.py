"""
Verify-Email Flow

States: idle -> sending -> sent | error, plus a cooldown counter.

Each successful resend starts a fixed 45 second countdown; resending is
blocked while it runs. A second limit caps resends at 3 per 5 minutes.
Neither limit depends on a retry-after value from the server.
"""

import re
import time
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

from finyvo_auth.audit import AuditLogger
from finyvo_auth.config import AuthSettings, get_settings
from finyvo_auth.flows.base import BaseFlow, FlowStatus
from finyvo_auth.flows.timers import Countdown, OneShotTimer
from finyvo_auth.models.auth import FlowError, normalize_email
from finyvo_auth.services.auth.errors import ErrorPattern, ErrorTable
from finyvo_auth.services.auth.service import AuthService


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class VerifyEmailErrorCode(str, Enum):
    INVALID_EMAIL = "INVALID_EMAIL"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    ALREADY_VERIFIED = "ALREADY_VERIFIED"
    RATE_LIMIT = "RATE_LIMIT"
    NETWORK_ERROR = "NETWORK_ERROR"
    GENERIC = "GENERIC"


def build_verify_email_errors(audit_logger: Optional[AuditLogger] = None) -> ErrorTable:
    return ErrorTable(
        name="verify_email",
        patterns=[
            ErrorPattern(
                code=VerifyEmailErrorCode.INVALID_EMAIL.value,
                message="The email format is not valid.",
                patterns=(r"invalid.*email", r"email.*invalid", r"malformed.*email"),
            ),
            ErrorPattern(
                code=VerifyEmailErrorCode.USER_NOT_FOUND.value,
                message="We could not find an account with that email.",
                patterns=(r"user.*not.*found", r"no.*user", r"account.*not.*exist"),
            ),
            ErrorPattern(
                code=VerifyEmailErrorCode.ALREADY_VERIFIED.value,
                message="This email is already verified.",
                patterns=(r"already.*verified", r"already.*confirmed", r"email.*confirmed"),
            ),
            ErrorPattern(
                code=VerifyEmailErrorCode.RATE_LIMIT.value,
                message="Too many attempts. Wait a moment before resending.",
                patterns=(r"rate.*limit", r"too.*many", r"throttle"),
            ),
            ErrorPattern(
                code=VerifyEmailErrorCode.NETWORK_ERROR.value,
                message="Connection error. Check your internet.",
                patterns=(r"network.*(error|request failed)", r"connection.*failed", r"offline"),
            ),
        ],
        fallback=ErrorPattern(
            code=VerifyEmailErrorCode.GENERIC.value,
            message="Could not send the email. Please try again.",
        ),
        audit_logger=audit_logger,
    )


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match((email or "").strip()))


def mask_email(email: str) -> str:
    """
    Hide most of the local part: 'jonathan@x.com' -> 'j***n@x.com'.

    Addresses with a local part of two characters or less are returned as is.
    """
    if not email or "@" not in email:
        return email
    username, domain = email.split("@", 1)
    if len(username) <= 2:
        return email
    stars = "*" * min(3, len(username) - 2)
    return f"{username[0]}{stars}{username[-1]}@{domain}"


class VerifyEmailState(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: FlowStatus = FlowStatus.IDLE
    email: str = ""
    error: Optional[FlowError] = None
    sent: bool = False
    cooldown: int = 0

    @property
    def sending(self) -> bool:
        return self.status == FlowStatus.SENDING

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None

    @property
    def masked_email(self) -> str:
        return mask_email(self.email)

    @property
    def can_resend(self) -> bool:
        return is_valid_email(self.email) and not self.sending and self.cooldown <= 0

    @property
    def is_rate_limited(self) -> bool:
        return self.error_code == VerifyEmailErrorCode.RATE_LIMIT.value

    @property
    def is_already_verified(self) -> bool:
        return self.error_code == VerifyEmailErrorCode.ALREADY_VERIFIED.value


class VerifyEmailResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    error_code: Optional[str] = None


class VerifyEmailFlow(BaseFlow[VerifyEmailState]):
    """Resend the sign-up verification email with a cooldown."""

    def __init__(
        self,
        auth_service: AuthService,
        email: str = "",
        settings: Optional[AuthSettings] = None,
        clock: Callable[[], float] = time.monotonic,
        tick_seconds: float = 1.0,
        error_table: Optional[ErrorTable] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(VerifyEmailState(email=email or ""), audit_logger)
        settings = settings or get_settings().auth
        self._auth = auth_service
        self._clock = clock
        self._cooldown_seconds = settings.verify_email_cooldown_seconds
        self._max_sends = settings.verify_email_max_sends
        self._send_window = float(settings.verify_email_send_window_seconds)
        self._errors = error_table or build_verify_email_errors(self._audit_logger)

        self._cooldown = Countdown(
            on_change=lambda remaining: self._update(cooldown=remaining),
            tick_seconds=tick_seconds,
        )
        self._sent_flash = OneShotTimer(settings.verify_email_sent_flash_seconds, self._hide_sent)
        self._send_count = 0
        self._last_sent_at: Optional[float] = None

    @property
    def cooldown(self) -> Countdown:
        return self._cooldown

    @property
    def send_count(self) -> int:
        return self._send_count

    def _limit_reached(self, now: float) -> bool:
        if self._send_count < self._max_sends or self._last_sent_at is None:
            return False
        return now - self._last_sent_at < self._send_window

    async def resend(self) -> VerifyEmailResult:
        state = self._state
        if not state.email or state.sending or state.cooldown > 0:
            return VerifyEmailResult(success=False)

        email = normalize_email(state.email)
        if not is_valid_email(email):
            self._update(
                status=FlowStatus.ERROR,
                error=FlowError(code=VerifyEmailErrorCode.INVALID_EMAIL.value, message="Invalid email"),
            )
            return VerifyEmailResult(success=False, error_code=VerifyEmailErrorCode.INVALID_EMAIL.value)

        now = self._clock()
        if self._limit_reached(now):
            self._update(
                status=FlowStatus.ERROR,
                error=FlowError(
                    code=VerifyEmailErrorCode.RATE_LIMIT.value,
                    message="You have reached the resend limit. Try again later.",
                ),
            )
            return VerifyEmailResult(success=False, error_code=VerifyEmailErrorCode.RATE_LIMIT.value)

        self._update(status=FlowStatus.SENDING, error=None, sent=False)

        try:
            await self._auth.resend_verification(email)
        except Exception as e:
            error = self._errors.classify(e)
            self._update(status=FlowStatus.ERROR, error=error)
            return VerifyEmailResult(success=False, error_code=error.code)

        self._send_count += 1
        self._last_sent_at = now
        self._update(status=FlowStatus.SENT, sent=True)
        self._cooldown.start(self._cooldown_seconds)
        self._sent_flash.start()
        return VerifyEmailResult(success=True)

    def _hide_sent(self) -> None:
        status = FlowStatus.IDLE if self._state.status == FlowStatus.SENT else self._state.status
        self._update(status=status, sent=False)

    def set_email(self, email: str) -> None:
        status = FlowStatus.IDLE if self._state.status in (FlowStatus.ERROR, FlowStatus.SENT) else self._state.status
        self._sent_flash.cancel()
        self._update(email=email, status=status, error=None, sent=False)

    def clear_error(self) -> None:
        status = FlowStatus.IDLE if self._state.status == FlowStatus.ERROR else self._state.status
        self._update(status=status, error=None)

    def reset(self) -> None:
        """Clear errors, the cooldown and the send counter. The email is kept."""
        self._cooldown.stop()
        self._sent_flash.cancel()
        self._send_count = 0
        self._last_sent_at = None
        self._reset_state(email=self._state.email)

    def dispose(self) -> None:
        self._cooldown.stop()
        self._sent_flash.cancel()
