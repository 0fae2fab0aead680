"""
Reset-Password Flow

States: booting -> idle | error -> loading -> success | error

Boot accepts either an active recovery session or a recovery
token_hash from the link, which is exchanged here.

DESIGN DECISION: Sign out before the success screen.
After the password update the recovery flag is cleared and the user is
signed out first; only then does the flow enter `success` and start the
auto-redirect timer. The guard therefore never sees a half-finished
recovery session, and "go now" cancels the timer so sign-in is opened
exactly once.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from finyvo_auth.audit import AuditLogger
from finyvo_auth.config import AuthSettings, get_settings
from finyvo_auth.flows.base import BaseFlow, FlowStatus
from finyvo_auth.flows.timers import OneShotTimer
from finyvo_auth.models.auth import (
    CallbackParams,
    CallbackMode,
    FlowError,
    OtpType,
    ResetPasswordCredentials,
    ValidationIssue,
)
from finyvo_auth.models.routes import Route
from finyvo_auth.navigation.navigator import GuardedNavigator
from finyvo_auth.services.auth.errors import ErrorPattern, ErrorTable
from finyvo_auth.services.auth.service import AuthService
from finyvo_auth.store.session_store import SessionStore
from finyvo_auth.validation.validator import CredentialValidator


class ResetPasswordErrorCode(str, Enum):
    INVALID_TOKEN = "INVALID_TOKEN"
    EXPIRED_TOKEN = "EXPIRED_TOKEN"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    PASSWORD_MISMATCH = "PASSWORD_MISMATCH"
    NETWORK_ERROR = "NETWORK_ERROR"
    SESSION_ERROR = "SESSION_ERROR"
    GENERIC = "GENERIC"


INVALID_LINK_MESSAGE = "Invalid or expired link. Request a new one."
SESSION_ERROR_MESSAGE = "Session error. Please try again."

ISSUE_CODES = {
    "missing": ResetPasswordErrorCode.GENERIC,
    "mismatch": ResetPasswordErrorCode.PASSWORD_MISMATCH,
    "too_short": ResetPasswordErrorCode.WEAK_PASSWORD,
    "weak": ResetPasswordErrorCode.WEAK_PASSWORD,
}


def build_reset_password_errors(audit_logger: Optional[AuditLogger] = None) -> ErrorTable:
    return ErrorTable(
        name="reset_password",
        patterns=[
            ErrorPattern(
                code=ResetPasswordErrorCode.INVALID_TOKEN.value,
                message="This link is not valid. Please request a new one.",
                patterns=(r"invalid.*token", r"token.*invalid", r"malformed.*token", r"bad.*token"),
            ),
            ErrorPattern(
                code=ResetPasswordErrorCode.EXPIRED_TOKEN.value,
                message="This link has expired. Please request a new one.",
                patterns=(r"expired.*token", r"token.*expired", r"link.*expired", r"timeout"),
            ),
            ErrorPattern(
                code=ResetPasswordErrorCode.WEAK_PASSWORD.value,
                message="The password does not meet the security requirements.",
                patterns=(
                    r"weak.*password",
                    r"password.*weak",
                    r"password.*requirements",
                    r"insecure.*password",
                ),
            ),
            ErrorPattern(
                code=ResetPasswordErrorCode.NETWORK_ERROR.value,
                message="Connection error. Check your internet and try again.",
                patterns=(
                    r"network.*(error|request failed)",
                    r"connection.*failed",
                    r"fetch.*failed",
                    r"offline",
                ),
            ),
            ErrorPattern(
                code=ResetPasswordErrorCode.SESSION_ERROR.value,
                message=SESSION_ERROR_MESSAGE,
                patterns=(r"session.*error", r"no.*session", r"unauthorized", r"not.*authenticated"),
            ),
        ],
        fallback=ErrorPattern(
            code=ResetPasswordErrorCode.GENERIC.value,
            message="Could not update the password. Please try again.",
        ),
        audit_logger=audit_logger,
    )


class ResetPasswordState(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: FlowStatus = FlowStatus.BOOTING
    error: Optional[FlowError] = None
    tokens_processed: bool = False
    redirect_pending: bool = False

    @property
    def booting(self) -> bool:
        return self.status == FlowStatus.BOOTING

    @property
    def loading(self) -> bool:
        return self.status == FlowStatus.LOADING

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None


class ResetResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    error_code: Optional[str] = None
    message: Optional[str] = None


class ResetPasswordFlow(BaseFlow[ResetPasswordState]):
    """
    Choose a new password from a recovery link.

    Usage:
        flow = ResetPasswordFlow(auth_service, store, navigator)
        await flow.boot(token_hash, link_type)
        await flow.submit(ResetPasswordCredentials(password=..., confirm_password=...))
        flow.go_now()      # optional, skips the auto-redirect delay
        flow.dispose()     # on unmount
    """

    def __init__(
        self,
        auth_service: AuthService,
        store: SessionStore,
        navigator: GuardedNavigator,
        settings: Optional[AuthSettings] = None,
        error_table: Optional[ErrorTable] = None,
        validator: Optional[CredentialValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(ResetPasswordState(), audit_logger)
        settings = settings or get_settings().auth
        self._auth = auth_service
        self._store = store
        self._navigator = navigator
        self._validator = validator or CredentialValidator(settings)
        self._errors = error_table or build_reset_password_errors(self._audit_logger)
        self._redirect_timer = OneShotTimer(
            settings.reset_redirect_delay_seconds,
            self._redirect_to_sign_in,
        )
        self._redirected = False

    @property
    def redirect_timer(self) -> OneShotTimer:
        return self._redirect_timer

    def is_error_type(self, code: ResetPasswordErrorCode) -> bool:
        return self._state.error_code == code.value

    # =========================================================================
    # Boot
    # =========================================================================

    async def boot(self, token_hash: Optional[str] = None, link_type: Optional[str] = None) -> bool:
        """
        Check that a password may be set on this screen.

        Returns:
            True when a recovery session is in place
        """
        self._update(status=FlowStatus.BOOTING, error=None)
        try:
            session = await self._auth.get_current_session()

            if session is not None and self._store.is_recovery_session:
                self._update(status=FlowStatus.IDLE, tokens_processed=True)
                return True

            if session is None and token_hash and link_type == OtpType.RECOVERY.value:
                result = await self._auth.process_auth_callback(
                    CallbackParams(token_hash=token_hash, type=link_type)
                )
                if result.mode == CallbackMode.OTP and result.data and result.data.session:
                    self._store.set_recovery_session(True)
                    self._update(status=FlowStatus.IDLE, tokens_processed=True)
                    return True
        except Exception as e:
            self._update(status=FlowStatus.ERROR, error=self._errors.classify(e))
            return False

        self._update(
            status=FlowStatus.ERROR,
            error=FlowError(code=ResetPasswordErrorCode.INVALID_TOKEN.value, message=INVALID_LINK_MESSAGE),
        )
        return False

    # =========================================================================
    # Submit
    # =========================================================================

    @staticmethod
    def _issue_error(issue: ValidationIssue) -> FlowError:
        code = ISSUE_CODES.get(issue.issue_type, ResetPasswordErrorCode.GENERIC)
        return FlowError(code=code.value, message=issue.message)

    def _fail(self, error: FlowError) -> ResetResult:
        self._update(status=FlowStatus.ERROR, error=error)
        return ResetResult(success=False, error_code=error.code, message=error.message)

    async def submit(self, credentials: ResetPasswordCredentials) -> ResetResult:
        self._update(status=FlowStatus.LOADING, error=None)

        validation = self._validator.validate_reset(credentials)
        if not validation.is_valid:
            return self._fail(self._issue_error(validation.first_error))

        try:
            session = await self._auth.get_current_session()
            if session is None:
                return self._fail(
                    FlowError(code=ResetPasswordErrorCode.SESSION_ERROR.value, message=SESSION_ERROR_MESSAGE)
                )
            await self._auth.update_password(credentials.password)
        except Exception as e:
            return self._fail(self._errors.classify(e))

        await self._store.clear_recovery_and_sign_out()

        self._update(status=FlowStatus.SUCCESS, redirect_pending=True)
        self._redirect_timer.start()
        return ResetResult(success=True)

    # =========================================================================
    # Navigation
    # =========================================================================

    def go_now(self) -> None:
        """Skip the remaining auto-redirect delay."""
        self._redirect_timer.cancel()
        self._redirect_to_sign_in()

    def _redirect_to_sign_in(self) -> None:
        if self._redirected:
            return
        self._redirected = True
        self._update(redirect_pending=False)
        self._navigator.replace(Route.SIGN_IN, force=True, reason="password_reset")

    def redirect_to_forgot_password(self) -> None:
        """
        Leave the reset screen on purpose to request a new link.

        The recovery flag is dropped first, otherwise the guard forces
        the user straight back to reset-password.
        """
        self._redirect_timer.cancel()
        if self._store.is_recovery_session:
            self._store.set_recovery_session(False)
        self._navigator.replace(Route.FORGOT_PASSWORD, force=True, reason="reset_abandoned")

    def clear_error(self) -> None:
        status = FlowStatus.IDLE if self._state.status == FlowStatus.ERROR else self._state.status
        self._update(status=status, error=None)

    def dispose(self) -> None:
        self._redirect_timer.cancel()
