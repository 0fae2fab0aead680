"""
Sign-Up Flow

States: idle -> loading -> duplicate | error | (navigates away)

A taken email is not shown as an error banner. The flow enters the
`duplicate` state so the screen can offer "sign in instead".
"""

from typing import Optional
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict

from finyvo_auth.audit import AuditLogger
from finyvo_auth.flows.base import BaseFlow, FlowStatus
from finyvo_auth.models.auth import FlowError, SignUpCredentials, ValidationIssue
from finyvo_auth.models.routes import Route
from finyvo_auth.navigation.navigator import GuardedNavigator
from finyvo_auth.services.auth.errors import AuthErrorCode, normalize_error
from finyvo_auth.services.auth.service import AuthService
from finyvo_auth.validation.validator import CredentialValidator


RESENT_NOTICE = "We sent you a new verification email."

FIELD_CODES = {
    "full_name": AuthErrorCode.INVALID_NAME,
    "email": AuthErrorCode.INVALID_EMAIL,
    "password": AuthErrorCode.WEAK_PASSWORD,
}


class SignUpState(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: FlowStatus = FlowStatus.IDLE
    error: Optional[FlowError] = None
    is_duplicate: bool = False
    resending: bool = False
    resent: bool = False
    notice: Optional[str] = None

    @property
    def loading(self) -> bool:
        return self.status == FlowStatus.LOADING


class SignUpResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    needs_confirmation: bool = False


def verify_email_path(email: str) -> str:
    return f"{Route.VERIFY_EMAIL.path}?{urlencode({'email': email})}"


class SignUpFlow(BaseFlow[SignUpState]):
    """
    Account registration.

    On success the user goes to the dashboard when the backend confirmed
    the account on the spot, otherwise to verify-email with the address.
    """

    def __init__(
        self,
        auth_service: AuthService,
        navigator: GuardedNavigator,
        validator: Optional[CredentialValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(SignUpState(), audit_logger)
        self._auth = auth_service
        self._navigator = navigator
        self._validator = validator or CredentialValidator()

    @property
    def is_duplicate(self) -> bool:
        return self._state.is_duplicate

    @staticmethod
    def _issue_error(issue: ValidationIssue) -> FlowError:
        code = FIELD_CODES.get(issue.field, AuthErrorCode.UNKNOWN_ERROR)
        return FlowError(code=code.value, message=issue.message)

    async def sign_up(self, credentials: SignUpCredentials) -> SignUpResult:
        self._update(
            status=FlowStatus.LOADING,
            error=None,
            is_duplicate=False,
            resent=False,
            notice=None,
        )

        validation = self._validator.validate_sign_up(credentials)
        if not validation.is_valid:
            self._update(status=FlowStatus.ERROR, error=self._issue_error(validation.first_error))
            return SignUpResult(success=False)

        try:
            response = await self._auth.sign_up(
                credentials.email,
                credentials.password,
                credentials.full_name,
            )
        except Exception as e:
            error = normalize_error(e)
            if error.code == AuthErrorCode.DUPLICATE_EMAIL.value:
                self._update(status=FlowStatus.DUPLICATE, is_duplicate=True)
            else:
                self._update(
                    status=FlowStatus.ERROR,
                    error=FlowError(code=error.code, message=error.message),
                )
            return SignUpResult(success=False)

        auto_verified = (
            response.session is not None
            and response.user is not None
            and response.user.is_email_confirmed
        )
        self._update(status=FlowStatus.IDLE)

        if auto_verified:
            self._navigator.replace(Route.DASHBOARD, force=True, reason="sign_up_confirmed")
            return SignUpResult(success=True, needs_confirmation=False)

        self._navigator.replace(
            verify_email_path(credentials.email),
            force=True,
            reason="sign_up_needs_confirmation",
        )
        return SignUpResult(success=True, needs_confirmation=True)

    async def resend_verification(self, email: str) -> bool:
        self._update(resending=True)
        try:
            await self._auth.resend_verification(email)
        except Exception as e:
            error = normalize_error(e)
            self._update(
                resending=False,
                status=FlowStatus.ERROR,
                error=FlowError(code=error.code, message=error.message),
            )
            return False

        self._update(resending=False, resent=True, notice=RESENT_NOTICE)
        return True

    def clear_error(self) -> None:
        status = FlowStatus.IDLE if self._state.status == FlowStatus.ERROR else self._state.status
        self._update(status=status, error=None, notice=None)
