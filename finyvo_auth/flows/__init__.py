"""Per-flow state machines for the auth screens."""

from finyvo_auth.flows.base import BaseFlow, FlowStatus
from finyvo_auth.flows.forgot_password import (
    ForgotPasswordErrorCode,
    ForgotPasswordFlow,
    ForgotPasswordResult,
    ForgotPasswordState,
)
from finyvo_auth.flows.reset_password import (
    ResetPasswordErrorCode,
    ResetPasswordFlow,
    ResetPasswordState,
    ResetResult,
)
from finyvo_auth.flows.sign_in import SignInErrorCode, SignInFlow, SignInResult, SignInState
from finyvo_auth.flows.sign_up import SignUpFlow, SignUpResult, SignUpState
from finyvo_auth.flows.social import SocialSignInFlow, SocialSignInState
from finyvo_auth.flows.timers import Countdown, OneShotTimer
from finyvo_auth.flows.verify_email import (
    VerifyEmailErrorCode,
    VerifyEmailFlow,
    VerifyEmailResult,
    VerifyEmailState,
    is_valid_email,
    mask_email,
)

__all__ = [
    "BaseFlow",
    "Countdown",
    "FlowStatus",
    "ForgotPasswordErrorCode",
    "ForgotPasswordFlow",
    "ForgotPasswordResult",
    "ForgotPasswordState",
    "OneShotTimer",
    "ResetPasswordErrorCode",
    "ResetPasswordFlow",
    "ResetPasswordState",
    "ResetResult",
    "SignInErrorCode",
    "SignInFlow",
    "SignInResult",
    "SignInState",
    "SignUpFlow",
    "SignUpResult",
    "SignUpState",
    "SocialSignInFlow",
    "SocialSignInState",
    "VerifyEmailErrorCode",
    "VerifyEmailFlow",
    "VerifyEmailResult",
    "VerifyEmailState",
    "is_valid_email",
    "mask_email",
]
