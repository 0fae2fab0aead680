"""
Core Auth Models for Finyvo

These models define the schemas for everything the orchestration layer
holds or passes around:
1. Session / User copies handed out by the identity backend
2. The session store snapshot
3. Parsed deep-link callbacks and exchange results
4. Credentials and local validation results

DESIGN DECISION: Session and User are frozen.
The identity backend owns them; this layer only caches a copy and
replaces it wholesale through the store's actions.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AuthChangeEvent(str, Enum):
    """Events pushed by the identity backend's auth-state subscription."""
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


class OtpType(str, Enum):
    """Link types the backend puts in the `type` parameter of OTP links."""
    RECOVERY = "recovery"
    SIGNUP = "signup"
    EMAIL_CHANGE = "email_change"
    MAGICLINK = "magiclink"
    INVITE = "invite"


class CallbackKind(str, Enum):
    """Coarse classification of an incoming deep link."""
    OAUTH = "oauth"
    RECOVERY = "recovery"
    VERIFY = "verify"
    UNKNOWN = "unknown"


class CallbackMode(str, Enum):
    """Which exchange a processed callback went through."""
    HASH = "hash"      # access_token + refresh_token set directly
    PKCE = "pkce"      # authorization code exchanged for a session
    OTP = "otp"        # token_hash verified
    NONE = "none"      # nothing recognizable in the URL


class OAuthProvider(str, Enum):
    """Supported social sign-in providers."""
    APPLE = "apple"
    GOOGLE = "google"
    FACEBOOK = "facebook"


class BrowserResultType(str, Enum):
    """Outcome of a system browser auth session."""
    SUCCESS = "success"
    CANCEL = "cancel"
    DISMISS = "dismiss"
    LOCKED = "locked"


# =============================================================================
# IDENTITY - copies of backend-owned records
# =============================================================================

class UserIdentity(BaseModel):
    """One linked identity (email, google, apple...) of a user."""
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    provider: str = Field(
        default="email",
        description="Identity provider name"
    )
    identity_data: dict[str, Any] = Field(default_factory=dict)


class User(BaseModel):
    """
    Identity record attached to a session.

    `identities` is None when the backend did not say; an empty list
    is the backend's signal that the email already belongs to an
    existing account.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Backend user id"
    )
    email: Optional[str] = None
    email_confirmed_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)
    identities: Optional[list[UserIdentity]] = None

    @property
    def full_name(self) -> Optional[str]:
        name = self.user_metadata.get("full_name")
        return name.strip() if isinstance(name, str) and name.strip() else None

    @property
    def avatar_url(self) -> Optional[str]:
        return self.user_metadata.get("avatar_url")

    @property
    def is_email_confirmed(self) -> bool:
        return bool(self.email_confirmed_at or self.confirmed_at)

    @property
    def initials(self) -> str:
        """Initials from the display name, else the first email letter."""
        if self.full_name:
            return "".join(part[0] for part in self.full_name.split()).upper()
        if self.email:
            return self.email[0].upper()
        return "?"


class Session(BaseModel):
    """
    Opaque credential bundle issued by the identity backend.

    Never mutated here: the store swaps the whole object.
    """
    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    expires_at: Optional[int] = Field(
        default=None,
        description="Unix timestamp when the access token expires"
    )
    user: Optional[User] = None


class AuthResponse(BaseModel):
    """Payload of sign-in, sign-up and callback exchanges."""
    model_config = ConfigDict(frozen=True)

    user: Optional[User] = None
    session: Optional[Session] = None


# =============================================================================
# SESSION STORE SNAPSHOT
# =============================================================================

class OnboardingRecord(BaseModel):
    """
    Persisted onboarding document.

    `by_user` is keyed by backend user id. `legacy` is the global flag
    written by the previous schema; it is migrated into `by_user` on the
    first observed login and then cleared.
    """
    schema_version: int = 2
    by_user: dict[str, bool] = Field(default_factory=dict)
    legacy: Optional[bool] = None


class AuthState(BaseModel):
    """
    Immutable snapshot of the session store.

    A new snapshot is produced for every action; listeners compare
    snapshots rather than poking at fields in place.
    """
    model_config = ConfigDict(frozen=True)

    session: Optional[Session] = None
    user: Optional[User] = None
    is_loading: bool = True
    is_recovery_session: bool = False
    onboarding: OnboardingRecord = Field(default_factory=OnboardingRecord)

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    @property
    def is_onboarded(self) -> bool:
        """Flag for the current user, or the legacy slot when nobody is known."""
        if self.user_id is not None:
            return self.onboarding.by_user.get(self.user_id, False)
        return bool(self.onboarding.legacy)

    @property
    def needs_onboarding(self) -> bool:
        return self.is_authenticated and not self.is_onboarded


# =============================================================================
# DEEP-LINK CALLBACKS
# =============================================================================

CALLBACK_PARAM_KEYS: tuple[str, ...] = (
    "code",
    "access_token",
    "refresh_token",
    "token_hash",
    "type",
    "email",
    "error",
    "error_description",
)


class CallbackParams(BaseModel):
    """
    Normalized parameters pulled out of one callback URL.

    Exactly one of the three shapes (token pair, code, token_hash) is
    expected; `shapes` lists the ones actually present.
    """
    model_config = ConfigDict(frozen=True)

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    code: Optional[str] = None
    token_hash: Optional[str] = None
    type: Optional[str] = None
    email: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None

    @property
    def has_token_pair(self) -> bool:
        return bool(self.access_token and self.refresh_token)

    @property
    def shapes(self) -> list[CallbackMode]:
        found = []
        if self.has_token_pair:
            found.append(CallbackMode.HASH)
        if self.code:
            found.append(CallbackMode.PKCE)
        if self.token_hash:
            found.append(CallbackMode.OTP)
        return found

    @property
    def is_ambiguous(self) -> bool:
        return len(self.shapes) > 1

    @property
    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class ProcessAuthResult(BaseModel):
    """Tagged result of exchanging a callback URL into a session."""
    model_config = ConfigDict(frozen=True)

    mode: CallbackMode
    otp_type: Optional[OtpType] = None
    data: Optional[AuthResponse] = None

    @classmethod
    def none(cls) -> "ProcessAuthResult":
        return cls(mode=CallbackMode.NONE)


class OAuthResult(BaseModel):
    """Outcome of a social sign-in strategy."""
    model_config = ConfigDict(frozen=True)

    success: bool
    provider: OAuthProvider
    cancelled: bool = False
    user: Optional[User] = None
    session: Optional[Session] = None


class BrowserResult(BaseModel):
    """What the system browser session returned."""
    model_config = ConfigDict(frozen=True)

    type: BrowserResultType
    url: Optional[str] = None


class AppleCredential(BaseModel):
    """Credential produced by the native Apple prompt."""
    model_config = ConfigDict(frozen=True)

    identity_token: Optional[str] = None
    user: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = None


# =============================================================================
# CREDENTIALS & VALIDATION
# =============================================================================

def normalize_email(email: str) -> str:
    """Trim and lowercase, the canonical form sent to the backend."""
    return (email or "").strip().lower()


class SignInCredentials(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def normalize(cls, v: str) -> str:
        return normalize_email(v)


class SignUpCredentials(BaseModel):
    email: str
    password: str
    full_name: str = ""

    @field_validator('email')
    @classmethod
    def normalize(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator('full_name')
    @classmethod
    def strip_name(cls, v: str) -> str:
        return (v or "").strip()


class ForgotPasswordCredentials(BaseModel):
    email: str

    @field_validator('email')
    @classmethod
    def normalize(cls, v: str) -> str:
        return normalize_email(v)


class ResetPasswordCredentials(BaseModel):
    password: str = ""
    confirm_password: str = ""


class ValidationIssue(BaseModel):
    """A single local validation problem."""
    field: str = Field(..., description="Field with the issue")
    issue_type: str = Field(..., description="Type of issue (missing, too_short, mismatch...)")
    message: str = Field(..., description="User-facing message")
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """Result of validating credentials before any network call."""
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(i.severity == "error" for i in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == "error")

    @property
    def first_error(self) -> Optional[ValidationIssue]:
        return next((i for i in self.issues if i.severity == "error"), None)


class FlowError(BaseModel):
    """The {code, message} shape every flow surfaces to its screen."""
    model_config = ConfigDict(frozen=True)

    code: str
    message: str
