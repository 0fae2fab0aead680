"""
Configuration Management for Finyvo Auth

Typed settings read from the environment (and .env) via pydantic-settings.

DESIGN DECISION: One module owns every tunable.
Timing windows, limits and the deep-link scheme live in one place so the
flows, the guard and the tests agree on the same numbers.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SupabaseSettings(BaseSettings):
    """Hosted identity backend (Supabase) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        extra="ignore"
    )

    url: str = Field(
        ...,
        description="Supabase project URL"
    )
    anon_key: str = Field(
        ...,
        description="Supabase anonymous (public) API key"
    )

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """The client library rejects anything that is not http(s)."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Supabase URL must start with http:// or https://")
        return v.rstrip("/")


class AuthSettings(BaseSettings):
    """
    Timing and limit configuration for the auth flows.

    Every value has a default so the orchestration layer runs
    without any environment at all (tests rely on this).
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        extra="ignore"
    )

    # Deep links
    redirect_scheme: str = Field(
        default="finyvo",
        description="Custom URI scheme registered by the app"
    )

    # Credentials
    min_password_length: int = Field(
        default=8,
        ge=6,
        le=128,
        description="Minimum password length enforced before any network call"
    )
    nonce_bytes: int = Field(
        default=16,
        ge=16,
        le=64,
        description="Random bytes used for the Apple sign-in nonce"
    )

    # Navigation
    navigation_debounce_ms: int = Field(
        default=150,
        ge=0,
        le=5000,
        description="Window during which a second redirect is suppressed"
    )
    reset_redirect_delay_seconds: float = Field(
        default=3.0,
        ge=0.0,
        description="Delay before auto-navigating to sign-in after a password reset"
    )

    # Verify email
    verify_email_cooldown_seconds: int = Field(
        default=45,
        ge=1,
        description="Cooldown between verification email resends"
    )
    verify_email_max_sends: int = Field(
        default=3,
        ge=1,
        description="Resends allowed inside the verify-email send window"
    )
    verify_email_send_window_seconds: int = Field(
        default=300,
        ge=1,
        description="Window for the secondary verify-email resend limit"
    )
    verify_email_sent_flash_seconds: float = Field(
        default=5.0,
        ge=0.0,
        description="How long the 'sent' confirmation stays visible"
    )

    # Forgot password
    forgot_password_max_requests: int = Field(
        default=3,
        ge=1,
        description="Reset emails allowed inside the rolling window"
    )
    forgot_password_window_seconds: int = Field(
        default=30,
        ge=1,
        description="Rolling window for the forgot-password local rate limit"
    )

    # Sign in
    sign_in_attempt_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive failures before the rate-limit message is shown"
    )

    # Backend session upkeep
    auto_refresh_interval_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="How often the auto-refresh loop checks the session"
    )
    connection_check_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for the backend connectivity probe at boot"
    )

    @property
    def navigation_debounce_seconds(self) -> float:
        """Debounce window in seconds."""
        return self.navigation_debounce_ms / 1000.0


class StorageSettings(BaseSettings):
    """Local persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FINYVO_",
        extra="ignore"
    )

    onboarding_store_path: str = Field(
        default=str(Path.home() / ".finyvo" / "auth-storage.json"),
        description="JSON document holding the per-user onboarding flags"
    )


class AppSettings(BaseSettings):
    """
    Runtime environment and logging.

    Read without a prefix: APP_ENVIRONMENT, DEBUG_MODE, LOG_LEVEL.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="development, staging or production"
    )
    debug_mode: bool = Field(
        default=False,
        description="Verbose diagnostics"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Sub-settings are built on first access, so a missing
    SUPABASE_URL only fails code that actually needs the backend.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are built lazily so a missing Supabase key does not
    # stop the flows or the guard from loading.

    @property
    def supabase(self) -> SupabaseSettings:
        return SupabaseSettings()

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings, built once.

    Tests that change the environment call get_settings.cache_clear().
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try to load each sub-settings group.

    Maps group name to success; a failed group also gets a
    "<name>_error" entry with the validation message.
    """
    results = {}

    settings = get_settings()

    for name in ("supabase", "auth", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
