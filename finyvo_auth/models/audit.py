"""
Audit Models for Finyvo Auth

Every session transition, redirect and deep link the orchestration layer
handles is recorded as an audit event. This provides:
1. Traceability of why the user landed on a given screen
2. Debugging information when a callback or sign-out goes wrong
3. A place to notice backend messages the error tables do not know yet

DESIGN DECISION: Events never carry credentials.
Tokens, passwords, nonces and email addresses are left out of `details`;
events identify people by user id only.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Grouped by the part of the orchestration layer that emits them.
    """
    # Session store
    SESSION_INITIALIZED = "session_initialized"
    SESSION_INIT_FAILED = "session_init_failed"
    AUTH_STATE_CHANGED = "auth_state_changed"
    SIGNED_OUT = "signed_out"
    SIGN_OUT_FAILED = "sign_out_failed"
    RECOVERY_FLAG_CHANGED = "recovery_flag_changed"
    ONBOARDING_UPDATED = "onboarding_updated"
    ONBOARDING_MIGRATED = "onboarding_migrated"

    # Deep links
    DEEP_LINK_RECEIVED = "deep_link_received"
    DEEP_LINK_PROCESSED = "deep_link_processed"
    DEEP_LINK_FAILED = "deep_link_failed"

    # Navigation
    REDIRECT_ISSUED = "redirect_issued"
    REDIRECT_SUPPRESSED = "redirect_suppressed"

    # Errors
    BACKEND_ERROR_UNMATCHED = "backend_error_unmatched"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    INTERNAL_ERROR = "internal_error"


class AuditSeverity(str, Enum):
    """How loud an event is; maps onto the log level."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """One entry in the auth audit trail."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Event id"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="UTC time the event was built"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="What happened"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Log level to emit at"
    )

    # Context
    user_id: Optional[str] = Field(
        default=None,
        description="Backend user id the event relates to, when known"
    )
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g. one deep link)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="One-line summary for humans reading the log"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Event-specific fields; never credentials"
    )

    # Set for failures only
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="True when a tap or form submit caused it"
    )

    def to_log_dict(self) -> dict:
        """Flatten into keyword arguments for structlog."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Factory methods, one per audited transition.

    Usage:
        event = AuditEventBuilder.auth_state_changed("SIGNED_IN", user_id)
        event = AuditEventBuilder.redirect_issued("/(auth)/sign-in", "/(tabs)/dashboard")
    """

    @staticmethod
    def session_initialized(
        user_id: Optional[str],
        has_session: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_INITIALIZED,
            user_id=user_id,
            description="Session store initialized",
            details={"has_session": has_session},
        )

    @staticmethod
    def session_init_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_INIT_FAILED,
            severity=AuditSeverity.WARNING,
            description="Initial session fetch failed; continuing logged out",
            error_message=error_message,
        )

    @staticmethod
    def auth_state_changed(
        auth_event: str,
        user_id: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTH_STATE_CHANGED,
            user_id=user_id,
            description=f"Auth state changed: {auth_event}",
            details={"auth_event": auth_event},
        )

    @staticmethod
    def signed_out(user_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_OUT,
            user_id=user_id,
            description="User signed out",
            is_user_action=True,
        )

    @staticmethod
    def sign_out_failed(
        user_id: Optional[str],
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGN_OUT_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            description="Backend sign-out failed; local state cleared anyway",
            error_message=error_message,
        )

    @staticmethod
    def recovery_flag_changed(value: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECOVERY_FLAG_CHANGED,
            description=f"Recovery session flag set to {value}",
            details={"is_recovery_session": value},
        )

    @staticmethod
    def onboarding_updated(
        user_id: Optional[str],
        value: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ONBOARDING_UPDATED,
            severity=AuditSeverity.INFO if user_id else AuditSeverity.WARNING,
            user_id=user_id,
            description=(
                "Onboarding flag updated"
                if user_id
                else "Onboarding flag written to legacy slot (no current user)"
            ),
            details={"onboarded": value},
            is_user_action=True,
        )

    @staticmethod
    def onboarding_migrated(
        user_id: str,
        value: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ONBOARDING_MIGRATED,
            user_id=user_id,
            description="Legacy onboarding flag migrated to user",
            details={"onboarded": value},
        )

    @staticmethod
    def deep_link_received(
        kind: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEEP_LINK_RECEIVED,
            correlation_id=correlation_id,
            description=f"Deep link received: {kind}",
            details={"kind": kind},
        )

    @staticmethod
    def deep_link_processed(
        mode: str,
        otp_type: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEEP_LINK_PROCESSED,
            correlation_id=correlation_id,
            description=f"Deep link processed via {mode}",
            details={"mode": mode, "otp_type": otp_type},
        )

    @staticmethod
    def deep_link_failed(
        kind: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEEP_LINK_FAILED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Deep link processing failed: {kind}",
            error_message=error_message,
            details={"kind": kind},
        )

    @staticmethod
    def redirect_issued(
        from_path: Optional[str],
        to_path: str,
        forced: bool,
        reason: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REDIRECT_ISSUED,
            severity=AuditSeverity.DEBUG,
            description=f"Redirect to {to_path}",
            details={
                "from": from_path,
                "to": to_path,
                "forced": forced,
                "reason": reason,
            },
        )

    @staticmethod
    def redirect_suppressed(
        to_path: str,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REDIRECT_SUPPRESSED,
            severity=AuditSeverity.DEBUG,
            description=f"Redirect to {to_path} suppressed",
            details={"to": to_path, "reason": reason},
        )

    @staticmethod
    def backend_error_unmatched(
        table: str,
        error_message: str,
        fallback_code: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKEND_ERROR_UNMATCHED,
            severity=AuditSeverity.WARNING,
            description=f"Backend message not recognized by {table} table",
            error_code=fallback_code,
            error_message=error_message,
            details={"table": table},
        )

    @staticmethod
    def internal_error(
        operation: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INTERNAL_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"{operation} failed inside the auth layer",
            error_code=operation,
            error_message=error_message,
            details=details or {},
        )

    @staticmethod
    def backend_unavailable(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKEND_UNAVAILABLE,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description="Identity backend unreachable at boot",
            error_message=error_message,
        )
