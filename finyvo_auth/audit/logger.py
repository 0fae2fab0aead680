"""
Audit Logger

DESIGN DECISION: Every session transition and redirect is logged.
This provides:
1. Traceability of navigation decisions
2. Debugging capability for deep links
3. Visibility of backend messages the error tables miss

The audit logger:
- Is synchronous, since the store and the guard react to backend events
  from plain callbacks
- Gracefully handles failures (logging never breaks an auth flow)
- Tags every step of one deep link with the same correlation id
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finyvo_auth.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# JSON lines through the stdlib logging tree
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route the stdlib root logger (which structlog writes through) to stderr."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )


def get_logger(name: Optional[str] = None):
    """Module-level structured logger for plain diagnostic lines."""
    return structlog.get_logger(name)


class AuditLogger:
    """
    Turns AuditEvents into structlog lines.

    The store, the guard, the service and the flows each hold one; the
    level is picked from the event severity.
    """

    def __init__(self, name: str = "finyvo_auth.audit"):
        self._logger = structlog.get_logger(name)

    def log(self, event: AuditEvent) -> bool:
        """Emit one event. Returns False when the write itself raised."""
        fields = event.to_log_dict()

        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **fields)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **fields)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **fields)
            else:
                self._logger.info("audit_event", **fields)
        except Exception:
            # a broken handler must not fail a sign-in
            return False

        return True

    def log_session_initialized(
        self,
        user_id: Optional[str],
        has_session: bool,
    ) -> None:
        """Log the end of store initialization."""
        self.log(AuditEventBuilder.session_initialized(user_id, has_session))

    def log_session_init_failed(self, error_message: str) -> None:
        """Log a failed initial session fetch."""
        self.log(AuditEventBuilder.session_init_failed(error_message))

    def log_auth_state_changed(
        self,
        auth_event: str,
        user_id: Optional[str],
    ) -> None:
        self.log(AuditEventBuilder.auth_state_changed(auth_event, user_id))

    def log_signed_out(self, user_id: Optional[str]) -> None:
        self.log(AuditEventBuilder.signed_out(user_id))

    def log_sign_out_failed(
        self,
        user_id: Optional[str],
        error_message: str,
    ) -> None:
        self.log(AuditEventBuilder.sign_out_failed(user_id, error_message))

    def log_recovery_flag(self, value: bool) -> None:
        self.log(AuditEventBuilder.recovery_flag_changed(value))

    def log_onboarding_updated(
        self,
        user_id: Optional[str],
        value: bool,
    ) -> None:
        self.log(AuditEventBuilder.onboarding_updated(user_id, value))

    def log_onboarding_migrated(self, user_id: str, value: bool) -> None:
        self.log(AuditEventBuilder.onboarding_migrated(user_id, value))

    def log_deep_link_received(self, kind: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.deep_link_received(kind, correlation_id))

    def log_deep_link_processed(
        self,
        mode: str,
        otp_type: Optional[str],
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.deep_link_processed(mode, otp_type, correlation_id))

    def log_deep_link_failed(
        self,
        kind: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.deep_link_failed(kind, error_message, correlation_id))

    def log_redirect(
        self,
        from_path: Optional[str],
        to_path: str,
        forced: bool,
        reason: Optional[str] = None,
    ) -> None:
        """Log a navigation replace that went through."""
        self.log(AuditEventBuilder.redirect_issued(from_path, to_path, forced, reason))

    def log_redirect_suppressed(self, to_path: str, reason: str) -> None:
        self.log(AuditEventBuilder.redirect_suppressed(to_path, reason))

    def log_unmatched_error(
        self,
        table: str,
        error_message: str,
        fallback_code: str,
    ) -> None:
        """Log a backend message no pattern in `table` recognized."""
        self.log(AuditEventBuilder.backend_error_unmatched(table, error_message, fallback_code))

    def log_internal_error(
        self,
        operation: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.log(AuditEventBuilder.internal_error(operation, error_message, details))

    def log_backend_unavailable(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Boot continues offline after this; the guard still runs."""
        self.log(AuditEventBuilder.backend_unavailable(error_message, correlation_id))


def create_correlation_id() -> UUID:
    """
    New correlation id for one deep link, passed through its whole handling.
    """
    return uuid4()
