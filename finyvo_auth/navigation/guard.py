"""
Navigation Guard

The single authority on whether the current screen may stay or must be
replaced. Re-evaluated on every store change and every route change.

Deep links run through `handle_url()` first. Only OTP links (password
recovery, sign-up verification) are exchanged here; OAuth callbacks are
completed by the Auth Service's browser flow and are ignored.

DESIGN DECISION: Deep links are serialized.
A second link arriving while one is being exchanged waits for the first
to finish, then runs (or is dropped as a duplicate of the last URL).
Links are never processed concurrently.

DESIGN DECISION: Evaluation is not reentrant.
A redirect changes the route, which requests another evaluation. That
request is folded into the running one as a re-run instead of recursing.
"""

import asyncio
from typing import Callable, Optional

from finyvo_auth.audit import AuditLogger, create_correlation_id
from finyvo_auth.deeplink import classify_callback, is_oauth_callback, parse_callback
from finyvo_auth.models.auth import CallbackKind, CallbackMode, OtpType
from finyvo_auth.models.routes import Route
from finyvo_auth.navigation.navigator import GuardedNavigator
from finyvo_auth.navigation.rules import GuardDecision, GuardInputs, evaluate
from finyvo_auth.services.auth.service import AuthService
from finyvo_auth.store.session_store import SessionStore


# Redirect chains longer than this in one evaluation indicate a loop
MAX_EVALUATION_PASSES = 3


class NavigationGuard:
    """
    Reconciles session, recovery and onboarding state with the current route.

    Usage:
        guard = NavigationGuard(store, auth_service, navigator)
        guard.start()
        await guard.handle_url(initial_url)
    """

    def __init__(
        self,
        store: SessionStore,
        auth_service: AuthService,
        navigator: GuardedNavigator,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._auth = auth_service
        self._navigator = navigator
        self._audit_logger = audit_logger or AuditLogger()

        self._link_ready = False
        self._processing_link = False
        self._last_url: Optional[str] = None
        self._link_lock = asyncio.Lock()

        self._evaluating = False
        self._rerun = False
        self._unsubscribers: list[Callable[[], None]] = []
        self.last_decision: Optional[GuardDecision] = None

    @property
    def link_ready(self) -> bool:
        return self._link_ready

    @property
    def processing_link(self) -> bool:
        return self._processing_link

    @property
    def last_url(self) -> Optional[str]:
        return self._last_url

    # =========================================================================
    # Wiring
    # =========================================================================

    def start(self) -> None:
        """Re-evaluate on every store change and every route change."""
        if self._unsubscribers:
            return
        self._unsubscribers.append(
            self._store.subscribe(lambda new, old: self.request_evaluation())
        )
        self._unsubscribers.append(
            self._navigator.router.add_listener(lambda path: self.request_evaluation())
        )

    def stop(self) -> None:
        while self._unsubscribers:
            self._unsubscribers.pop()()

    # =========================================================================
    # Rule evaluation
    # =========================================================================

    def current_inputs(self) -> GuardInputs:
        state = self._store.state
        return GuardInputs(
            is_loading=state.is_loading,
            link_ready=self._link_ready,
            processing_link=self._processing_link,
            has_session=state.is_authenticated,
            is_onboarded=state.is_onboarded,
            is_recovery_session=state.is_recovery_session,
            segments=tuple(self._navigator.router.segments),
        )

    def request_evaluation(self) -> Optional[GuardDecision]:
        """
        Evaluate the rules and apply the decision.

        Calls made while an evaluation is running only schedule a re-run.
        """
        if self._evaluating:
            self._rerun = True
            return None

        self._evaluating = True
        try:
            for _ in range(MAX_EVALUATION_PASSES):
                self._rerun = False
                decision = evaluate(self.current_inputs())
                self.last_decision = decision
                if decision.target is not None:
                    self._navigator.replace(
                        decision.target,
                        force=decision.force,
                        reason=decision.state.value,
                    )
                if not self._rerun:
                    break
        finally:
            self._evaluating = False

        return self.last_decision

    # =========================================================================
    # Deep links
    # =========================================================================

    def _finish_link(self) -> None:
        self._link_ready = True
        self.request_evaluation()

    async def handle_url(self, url: Optional[str]) -> None:
        """
        Process an incoming deep link (None when the app opened without one).

        Never raises: a failed exchange sends the user to a safe screen.
        """
        if not url:
            self._finish_link()
            return

        async with self._link_lock:
            if url == self._last_url:
                self._finish_link()
                return
            self._last_url = url

            if is_oauth_callback(url):
                self._finish_link()
                return

            params = parse_callback(url)
            is_recovery = classify_callback(params) == CallbackKind.RECOVERY
            is_signup_verify = bool(params.token_hash) and params.type == OtpType.SIGNUP.value

            if not (is_recovery or is_signup_verify):
                self._finish_link()
                return

            kind = CallbackKind.RECOVERY.value if is_recovery else CallbackKind.VERIFY.value
            correlation_id = create_correlation_id()
            self._audit_logger.log_deep_link_received(kind, correlation_id)

            self._processing_link = True
            try:
                result = await self._auth.process_auth_callback(params)
                self._audit_logger.log_deep_link_processed(
                    result.mode.value,
                    result.otp_type.value if result.otp_type else None,
                    correlation_id,
                )
                if result.mode == CallbackMode.OTP:
                    if is_recovery:
                        self._store.set_recovery_session(True)
                        self._navigator.replace(Route.RESET_PASSWORD, force=True, reason="recovery_link")
                    else:
                        self._navigator.replace(Route.EMAIL_VERIFIED, force=True, reason="verify_link")
            except Exception as e:
                self._audit_logger.log_deep_link_failed(kind, str(e), correlation_id)
                fallback = Route.FORGOT_PASSWORD if is_recovery else Route.SIGN_IN
                self._navigator.replace(fallback, force=True, reason="link_failed")
            finally:
                self._processing_link = False
                self._link_ready = True

        self.request_evaluation()
