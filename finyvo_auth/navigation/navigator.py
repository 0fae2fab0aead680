"""
Guarded Navigator

Every redirect issued by the guard or a flow goes through `replace()`.

DESIGN DECISION: A lease with an expiry instead of a timer-released lock.
Taking the lease stamps `now + debounce`; a new non-forced replace is
refused while `now` is before that stamp. Nothing has to run to release
it, and tests drive the clock directly.

Rules of `replace(target, force)`:
1. Target equal to the current path: no-op, even when forced
2. Lease still active and not forced: suppressed
3. Otherwise take the lease and replace
"""

import time
from typing import Callable, Optional, Union

from pydantic import BaseModel, ConfigDict

from finyvo_auth.audit import AuditLogger
from finyvo_auth.config import get_settings
from finyvo_auth.models.routes import Route
from finyvo_auth.navigation.router import RouterInterface


Clock = Callable[[], float]


class NavigationLease(BaseModel):
    model_config = ConfigDict(frozen=True)

    target: str
    expires_at: float

    def is_active(self, now: float) -> bool:
        return now < self.expires_at


class GuardedNavigator:
    """Debounced, de-duplicated `replace` on top of a router."""

    def __init__(
        self,
        router: RouterInterface,
        debounce_seconds: Optional[float] = None,
        clock: Clock = time.monotonic,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._router = router
        self._debounce = (
            debounce_seconds
            if debounce_seconds is not None
            else get_settings().auth.navigation_debounce_seconds
        )
        self._clock = clock
        self._audit_logger = audit_logger or AuditLogger()
        self._lease: Optional[NavigationLease] = None

    @property
    def router(self) -> RouterInterface:
        return self._router

    @property
    def lease(self) -> Optional[NavigationLease]:
        return self._lease

    def is_locked(self) -> bool:
        return self._lease is not None and self._lease.is_active(self._clock())

    def replace(
        self,
        target: Union[Route, str],
        force: bool = False,
        reason: Optional[str] = None,
    ) -> bool:
        """
        Replace the current screen with `target`.

        Returns:
            True if the router was actually asked to navigate
        """
        path = target.path if isinstance(target, Route) else target
        current = self._router.current_path

        if path == current:
            return False

        now = self._clock()
        if not force and self._lease is not None and self._lease.is_active(now):
            self._audit_logger.log_redirect_suppressed(path, "debounced")
            return False

        self._lease = NavigationLease(target=path, expires_at=now + self._debounce)
        self._audit_logger.log_redirect(current, path, force, reason)
        self._router.replace(path)
        return True
