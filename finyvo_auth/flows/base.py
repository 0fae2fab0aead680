"""
Flow State Container

DESIGN DECISION: Every flow exposes an immutable state snapshot.
A flow replaces its snapshot on each transition and tells its listeners,
the same way the session store does. Screens render the snapshot; they
never mutate a flow directly.
"""

from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

from pydantic import BaseModel

from finyvo_auth.audit import AuditLogger, get_logger


logger = get_logger(__name__)

StateT = TypeVar("StateT", bound=BaseModel)
FlowListener = Callable[[BaseModel], None]


class FlowStatus(str, Enum):
    """Where a flow sits in its state machine. Each flow uses a subset."""
    BOOTING = "booting"
    IDLE = "idle"
    LOADING = "loading"
    SENDING = "sending"
    SENT = "sent"
    EMAIL_SENT = "email_sent"
    DUPLICATE = "duplicate"
    SUCCESS = "success"
    ERROR = "error"


class BaseFlow(Generic[StateT]):
    """Holds one flow's snapshot and notifies listeners on change."""

    def __init__(self, initial: StateT, audit_logger: Optional[AuditLogger] = None):
        self._initial = initial
        self._state = initial
        self._listeners: list[FlowListener] = []
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def state(self) -> StateT:
        return self._state

    def subscribe(self, listener: FlowListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes) -> StateT:
        return self._replace(self._state.model_copy(update=changes))

    def _reset_state(self, **overrides) -> StateT:
        """Back to the initial snapshot, keeping `overrides`."""
        return self._replace(self._initial.model_copy(update=overrides))

    def _replace(self, new_state: StateT) -> StateT:
        if new_state == self._state:
            return self._state

        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception as e:
                # A broken screen must not break the flow
                logger.error("flow_listener_failed", flow=type(self).__name__, error=str(e))
        return new_state
