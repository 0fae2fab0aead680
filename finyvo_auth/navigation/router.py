"""
Router Boundary

The host app's navigation stack, reduced to what the guard needs:
the current path, a replace operation and change notifications.
"""

from abc import ABC, abstractmethod
from typing import Callable

from finyvo_auth.models.routes import route_segments


RouteListener = Callable[[str], None]


class RouterInterface(ABC):
    """Abstract interface for the host app's router."""

    @property
    @abstractmethod
    def current_path(self) -> str:
        """Path of the screen currently shown, e.g. '/(auth)/sign-in'."""
        pass

    @abstractmethod
    def replace(self, path: str) -> None:
        """Replace the current screen (no back-stack entry)."""
        pass

    @abstractmethod
    def add_listener(self, listener: RouteListener) -> Callable[[], None]:
        """
        Call `listener(path)` whenever the current path changes.

        Returns:
            A function that removes the listener
        """
        pass

    @property
    def segments(self) -> list[str]:
        return route_segments(self.current_path)


class InMemoryRouter(RouterInterface):
    """Router that only records paths; used headless and in tests."""

    def __init__(self, initial_path: str = "/"):
        self._path = initial_path
        self._listeners: list[RouteListener] = []
        self.history: list[str] = []

    @property
    def current_path(self) -> str:
        return self._path

    def replace(self, path: str) -> None:
        self._path = path
        self.history.append(path)
        self._notify()

    def navigate(self, path: str) -> None:
        """User-driven navigation (not a guard redirect)."""
        self._path = path
        self._notify()

    def add_listener(self, listener: RouteListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._path)
