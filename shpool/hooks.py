"""Callbacks a host application can supply to observe daemon events."""

from __future__ import annotations

from enum import Enum

__all__ = ["Hooks", "HookEvent"]


class HookEvent(Enum):
    """The daemon events a hook can observe."""

    NEW_SESSION = "new_session"
    REATTACH = "reattach"
    BUSY = "busy"
    CLIENT_DISCONNECT = "client_disconnect"
    SHELL_DISCONNECT = "shell_disconnect"


class Hooks:
    """Event callbacks invoked by the daemon.

    Hooks run inline in the daemon's control flow and must not block for
    long; hand long work to a worker thread. Exceptions raised by a hook
    are logged and otherwise ignored. Every hook has no effect by default;
    subclasses override the ones they care about.
    """

    def _observe(self, event: HookEvent, session_name: str) -> None:
        if not isinstance(session_name, str):
            raise TypeError(
                f"{event.value} hook expects a session name string, "
                f"got {type(session_name).__name__}"
            )

    def on_new_session(self, session_name: str) -> None:
        """Called when a fresh session is created."""
        self._observe(HookEvent.NEW_SESSION, session_name)

    def on_reattach(self, session_name: str) -> None:
        """Called when a user connects to an existing session."""
        self._observe(HookEvent.REATTACH, session_name)

    def on_busy(self, session_name: str) -> None:
        """Called when a connect fails because a client is already attached."""
        self._observe(HookEvent.BUSY, session_name)

    def on_client_disconnect(self, session_name: str) -> None:
        """Called when the attaching client hangs up."""
        self._observe(HookEvent.CLIENT_DISCONNECT, session_name)

    def on_shell_disconnect(self, session_name: str) -> None:
        """Called when a session closes because of a daemon-side event."""
        self._observe(HookEvent.SHELL_DISCONNECT, session_name)