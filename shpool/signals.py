"""Termination signal handling for the daemon.

On the first termination signal the daemon removes its socket file and
exits with status 0. A second termination signal, arriving while that
cleanup is still in progress, exits immediately with status 1.
"""

from __future__ import annotations

import logging
import os
import signal
import sys
import threading
from types import FrameType

__all__ = ["TERM_SIGNALS", "Handler"]

log = logging.getLogger(__name__)

TERM_SIGNALS = (signal.SIGTERM, signal.SIGQUIT, signal.SIGINT)


class Handler:
    """Cleans up the daemon socket and exits on termination signals."""

    def __init__(self, sock: str | os.PathLike[str] | None) -> None:
        self.sock = sock
        self._term_now = threading.Event()

    def spawn(self) -> None:
        """Install the signal handlers and start the cleanup thread.

        Must be called from the main thread.
        """
        log.info("spawning signal handler thread")
        for sig in TERM_SIGNALS:
            signal.signal(sig, self._on_signal)
        threading.Thread(
            target=self._wait_and_exit, name="signal-handler", daemon=True
        ).start()

    def _on_signal(self, signum: int, frame: FrameType | None) -> None:
        if self._term_now.is_set():
            # A second signal while shutting down: give up on being graceful.
            os._exit(1)
        self._term_now.set()

    def _cleanup(self) -> None:
        log.info("term sig handler: cleaning up socket")
        if self.sock is None:
            return
        try:
            os.remove(self.sock)
        except OSError as exc:
            log.error("error cleaning up socket file: %s", exc)

    def _wait_and_exit(self) -> None:
        self._term_now.wait()
        self._cleanup()
        log.info("term sig handler: exiting")
        for stream in (sys.stdout, sys.stderr):
            try:
                stream.flush()
            except (OSError, ValueError):
                pass
        os._exit(0)