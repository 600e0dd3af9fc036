"""Support for systemd socket activation."""

from __future__ import annotations

import os
import re
import socket
import stat
from typing import Mapping

__all__ = ["ActivationError", "activation_socket"]

# systemd passes the first activation socket as fd 3 (0-2 are stdio).
FIRST_ACTIVATION_SOCKET_FD = 3

_INT_RE = re.compile(r"[+-]?[0-9]+")


class ActivationError(RuntimeError):
    """Raised when the systemd activation socket cannot be used."""


def activation_socket(environ: Mapping[str, str] | None = None) -> socket.socket:
    """Return the listening socket systemd passed to this process."""
    env = os.environ if environ is None else environ

    try:
        raw = env["LISTEN_FDS"]
    except KeyError:
        raise ActivationError("fetching LISTEN_FDS env var: not present") from None
    if not _INT_RE.fullmatch(raw):
        raise ActivationError(f"parsing LISTEN_FDS as int: invalid value '{raw}'")
    num_activation_socks = int(raw)
    if num_activation_socks != 1:
        raise ActivationError(
            f"expected exactly 1 activation fd, got {num_activation_socks}"
        )

    fd = FIRST_ACTIVATION_SOCKET_FD
    try:
        sock_stat = os.fstat(fd)
    except OSError as exc:
        raise ActivationError(f"stating activation sock: {exc}") from exc
    if not stat.S_ISSOCK(sock_stat.st_mode):
        raise ActivationError("expected to be passed a unix socket")

    return socket.socket(fileno=fd)