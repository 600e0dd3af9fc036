"""Terminal size handling and raw-mode setup for the attaching tty."""

from __future__ import annotations

import fcntl
import logging
import os
import struct
import termios
from dataclasses import dataclass
from types import TracebackType

__all__ = ["Size", "disable_echo", "set_attach_flags", "AttachFlagsGuard"]

log = logging.getLogger(__name__)

STDIN_FD = 0
STDOUT_FD = 1
STDERR_FD = 2

_WINSIZE = struct.Struct("HHHH")

# Indices into the list returned by termios.tcgetattr.
_IFLAG, _OFLAG, _CFLAG, _LFLAG, _CC = 0, 1, 2, 3, 6


@dataclass
class Size:
    """The size of a terminal in character cells and pixels."""

    rows: int = 0
    cols: int = 0
    xpixel: int = 0
    ypixel: int = 0

    @classmethod
    def from_fd(cls, fd: int) -> "Size":
        """Return the size of the terminal behind ``fd``."""
        raw = fcntl.ioctl(fd, termios.TIOCGWINSZ, bytes(_WINSIZE.size))
        rows, cols, xpixel, ypixel = _WINSIZE.unpack(raw)
        return cls(rows=rows, cols=cols, xpixel=xpixel, ypixel=ypixel)

    def set_fd(self, fd: int) -> None:
        """Set the terminal behind ``fd`` to this size."""
        packed = _WINSIZE.pack(self.rows, self.cols, self.xpixel, self.ypixel)
        fcntl.ioctl(fd, termios.TIOCSWINSZ, packed)


def disable_echo(fd: int) -> None:
    """Turn off local echo on the terminal behind ``fd``."""
    attrs = termios.tcgetattr(fd)
    attrs[_LFLAG] &= ~termios.ECHO
    termios.tcsetattr(fd, termios.TCSANOW, attrs)


class AttachFlagsGuard:
    """Restores saved terminal settings when closed or when leaving a ``with`` block."""

    def __init__(self, fd: int, old: list | None) -> None:
        self.fd = fd
        self.old = old

    def restore(self) -> None:
        """Put back the saved settings, logging any failure."""
        if self.old is None:
            return
        try:
            termios.tcsetattr(self.fd, termios.TCSANOW, self.old)
        except (OSError, termios.error) as exc:
            log.error("error restoring terminal settings: %r", exc)

    def __enter__(self) -> "AttachFlagsGuard":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.restore()


def set_attach_flags() -> AttachFlagsGuard:
    """Put stdin into raw mode if all standard streams are terminals.

    The returned guard restores the previous settings.
    """
    fd = STDIN_FD
    if not (os.isatty(STDIN_FD) and os.isatty(STDOUT_FD) and os.isatty(STDERR_FD)):
        # Not attached to a terminal, so leave the flags alone.
        return AttachFlagsGuard(fd, None)

    old = termios.tcgetattr(fd)
    new = list(old)
    new[_CC] = list(old[_CC])

    new[_IFLAG] &= ~(
        termios.IGNBRK
        | termios.BRKINT
        | termios.PARMRK
        | termios.ISTRIP
        | termios.INLCR
        | termios.IGNCR
        | termios.ICRNL
        | termios.IXON
    )
    new[_OFLAG] &= ~termios.OPOST
    new[_LFLAG] &= ~(
        termios.ECHO | termios.ECHONL | termios.ICANON | termios.ISIG | termios.IEXTEN
    )
    new[_CFLAG] &= ~(termios.CSIZE | termios.PARENB)
    new[_CFLAG] |= termios.CS8
    termios.tcsetattr(fd, termios.TCSANOW, new)

    return AttachFlagsGuard(fd, old)