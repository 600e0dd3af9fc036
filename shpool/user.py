"""Information about the user running the process."""

from __future__ import annotations

import os
import pwd
from dataclasses import dataclass

__all__ = ["Info", "info"]


@dataclass(frozen=True)
class Info:
    """Login details of a user."""

    default_shell: str
    home_dir: str
    user: str


def info() -> Info:
    """Look up the current user in the password database."""
    try:
        entry = pwd.getpwuid(os.getuid())
    except KeyError:
        raise LookupError("could not find current user, should be impossible") from None
    return Info(default_shell=entry.pw_shell, home_dir=entry.pw_dir, user=entry.pw_name)