"""Parser for the duration format accepted by ``attach --ttl``.

Two forms are understood: a colon separated ``dd:hh:mm:ss`` form where
any leading part may be left off, and a number followed by a single unit
letter (``s``, ``m``, ``h`` or ``d``).
"""

from __future__ import annotations

import datetime
import itertools
import re

__all__ = ["DurationError", "parse"]

_U64_MAX = 2**64 - 1
_U64_RE = re.compile(r"\+?[0-9]+")

_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 60 * 60 * 24,
}

# (name of the part, seconds per unit), ordered from the rightmost part.
_COLON_PARTS = (
    ("seconds", 1),
    ("minutes", 60),
    ("hours", 60 * 60),
    ("days", 60 * 60 * 24),
)


class DurationError(ValueError):
    """Raised when a duration string cannot be parsed."""


def _parse_u64(text: str, context: str) -> int:
    if not text:
        raise DurationError(f"{context}: cannot parse integer from empty string")
    if not _U64_RE.fullmatch(text):
        raise DurationError(f"{context}: invalid digit found in string")
    value = int(text)
    if value > _U64_MAX:
        raise DurationError(f"{context}: number too large to fit in target type")
    return value


def parse(src: str) -> datetime.timedelta:
    """Parse ``src`` into a :class:`datetime.timedelta`."""
    if ":" in src:
        return _parse_colon_duration(src)
    if src and src[-1].isalpha():
        return _parse_suffix_duration(src)
    raise DurationError(f"could not parse '{src}' as duration")


def _parse_colon_duration(src: str) -> datetime.timedelta:
    """Parse ``dd:hh:mm:ss`` or any suffix of it."""
    parts = list(reversed(src.split(":")))
    if not parts:
        raise DurationError(f"'{src}' must have at least one part")

    secs = 0
    for part, (name, scale) in zip(parts, _COLON_PARTS):
        secs += _parse_u64(part, f"parsing {name} part") * scale
    if len(parts) > len(_COLON_PARTS):
        raise DurationError("colon duration cannot have more than 4 parts")
    return datetime.timedelta(seconds=secs)


def _parse_suffix_duration(src: str) -> datetime.timedelta:
    """Parse forms such as ``20d``, ``3h`` or ``14m``."""
    num = "".join(itertools.takewhile(str.isnumeric, src))
    unit = src[-1]
    n = _parse_u64(num, "parsing num part of duration")
    try:
        scale = _UNIT_SECONDS[unit]
    except KeyError:
        raise DurationError(f"unknown time unit '{unit}'") from None
    return datetime.timedelta(seconds=n * scale)