"""The ``detach``, ``kill`` and ``list`` commands, which talk to a running daemon."""

from __future__ import annotations

import datetime
import os
import sys
from contextlib import contextmanager
from typing import IO, Iterable, Iterator, Mapping, TypeVar

from shpool.protocol import (
    Client,
    ConnectHeader,
    DetachReply,
    DetachRequest,
    KillReply,
    KillRequest,
    ListReply,
    ListRequest,
    ProtocolError,
)

__all__ = ["CommandError", "SESSION_NAME_VAR", "detach", "kill", "list_sessions"]

SESSION_NAME_VAR = "SHPOOL_SESSION_NAME"

_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)

T = TypeVar("T")


class CommandError(Exception):
    """Raised when a client command fails."""


@contextmanager
def _connect(sock: str | os.PathLike[str]) -> Iterator[Client]:
    try:
        client = Client(sock)
    except FileNotFoundError as exc:
        print("could not connect to daemon", file=sys.stderr)
        raise CommandError(f"connecting to daemon: {exc}") from exc
    except OSError as exc:
        raise CommandError(f"connecting to daemon: {exc}") from exc
    with client:
        yield client


def _exchange(client: Client, header: ConnectHeader, reply_type: type[T]) -> T:
    try:
        client.write_connect_header(header)
    except OSError as exc:
        raise CommandError(f"writing connect header: {exc}") from exc
    try:
        return client.read_reply(reply_type)
    except (OSError, EOFError, ProtocolError) as exc:
        raise CommandError(f"reading reply: {exc}") from exc


def _resolve_sessions(
    sessions: Iterable[str], action: str, environ: Mapping[str, str] | None = None
) -> list[str]:
    """Fall back to the session named in the environment when none are given."""
    resolved = list(sessions)
    if resolved:
        return resolved
    env = os.environ if environ is None else environ
    name = env.get(SESSION_NAME_VAR)
    if not name:
        raise CommandError(f"no session to {action}")
    return [name]


def _fail(label: str, names: list[str]) -> None:
    message = f"{label}: {' '.join(names)}"
    print(message, file=sys.stderr)
    raise CommandError(message)


def detach(sessions: Iterable[str], socket: str | os.PathLike[str]) -> None:
    """Detach the clients of the given sessions without closing their shells."""
    with _connect(socket) as client:
        names = _resolve_sessions(sessions, "detach")
        reply = _exchange(client, DetachRequest(names), DetachReply)
    if reply.not_found_sessions:
        _fail("not found", reply.not_found_sessions)
    if reply.not_attached_sessions:
        _fail("not attached", reply.not_attached_sessions)


def kill(sessions: Iterable[str], socket: str | os.PathLike[str]) -> None:
    """Kill the given sessions."""
    with _connect(socket) as client:
        names = _resolve_sessions(sessions, "kill")
        reply = _exchange(client, KillRequest(names), KillReply)
    if reply.not_found_sessions:
        _fail("not found", reply.not_found_sessions)


def _rfc3339(unix_ms: int) -> str:
    moment = _EPOCH + datetime.timedelta(milliseconds=unix_ms)
    millis = moment.microsecond // 1000
    frac = f".{millis:03d}" if millis else ""
    return moment.strftime("%Y-%m-%dT%H:%M:%S") + frac + "+00:00"


def list_sessions(socket: str | os.PathLike[str], out: IO[str] | None = None) -> None:
    """Write a tab separated table of the running sessions to ``out``."""
    stream = sys.stdout if out is None else out
    with _connect(socket) as client:
        reply = _exchange(client, ListRequest(), ListReply)

    print("NAME\tSTARTED_AT\tSTATUS", file=stream)
    for session in reply.sessions:
        print(
            f"{session.name}\t{_rfc3339(session.started_at_unix_ms)}\t{session.status}",
            file=stream,
        )