"""Wire protocol spoken between the shpool client commands and the daemon.

A client opens the daemon's unix socket, sends a connect header and then
reads a reply. Headers and replies use a compact little-endian binary
encoding: variant tags are 4-byte words, sequences and strings carry an
8-byte length prefix, and optional values carry a 1-byte presence tag.
After an attach, the daemon streams framed chunks (see :class:`Chunk`).
"""

from __future__ import annotations

import enum
import logging
import os
import socket
import struct
import sys
import threading
import time
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, BinaryIO, Callable, Iterable, TypeVar, Union

from shpool.tty import STDIN_FD, Size, set_attach_flags

__all__ = [
    "ProtocolError",
    "ChunkKind",
    "Chunk",
    "SessionStatus",
    "Session",
    "ListReply",
    "KillRequest",
    "KillReply",
    "DetachRequest",
    "DetachReply",
    "ResizeRequest",
    "SessionMessageRequest",
    "AttachHeader",
    "AttachStatusKind",
    "AttachStatus",
    "AttachReplyHeader",
    "ListRequest",
    "encode_connect_header",
    "decode_connect_header",
    "encode_reply",
    "decode_reply",
    "Client",
]

log = logging.getLogger(__name__)

JOIN_POLL_DUR = 0.1
JOIN_HANGUP_DUR = 0.3

_BUF_SIZE = 16 * 1024

T = TypeVar("T")


class ProtocolError(Exception):
    """Raised when data on the wire cannot be encoded or decoded."""


def _read_exact(r: BinaryIO, n: int) -> bytes:
    data = bytearray()
    while len(data) < n:
        part = r.read(n - len(data))
        if not part:
            raise EOFError(f"unexpected end of stream: wanted {n} bytes, got {len(data)}")
        data += part
    return bytes(data)


# ---------------------------------------------------------------------------
# Chunks


class ChunkKind(enum.IntEnum):
    """Tag identifying the type of a frame in the output stream."""

    DATA = 0
    HEARTBEAT = 1
    EXIT_STATUS = 2


@dataclass(frozen=True)
class Chunk:
    """A frame in the output stream.

    Layout: one kind byte, then (except for exit status frames, which
    always carry exactly 4 bytes) a 4-byte little-endian length, then data.
    """

    kind: ChunkKind
    buf: bytes = b""

    def write_to(self, w: BinaryIO) -> None:
        """Write this chunk to the binary stream ``w``."""
        out = bytearray([int(self.kind)])
        if self.kind is ChunkKind.EXIT_STATUS:
            if len(self.buf) != 4:
                raise ValueError("exit status chunk must carry exactly 4 bytes")
        else:
            if len(self.buf) > 0xFFFFFFFF:
                raise ProtocolError(f"chunk of size {len(self.buf)} is too large")
            out += struct.pack("<I", len(self.buf))
        out += self.buf
        w.write(bytes(out))

    @classmethod
    def read_from(cls, r: BinaryIO, limit: int) -> "Chunk":
        """Read one chunk from ``r``, refusing data longer than ``limit`` bytes."""
        raw_kind = _read_exact(r, 1)[0]
        try:
            kind = ChunkKind(raw_kind)
        except ValueError:
            raise ProtocolError(f"unknown ChunkKind {raw_kind}") from None
        if kind is ChunkKind.EXIT_STATUS:
            length = 4
        else:
            (length,) = struct.unpack("<I", _read_exact(r, 4))
        if length > limit:
            raise ProtocolError(
                f"chunk of size {length} exceeds size limit of {limit} bytes"
            )
        return cls(kind, _read_exact(r, length))


# ---------------------------------------------------------------------------
# Messages


class SessionStatus(enum.IntEnum):
    """Whether a session currently has a client attached."""

    ATTACHED = 0
    DISCONNECTED = 1

    def __str__(self) -> str:
        return "attached" if self is SessionStatus.ATTACHED else "disconnected"


@dataclass
class Session:
    """An active session as reported by the daemon."""

    name: str
    started_at_unix_ms: int
    status: SessionStatus


@dataclass
class ListRequest:
    """Request for the list of active sessions."""


@dataclass
class ListReply:
    sessions: list[Session] = field(default_factory=list)


@dataclass
class KillRequest:
    """Request to kill the named sessions."""

    sessions: list[str] = field(default_factory=list)


@dataclass
class KillReply:
    not_found_sessions: list[str] = field(default_factory=list)


@dataclass
class DetachRequest:
    """Request to detach the clients of the named sessions."""

    sessions: list[str] = field(default_factory=list)


@dataclass
class DetachReply:
    not_found_sessions: list[str] = field(default_factory=list)
    not_attached_sessions: list[str] = field(default_factory=list)


@dataclass
class ResizeRequest:
    """Resize a session's pty to the client's tty size."""

    tty_size: Size = field(default_factory=Size)


@dataclass
class SessionMessageRequest:
    """A message routed to a running session.

    ``payload`` is a :class:`ResizeRequest`, or ``None`` for a detach.
    """

    session_name: str
    payload: ResizeRequest | None = None


@dataclass
class AttachHeader:
    """Sent by a client to create or attach to a named session."""

    name: str = ""
    local_tty_size: Size = field(default_factory=Size)
    local_env: list[tuple[str, str]] = field(default_factory=list)
    ttl_secs: int | None = None
    cmd: str | None = None

    def local_env_get(self, var: str) -> str | None:
        """Return the value of ``var`` in the forwarded environment, if any."""
        return next((v for k, v in self.local_env if k == var), None)


class AttachStatusKind(enum.IntEnum):
    ATTACHED = 0
    CREATED = 1
    BUSY = 2
    FORBIDDEN = 3
    UNEXPECTED_ERROR = 4


@dataclass
class AttachStatus:
    """What happened during an attach attempt.

    ``warnings`` applies to ``ATTACHED`` and ``CREATED``; ``message`` to
    ``FORBIDDEN`` and ``UNEXPECTED_ERROR``.
    """

    kind: AttachStatusKind
    warnings: list[str] = field(default_factory=list)
    message: str = ""


@dataclass
class AttachReplyHeader:
    status: AttachStatus


ConnectHeader = Union[
    AttachHeader, ListRequest, SessionMessageRequest, DetachRequest, KillRequest
]


# ---------------------------------------------------------------------------
# Binary encoding


class _Encoder:
    def __init__(self) -> None:
        self.buf = bytearray()

    def _pack(self, fmt: str, value: int) -> None:
        try:
            self.buf += struct.pack(fmt, value)
        except struct.error as exc:
            raise ProtocolError(f"value {value!r} out of range") from exc

    def u8(self, v: int) -> None:
        self._pack("<B", v)

    def u16(self, v: int) -> None:
        self._pack("<H", v)

    def u32(self, v: int) -> None:
        self._pack("<I", v)

    def u64(self, v: int) -> None:
        self._pack("<Q", v)

    def i64(self, v: int) -> None:
        self._pack("<q", v)

    def string(self, s: str) -> None:
        data = s.encode("utf-8")
        self.u64(len(data))
        self.buf += data

    def seq(self, items: Iterable[T], fn: Callable[[T], None]) -> None:
        items = list(items)
        self.u64(len(items))
        for item in items:
            fn(item)

    def strings(self, items: Iterable[str]) -> None:
        self.seq(items, self.string)

    def opt(self, value: T | None, fn: Callable[[T], None]) -> None:
        if value is None:
            self.u8(0)
        else:
            self.u8(1)
            fn(value)

    def size(self, s: Size) -> None:
        for v in (s.rows, s.cols, s.xpixel, s.ypixel):
            self.u16(v)


class _Decoder:
    def __init__(self, r: BinaryIO) -> None:
        self._r = r

    def _unpack(self, fmt: str) -> int:
        s = struct.Struct(fmt)
        return s.unpack(_read_exact(self._r, s.size))[0]

    def u8(self) -> int:
        return self._unpack("<B")

    def u16(self) -> int:
        return self._unpack("<H")

    def u32(self) -> int:
        return self._unpack("<I")

    def u64(self) -> int:
        return self._unpack("<Q")

    def i64(self) -> int:
        return self._unpack("<q")

    def string(self) -> str:
        data = _read_exact(self._r, self.u64())
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError(f"invalid utf-8 in string: {exc}") from exc

    def seq(self, fn: Callable[[], T]) -> list[T]:
        return [fn() for _ in range(self.u64())]

    def strings(self) -> list[str]:
        return self.seq(self.string)

    def opt(self, fn: Callable[[], T]) -> T | None:
        tag = self.u8()
        if tag == 0:
            return None
        if tag == 1:
            return fn()
        raise ProtocolError(f"invalid option tag {tag}")

    def tag(self, enum_cls: type[enum.IntEnum], what: str) -> Any:
        raw = self.u32()
        try:
            return enum_cls(raw)
        except ValueError:
            raise ProtocolError(f"unknown {what} variant {raw}") from None

    def size(self) -> Size:
        return Size(rows=self.u16(), cols=self.u16(), xpixel=self.u16(), ypixel=self.u16())


class _HeaderTag(enum.IntEnum):
    ATTACH = 0
    LIST = 1
    SESSION_MESSAGE = 2
    DETACH = 3
    KILL = 4


class _PayloadTag(enum.IntEnum):
    RESIZE = 0
    DETACH = 1


def encode_connect_header(header: ConnectHeader) -> bytes:
    """Encode a connect header for transmission to the daemon."""
    e = _Encoder()
    if isinstance(header, AttachHeader):
        e.u32(_HeaderTag.ATTACH)
        e.string(header.name)
        e.size(header.local_tty_size)

        def pair(kv: tuple[str, str]) -> None:
            e.string(kv[0])
            e.string(kv[1])

        e.seq(header.local_env, pair)
        e.opt(header.ttl_secs, e.u64)
        e.opt(header.cmd, e.string)
    elif isinstance(header, ListRequest):
        e.u32(_HeaderTag.LIST)
    elif isinstance(header, SessionMessageRequest):
        e.u32(_HeaderTag.SESSION_MESSAGE)
        e.string(header.session_name)
        if header.payload is None:
            e.u32(_PayloadTag.DETACH)
        else:
            e.u32(_PayloadTag.RESIZE)
            e.size(header.payload.tty_size)
    elif isinstance(header, DetachRequest):
        e.u32(_HeaderTag.DETACH)
        e.strings(header.sessions)
    elif isinstance(header, KillRequest):
        e.u32(_HeaderTag.KILL)
        e.strings(header.sessions)
    else:
        raise TypeError(f"not a connect header: {type(header).__name__}")
    return bytes(e.buf)


def _decode_connect_header(d: _Decoder) -> ConnectHeader:
    tag = d.tag(_HeaderTag, "ConnectHeader")
    if tag is _HeaderTag.ATTACH:
        name = d.string()
        size = d.size()
        env = d.seq(lambda: (d.string(), d.string()))
        ttl = d.opt(d.u64)
        cmd = d.opt(d.string)
        return AttachHeader(name=name, local_tty_size=size, local_env=env, ttl_secs=ttl, cmd=cmd)
    if tag is _HeaderTag.LIST:
        return ListRequest()
    if tag is _HeaderTag.SESSION_MESSAGE:
        session_name = d.string()
        ptag = d.tag(_PayloadTag, "SessionMessageRequestPayload")
        payload = ResizeRequest(d.size()) if ptag is _PayloadTag.RESIZE else None
        return SessionMessageRequest(session_name, payload)
    if tag is _HeaderTag.DETACH:
        return DetachRequest(d.strings())
    return KillRequest(d.strings())


def decode_connect_header(data: bytes) -> ConnectHeader:
    """Decode a connect header from ``data``."""
    import io

    return _decode_connect_header(_Decoder(io.BytesIO(data)))


def _enc_attach_status(e: _Encoder, status: AttachStatus) -> None:
    e.u32(status.kind)
    if status.kind in (AttachStatusKind.ATTACHED, AttachStatusKind.CREATED):
        e.strings(status.warnings)
    elif status.kind in (AttachStatusKind.FORBIDDEN, AttachStatusKind.UNEXPECTED_ERROR):
        e.string(status.message)


def _dec_attach_status(d: _Decoder) -> AttachStatus:
    kind = d.tag(AttachStatusKind, "AttachStatus")
    if kind in (AttachStatusKind.ATTACHED, AttachStatusKind.CREATED):
        return AttachStatus(kind, warnings=d.strings())
    if kind in (AttachStatusKind.FORBIDDEN, AttachStatusKind.UNEXPECTED_ERROR):
        return AttachStatus(kind, message=d.string())
    return AttachStatus(kind)


def _enc_session(e: _Encoder, s: Session) -> None:
    e.string(s.name)
    e.i64(s.started_at_unix_ms)
    e.u32(s.status)


def _dec_session(d: _Decoder) -> Session:
    name = d.string()
    started = d.i64()
    status = d.tag(SessionStatus, "SessionStatus")
    return Session(name, started, status)


_REPLY_ENCODERS: dict[type, Callable[[_Encoder, Any], None]] = {
    KillReply: lambda e, r: e.strings(r.not_found_sessions),
    DetachReply: lambda e, r: (e.strings(r.not_found_sessions), e.strings(r.not_attached_sessions)),
    ListReply: lambda e, r: e.seq(r.sessions, lambda s: _enc_session(e, s)),
    AttachReplyHeader: lambda e, r: _enc_attach_status(e, r.status),
}

_REPLY_DECODERS: dict[type, Callable[[_Decoder], Any]] = {
    KillReply: lambda d: KillReply(d.strings()),
    DetachReply: lambda d: DetachReply(d.strings(), d.strings()),
    ListReply: lambda d: ListReply(d.seq(lambda: _dec_session(d))),
    AttachReplyHeader: lambda d: AttachReplyHeader(_dec_attach_status(d)),
}


def encode_reply(reply: Any) -> bytes:
    """Encode a daemon reply."""
    try:
        enc = _REPLY_ENCODERS[type(reply)]
    except KeyError:
        raise TypeError(f"not a reply type: {type(reply).__name__}") from None
    e = _Encoder()
    enc(e, reply)
    return bytes(e.buf)


def decode_reply(reply_type: type[T], r: BinaryIO) -> T:
    """Read a reply of ``reply_type`` from the binary stream ``r``."""
    try:
        dec = _REPLY_DECODERS[reply_type]
    except KeyError:
        raise TypeError(f"not a reply type: {reply_type!r}") from None
    return dec(_Decoder(r))


# ---------------------------------------------------------------------------
# Client


class Client:
    """A connection to the daemon's unix socket."""

    def __init__(self, sock: str | os.PathLike[str]) -> None:
        self.stream = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            self.stream.connect(os.fspath(sock))
        except BaseException:
            self.stream.close()
            raise
        self._rfile = self.stream.makefile("rb")

    def write_connect_header(self, header: ConnectHeader) -> None:
        """Send ``header`` to the daemon."""
        self.stream.sendall(encode_connect_header(header))

    def read_reply(self, reply_type: type[T]) -> T:
        """Read a reply of ``reply_type`` from the daemon."""
        return decode_reply(reply_type, self._rfile)

    def close(self) -> None:
        self._rfile.close()
        self.stream.close()

    def __enter__(self) -> "Client":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def pipe_bytes(self) -> int:
        """Shuttle bytes between stdin/stdout and the daemon until done.

        Returns the exit status the attach command should exit with.
        """
        guard = set_attach_flags()
        exit_status = 1
        errors: dict[str, BaseException] = {}

        def stdin_to_sock() -> None:
            while True:
                data = os.read(STDIN_FD, _BUF_SIZE)
                if not data:
                    continue
                log.debug("read %d bytes", len(data))
                self.stream.sendall(data)

        def sock_to_stdout() -> None:
            nonlocal exit_status
            out = sys.stdout.buffer
            while True:
                try:
                    chunk = Chunk.read_from(self._rfile, _BUF_SIZE)
                except Exception as exc:
                    log.error("reading chunk: %r", exc)
                    raise
                if chunk.kind is ChunkKind.HEARTBEAT:
                    log.debug("got heartbeat chunk")
                elif chunk.kind is ChunkKind.DATA:
                    out.write(chunk.buf)
                    try:
                        out.flush()
                    except BlockingIOError:
                        # Flooded with output; flushing every byte does not matter.
                        continue
                else:
                    exit_status = int.from_bytes(chunk.buf, "little", signed=True)

        def runner(name: str, fn: Callable[[], None]) -> threading.Thread:
            def target() -> None:
                try:
                    fn()
                except BaseException as exc:
                    errors[name] = exc

            thread = threading.Thread(target=target, name=name, daemon=True)
            thread.start()
            return thread

        try:
            workers = [
                runner("stdin->sock", stdin_to_sock),
                runner("sock->stdout", sock_to_stdout),
            ]
            while True:
                finished = sum(not t.is_alive() for t in workers)
                if finished:
                    if finished < len(workers):
                        time.sleep(JOIN_HANGUP_DUR)
                        if any(t.is_alive() for t in workers):
                            # One side is stuck on blocking IO; the only thing
                            # left to do is shut down, so hard-exit.
                            log.warning(
                                "exiting due to a stuck IO thread stdin_to_sock_finished=%s "
                                "sock_to_stdout_finished=%s",
                                not workers[0].is_alive(),
                                not workers[1].is_alive(),
                            )
                            guard.restore()
                            try:
                                sys.stdout.flush()
                            except OSError:
                                pass
                            os._exit(exit_status)
                    break
                time.sleep(JOIN_POLL_DUR)

            for t in workers:
                t.join()
            for name in ("stdin->sock", "sock->stdout"):
                if name in errors:
                    raise errors[name]
            return exit_status
        finally:
            guard.restore()