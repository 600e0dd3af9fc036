"""Command line interface: argument parsing and command dispatch."""

from __future__ import annotations

import argparse
import hashlib
import importlib.metadata
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

from shpool.client import CommandError, detach, kill, list_sessions
from shpool.hooks import Hooks

__all__ = ["Args", "build_parser", "parse_args", "runtime_paths", "run", "main"]

log = logging.getLogger(__name__)

_TRACE = logging.DEBUG - 5


@dataclass
class Args:
    """Parsed command line arguments."""

    command: str
    log_file: str | None = None
    verbose: int = 0
    socket: str | None = None
    config_file: str | None = None
    sessions: list[str] = field(default_factory=list)

    def version(self) -> bool:
        """Whether the caller must print the version and exit."""
        return self.command == "version"


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the command line."""
    parser = argparse.ArgumentParser(prog="shpool")
    parser.add_argument(
        "-l",
        "--log-file",
        help="the file to write logs to; logs are discarded by default",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="show more in logs, may be provided multiple times",
    )
    parser.add_argument(
        "-s",
        "--socket",
        help=(
            "the path for the unix socket; defaults to "
            "$XDG_RUNTIME_DIR/shpool/shpool.socket or ~/.shpool/shpool/shpool.socket"
        ),
    )
    parser.add_argument("-c", "--config-file", help="a toml file containing configuration")

    sub = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")
    sub.add_parser("version", help="print version")
    detach_p = sub.add_parser(
        "detach",
        help=(
            "make the given sessions detach; the shells keep running. "
            "Without a name, $SHPOOL_SESSION_NAME is used"
        ),
    )
    detach_p.add_argument("sessions", nargs="*", help="sessions to detach")
    kill_p = sub.add_parser(
        "kill",
        help="kill the given sessions. Without a name, $SHPOOL_SESSION_NAME is used",
    )
    kill_p.add_argument("sessions", nargs="*", help="sessions to kill")
    sub.add_parser("list", help="list all the running shell sessions")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> Args:
    """Parse ``argv`` (default: ``sys.argv[1:]``) into :class:`Args`."""
    ns = build_parser().parse_args(argv)
    return Args(
        command=ns.command,
        log_file=ns.log_file,
        verbose=ns.verbose,
        socket=ns.socket,
        config_file=ns.config_file,
        sessions=list(getattr(ns, "sessions", []) or []),
    )


def runtime_paths(
    socket: str | None = None, environ: Mapping[str, str] | None = None
) -> tuple[Path, Path]:
    """Return ``(runtime_dir, socket_path)``.

    When an explicit socket is given the runtime directory is namespaced by
    a short hash of it, so separate instances do not clash.
    """
    env = os.environ if environ is None else environ
    if "XDG_RUNTIME_DIR" in env:
        base = Path(env["XDG_RUNTIME_DIR"])
    elif "HOME" in env:
        base = Path(env["HOME"]) / ".shpool"
    else:
        raise CommandError("no XDG_RUNTIME_DIR or HOME")
    runtime_dir = base / "shpool"

    if socket is None:
        return runtime_dir, runtime_dir / "shpool.socket"
    digest = hashlib.sha256(socket.encode("utf-8")).digest()[:8]
    return runtime_dir / f"{int.from_bytes(digest, 'big'):x}", Path(socket)


def _configure_logging(args: Args) -> None:
    if args.log_file is None:
        return
    level = {0: logging.INFO, 1: logging.DEBUG}.get(args.verbose, _TRACE)
    handler = logging.FileHandler(args.log_file, mode="w")
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(thread)d] %(message)s")
    )
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)


def run(args: Args, hooks: Hooks | None = None) -> int:
    """Run the command described by ``args`` and return an exit status.

    ``hooks`` receives daemon events; the client commands do not use it.
    Raises :class:`CommandError` for the version command, which the caller
    must handle itself.
    """
    _configure_logging(args)
    runtime_dir, sock = runtime_paths(args.socket)
    log.debug("runtime dir %s, socket %s", runtime_dir, sock)

    if args.command == "version":
        raise CommandError("wrapper binary must handle version")

    try:
        if args.command == "detach":
            detach(args.sessions, sock)
        elif args.command == "kill":
            kill(args.sessions, sock)
        elif args.command == "list":
            list_sessions(sock)
        else:
            raise CommandError(f"unknown command '{args.command}'")
    except CommandError as exc:
        log.error("%s", exc)
        return 1
    return 0


def _version() -> str:
    try:
        return importlib.metadata.version("shpool")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``shpool`` command."""
    args = parse_args(argv)
    if args.version():
        print(f"shpool {_version()}")
        return 0
    try:
        return run(args)
    except CommandError as exc:
        print(f"shpool: {exc}", file=sys.stderr)
        return 1