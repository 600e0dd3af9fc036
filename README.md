# shpool

Client commands, wire protocol and helper pieces for named shell sessions
kept by a daemon that listens on a unix socket. POSIX only: the package uses
`termios`, `fcntl` and `pwd`. It has no third-party dependencies.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Command line

```
shpool list                   # show sessions: NAME, STARTED_AT, STATUS
shpool detach [SESSION ...]   # detach the named sessions, leaving the shells running
shpool kill [SESSION ...]     # kill the named sessions
shpool version                # print "shpool <version>"
```

`list` prints a tab separated table; `STARTED_AT` is an RFC 3339 UTC
timestamp and `STATUS` is `attached` or `disconnected`.

When no session name is given to `detach` or `kill`, the session named in
`$SHPOOL_SESSION_NAME` is used; if that is unset too, the command fails.
`detach` fails when a session is not found or has no client attached;
`kill` fails when a session is not found. The exit status is 0 on success
and 1 on failure. If the socket does not exist, "could not connect to
daemon" is printed to stderr.

Global options (given before the command):

- `-s, --socket PATH` — the socket to talk to. Defaults to
  `$XDG_RUNTIME_DIR/shpool/shpool.socket`, or
  `~/.shpool/shpool/shpool.socket` when `XDG_RUNTIME_DIR` is unset.
- `-l, --log-file PATH` — write logs to this file (overwritten on each run).
  Without it no logs are written.
- `-v, --verbose` — more detail in the log file; may be repeated.
- `-c, --config-file PATH` — accepted, but none of the present commands
  read it.

## Library

- `shpool.duration.parse` reads durations such as `"10:30"`, `"1:3:10:30"`,
  `"5s"`, `"5m"`, `"5h"` or `"3d"` and returns a `datetime.timedelta`;
  bad input raises `DurationError`.
- `shpool.protocol` holds the wire format: `Chunk` framing with
  `ChunkKind`, the request and reply records (`ListRequest`, `ListReply`,
  `DetachRequest`, `DetachReply`, `KillRequest`, `KillReply`,
  `AttachHeader`, `AttachReplyHeader`, `SessionMessageRequest`, ...),
  `encode_connect_header` / `decode_connect_header`, `encode_reply` /
  `decode_reply`, and `Client` for talking to the daemon, including
  `Client.pipe_bytes` for relaying stdin and stdout over an attached
  connection.
- `shpool.client` provides `detach`, `kill` and `list_sessions`, raising
  `CommandError` on failure.
- `shpool.cli` provides `parse_args`, `runtime_paths`, `run` and `main`.
  When a socket is given, `runtime_paths` places the runtime directory in a
  subdirectory named by a short hash of the socket path, so separate
  instances do not clash.
- `shpool.hooks.Hooks` is a base class whose callbacks
  (`on_new_session`, `on_reattach`, `on_busy`, `on_client_disconnect`,
  `on_shell_disconnect`) do nothing until overridden. `shpool.cli.run`
  accepts an instance, but the client commands never call it.
- `shpool.tty` reads and sets terminal sizes (`Size.from_fd`,
  `Size.set_fd`), turns off echo (`disable_echo`) and puts stdin into raw
  mode (`set_attach_flags`, which returns a guard that restores the old
  settings).
- `shpool.user.info` returns the current user's name, home directory and
  login shell.
- `shpool.trie.Trie` is a prefix trie matched one symbol at a time.
- `shpool.ttl_reaper.run` kills sessions whose time to live has passed.
- `shpool.signals.Handler` removes the socket file and exits on a
  termination signal.
- `shpool.systemd.activation_socket` returns the listening socket passed by
  systemd socket activation.

```python
from shpool import duration

duration.parse("1:30:00")  # timedelta(seconds=5400)
```

## What it does not do

There is no daemon here: nothing creates shells, keeps a session table or
serves the socket, so the commands above need a compatible daemon already
running. There is no `attach` or `daemon` command, and no configuration file
handling.