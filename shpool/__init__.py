"""Named shell sessions: wire protocol, client commands and daemon helpers."""

__version__ = "0.1.0"

__all__ = [
    "cli",
    "client",
    "duration",
    "hooks",
    "protocol",
    "signals",
    "systemd",
    "trie",
    "ttl_reaper",
    "tty",
    "user",
]