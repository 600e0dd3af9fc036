import pytest

from shpool.hooks import Hooks

HOOK_NAMES = [
    "on_new_session",
    "on_reattach",
    "on_busy",
    "on_client_disconnect",
    "on_shell_disconnect",
]


@pytest.mark.parametrize("hook_name", HOOK_NAMES)
def test_default_hooks_return_none(hook_name):
    assert getattr(Hooks(), hook_name)("main") is None


class Recorder(Hooks):
    def __init__(self):
        self.events = []

    def on_new_session(self, session_name):
        self.events.append(("new", session_name))

    def on_busy(self, session_name):
        self.events.append(("busy", session_name))


def test_subclass_overrides_selected_hooks():
    rec = Recorder()
    rec.on_new_session("dev")
    assert Hooks.on_reattach(rec, "dev") is None
    rec.on_busy("dev")
    assert Hooks.on_client_disconnect(rec, "dev") is None
    assert Hooks.on_shell_disconnect(rec, "dev") is None
    assert rec.events == [("new", "dev"), ("busy", "dev")]


def test_subclass_keeps_noop_defaults():
    rec = Recorder()
    assert Hooks.on_reattach(rec, "other") is None
    assert Hooks.on_new_session(rec, "other") is None
    assert rec.events == []