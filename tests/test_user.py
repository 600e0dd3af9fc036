import pwd
from unittest import mock

import pytest

from shpool.user import Info, info


def _entry(name, home, shell):
    return pwd.struct_passwd((name, "x", 1000, 1000, "Someone", home, shell))


def test_info_maps_passwd_fields():
    fake = _entry("alice", "/home/alice", "/bin/zsh")
    with mock.patch("pwd.getpwuid", return_value=fake):
        result = info()
    assert result == Info(default_shell="/bin/zsh", home_dir="/home/alice", user="alice")


def test_info_missing_user_raises():
    with mock.patch("pwd.getpwuid", side_effect=KeyError("uid not found")):
        with pytest.raises(LookupError) as excinfo:
            info()
    assert "could not find current user" in str(excinfo.value)


def test_info_uses_current_uid():
    fake = _entry("bob", "/home/bob", "/bin/bash")
    with mock.patch("os.getuid", return_value=4242), mock.patch(
        "pwd.getpwuid", return_value=fake
    ) as getpwuid:
        result = info()
    getpwuid.assert_called_once_with(4242)
    assert result.user == "bob"