import datetime

import pytest

from shpool.duration import DurationError, parse


@pytest.mark.parametrize(
    "src, expected",
    [
        ("10:30", datetime.timedelta(seconds=10 * 60 + 30)),
        ("3:10:30", datetime.timedelta(seconds=3 * 60 * 60 + 10 * 60 + 30)),
        (
            "1:3:10:30",
            datetime.timedelta(seconds=60 * 60 * 24 + 3 * 60 * 60 + 10 * 60 + 30),
        ),
        ("5s", datetime.timedelta(seconds=5)),
        ("5m", datetime.timedelta(seconds=5 * 60)),
        ("5h", datetime.timedelta(seconds=5 * 60 * 60)),
        ("5d", datetime.timedelta(seconds=5 * 60 * 60 * 24)),
    ],
)
def test_successes(src, expected):
    assert parse(src) == expected


@pytest.mark.parametrize(
    "src, err_substring",
    [
        ("12", "could not parse"),
        ("12x", "unknown time unit"),
        (":1", "parsing minutes part"),
        ("1:1:1:1:1", "cannot have more than 4"),
    ],
)
def test_errors(src, err_substring):
    with pytest.raises(DurationError) as excinfo:
        parse(src)
    assert err_substring in str(excinfo.value)


def test_error_is_value_error():
    with pytest.raises(ValueError):
        parse("")


def test_single_colon_part_is_seconds():
    assert parse("0:45") == datetime.timedelta(seconds=45)


def test_suffix_without_number_fails():
    with pytest.raises(DurationError) as excinfo:
        parse("s")
    assert "parsing num part of duration" in str(excinfo.value)


def test_bad_seconds_part():
    with pytest.raises(DurationError) as excinfo:
        parse("1:x")
    assert "parsing seconds part" in str(excinfo.value)