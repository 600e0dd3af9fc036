import pytest

from shpool.trie import CursorKind, Trie, TrieCursor


@pytest.fixture
def trie():
    t = Trie()
    t.insert(b"ab", "first")
    t.insert(b"abcd", "second")
    t.insert(b"x", "third")
    return t


@pytest.mark.parametrize(
    "seq, expected",
    [
        (b"ab", True),
        (b"abcd", True),
        (b"x", True),
        (b"a", False),
        (b"abc", False),
        (b"abcde", False),
        (b"y", False),
        (b"", False),
    ],
)
def test_contains(trie, seq, expected):
    assert trie.contains(seq) is expected


def test_empty_sequence_value_on_root():
    t = Trie()
    t.insert([], "root")
    assert t.contains([]) is True


def test_advance_through_partial_and_full_match(trie):
    cursor = trie.advance(TrieCursor(), ord("a"))
    assert cursor.kind is CursorKind.MATCH
    assert cursor.is_partial is True
    assert trie.get(cursor) is None

    cursor = trie.advance(cursor, ord("b"))
    assert cursor.kind is CursorKind.MATCH
    assert cursor.is_partial is False
    assert trie.get(cursor) == "first"


def test_no_match_is_terminal(trie):
    cursor = trie.advance(TrieCursor(), ord("z"))
    assert cursor.kind is CursorKind.NO_MATCH
    assert trie.advance(cursor, ord("a")).kind is CursorKind.NO_MATCH
    assert trie.get(cursor) is None


def test_get_on_start_cursor_is_none(trie):
    assert trie.get(TrieCursor()) is None


def test_insert_overwrites_value():
    t = Trie()
    t.insert("ab", 1)
    t.insert("ab", 2)
    cursor = TrieCursor()
    for sym in "ab":
        cursor = t.advance(cursor, sym)
    assert t.get(cursor) == 2


def test_works_with_arbitrary_hashable_symbols():
    t = Trie()
    t.insert([("ctrl", "space"), ("ctrl", "q")], "detach")
    assert t.contains([("ctrl", "space"), ("ctrl", "q")]) is True
    assert t.contains([("ctrl", "space")]) is False