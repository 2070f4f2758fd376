import pytest

from bbp.models import (
    Item,
    ItemType,
    collect_matches,
    escape,
    link_from_line,
    link_to_line,
    normalize_title,
    parse_id,
    unescape,
)


def test_item_type_parse_is_case_sensitive():
    assert ItemType.parse("CHAR") is ItemType.CHAR
    assert ItemType.parse("char") is None
    assert ItemType.parse("") is None


def test_normalize_title():
    assert normalize_title("  Opening Line ") == "opening line"
    assert normalize_title("OPENING LINE") == normalize_title("opening line")


@pytest.mark.parametrize(
    ("text", "expected"),
    [("1", 1), ("+7", 7), ("-3", -3), ("042", 42),
     ("", None), ("x", None), ("1.0", None), (" 1", None), ("1_000", None), ("-", None)],
)
def test_parse_id(text, expected):
    assert parse_id(text) == expected


def test_escape_newline_and_separator():
    assert escape("a|b\nc") == "a\\pb\\nc"
    assert unescape("a\\pb\\nc") == "a|b\nc"


def test_unescape_keeps_unknown_sequences():
    assert unescape("C:\\temp\\") == "C:\\temp\\"


@pytest.mark.parametrize(
    "text",
    [r"C:\path\notes", r"regex a\pb", "\\", "a\\\nb", "trailing\\", r"\\p already escaped"],
)
def test_backslashes_survive_escaping(text):
    assert unescape(escape(text)) == text
    assert "\n" not in escape(text)


def test_item_line_roundtrip_with_special_characters():
    item = Item(id=3, type=ItemType.PHIL, title="Either|Or", body="line one\nline two")
    line = item.to_line()
    assert "\n" not in line
    assert line.count("|") == 3
    assert Item.from_line(line) == item


@pytest.mark.parametrize(
    "line",
    ["", "1|QUOTE|title", "1|QUOTE|t|b|extra", "x|QUOTE|t|b", "0|QUOTE|t|b", "1|NOPE|t|b"],
)
def test_item_from_malformed_line(line):
    assert Item.from_line(line) is None


def test_link_lines_are_canonical():
    assert link_to_line(9, 2) == "2|9"
    assert link_from_line("9|2") == (2, 9)
    assert link_from_line("4|4") is None
    assert link_from_line("1|2|3") is None


def test_item_formats():
    item = Item(id=1, type=ItemType.QUOTE, title="Opening Line", body="It was the best of times")
    assert item.format_full() == "1 ;; QUOTE ;; Opening Line ;; It was the best of times"
    assert item.format_summary() == "1 ;; Opening Line ;; It was the best of times"
    assert item.format_outline() == "  1 ;; Opening Line"


def test_collect_matches_preserves_order():
    items = [
        Item(id=i, type=ItemType.PLOT, title=f"t{i}", body="even" if i % 2 == 0 else "odd")
        for i in range(1, 7)
    ]
    evens = collect_matches(items, lambda item: item.matches("even"))
    assert [item.id for item in evens] == [2, 4, 6]
    assert collect_matches([], lambda item: True) == []


def test_matches_title_only():
    item = Item(id=1, type=ItemType.THEME, title="Redemption", body="A hero returns")
    assert item.matches("redemp")
    assert item.matches("hero")
    assert not item.matches("hero", title_only=True)
