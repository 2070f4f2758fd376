"""Data models for the book store: item types, items, log-line codecs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable


class ItemType(Enum):
    """Kinds of item a book holds. Values are the wire/log tokens."""

    QUOTE = "QUOTE"
    PLOT = "PLOT"
    PHIL = "PHIL"
    CHAR = "CHAR"
    THEME = "THEME"

    @classmethod
    def parse(cls, token: str) -> ItemType | None:
        """Case-sensitive lookup by token; None if unknown."""
        try:
            return cls(token)
        except ValueError:
            return None


# Section order and headers for OUTLINE.
OUTLINE_SECTIONS: tuple[tuple[ItemType, str], ...] = (
    (ItemType.THEME, "THEMES"),
    (ItemType.CHAR, "CHARACTERS"),
    (ItemType.PLOT, "PLOT"),
    (ItemType.PHIL, "PHILOSOPHIES"),
    (ItemType.QUOTE, "QUOTES"),
)

_FIELD_SEP = "|"
_UNESCAPES = {"\\": "\\", "n": "\n", "p": _FIELD_SEP}


@dataclass(frozen=True)
class Item:
    """A typed title+body record. Immutable once created."""

    id: int
    type: ItemType
    title: str
    body: str

    @property
    def normalized_title(self) -> str:
        return normalize_title(self.title)

    def format_full(self) -> str:
        return f"{self.id} ;; {self.type.value} ;; {self.title} ;; {self.body}"

    def format_summary(self) -> str:
        return f"{self.id} ;; {self.title} ;; {self.body}"

    def format_outline(self) -> str:
        return f"  {self.id} ;; {self.title}"

    def matches(self, term: str, *, title_only: bool = False) -> bool:
        """Case-insensitive substring match; term must already be case-folded."""
        if term in self.title.casefold():
            return True
        return not title_only and term in self.body.casefold()

    # ------------------------------------------------------------------
    # Log codec
    # ------------------------------------------------------------------

    def to_line(self) -> str:
        """Encode as one items-log line (no trailing newline)."""
        return _FIELD_SEP.join(
            (str(self.id), self.type.value, escape(self.title), escape(self.body))
        )

    @classmethod
    def from_line(cls, line: str) -> Item | None:
        """Decode an items-log line. Returns None for malformed lines."""
        parts = line.split(_FIELD_SEP)
        if len(parts) != 4:
            return None
        item_id = parse_id(parts[0])
        if item_id is None or item_id <= 0:
            return None
        item_type = ItemType.parse(parts[1])
        if item_type is None:
            return None
        return cls(
            id=item_id,
            type=item_type,
            title=unescape(parts[2]),
            body=unescape(parts[3]),
        )


def normalize_title(title: str) -> str:
    """Uniqueness key for titles: trimmed and case-folded."""
    return title.strip().casefold()


def parse_id(text: str) -> int | None:
    """Parse an optionally signed run of decimal digits; None otherwise.

    Stricter than int(): no surrounding whitespace, no underscores.
    """
    digits = text[1:] if text[:1] in ("+", "-") else text
    if not digits or not digits.isascii() or not digits.isdigit():
        return None
    return int(text)


# ---------------------------------------------------------------------------
# Escaping (log files only; protocol output is verbatim)
# ---------------------------------------------------------------------------


def escape(text: str) -> str:
    """Escape backslash, newline and the field separator as two-character sequences."""
    return text.replace("\\", "\\\\").replace("\n", "\\n").replace(_FIELD_SEP, "\\p")


def unescape(text: str) -> str:
    """Reverse escape(). A backslash not starting a known sequence is kept as-is."""
    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\" and i + 1 < n and text[i + 1] in _UNESCAPES:
            out.append(_UNESCAPES[text[i + 1]])
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


def canonical_link(a: int, b: int) -> tuple[int, int]:
    return (a, b) if a < b else (b, a)


def link_to_line(a: int, b: int) -> str:
    lo, hi = canonical_link(a, b)
    return f"{lo}{_FIELD_SEP}{hi}"


def link_from_line(line: str) -> tuple[int, int] | None:
    """Decode a links-log line into a canonical pair; None if malformed."""
    parts = line.split(_FIELD_SEP)
    if len(parts) != 2:
        return None
    a, b = parse_id(parts[0]), parse_id(parts[1])
    if a is None or b is None or a == b:
        return None
    return canonical_link(a, b)


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def collect_matches(
    candidates: Iterable[Item],
    predicate: Callable[[Item], bool],
) -> list[Item]:
    """Filter candidates by predicate, preserving order."""
    return [item for item in candidates if predicate(item)]
