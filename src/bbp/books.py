"""Book naming and on-disk lifecycle.

A book named ``novel`` lives in two files under the data directory:

    novel_items.db    # one item per line:  id|TYPE|title|body
    novel_links.db    # one edge per line:  a|b   (a < b)

Creation and deletion raise the builtin filesystem errors; callers map them
to protocol responses.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from pathlib import Path

_ITEMS_SUFFIX = "_items.db"
_LINKS_SUFFIX = "_links.db"


def is_valid_book_name(name: str) -> bool:
    """Non-empty, ASCII letters and digits only."""
    return bool(name) and name.isascii() and name.isalnum()


@dataclass(frozen=True)
class BookFiles:
    """Paths backing one book."""

    name: str
    items_path: Path
    links_path: Path

    @classmethod
    def for_name(cls, data_dir: Path | str, name: str) -> BookFiles:
        base = Path(data_dir)
        return cls(
            name=name,
            items_path=base / f"{name}{_ITEMS_SUFFIX}",
            links_path=base / f"{name}{_LINKS_SUFFIX}",
        )

    def any_exists(self) -> bool:
        return self.items_path.exists() or self.links_path.exists()

    def items_exist(self) -> bool:
        return self.items_path.exists()


def create_book(files: BookFiles) -> None:
    """Create both files empty. Raises FileExistsError / OSError.

    If the links file cannot be created the items file is removed again, so a
    failed create leaves nothing behind.
    """
    files.items_path.parent.mkdir(parents=True, exist_ok=True)
    with files.items_path.open("x", encoding="utf-8"):
        pass
    try:
        with files.links_path.open("x", encoding="utf-8"):
            pass
    except OSError:
        with contextlib.suppress(OSError):
            files.items_path.unlink()
        raise


def delete_book(files: BookFiles) -> None:
    """Remove whichever of the two files exist. Raises OSError on failure.

    Both removals are attempted before the first error is re-raised.
    """
    errors: list[OSError] = []
    for path in (files.items_path, files.links_path):
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            errors.append(exc)
    if errors:
        raise errors[0]


def list_books(data_dir: Path | str) -> list[BookFiles]:
    """Books with an items file under data_dir, sorted by name."""
    base = Path(data_dir)
    if not base.is_dir():
        return []
    names = (p.name[: -len(_ITEMS_SUFFIX)] for p in base.glob(f"*{_ITEMS_SUFFIX}"))
    return [BookFiles.for_name(base, n) for n in sorted(names) if is_valid_book_name(n)]
