"""In-memory item store backed by a book's two append-only logs.

ItemStore is the public API:
    store = ItemStore(BookFiles.for_name(data_dir, "novel"))
    store.load_from_disk()
    item_id = store.add_item(ItemType.QUOTE, "Opening Line", "It was the best of times")
    store.add_link(item_id, other_id)
    store.delete_item(item_id)

Adds and links append a single line. Deletion cannot be expressed as an
append, so it compacts: both logs are rewritten from the surviving state.
"""

from __future__ import annotations

import contextlib
import logging
from enum import Enum
from typing import TYPE_CHECKING

from bbp.models import Item, ItemType, link_from_line, link_to_line, normalize_title

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

    from bbp.books import BookFiles

logger = logging.getLogger("bbp.store")


class LinkResult(Enum):
    CREATED = "created"
    EXISTS = "exists"
    SELF_LINK = "self-link"
    UNKNOWN_ID = "unknown-id"


class ItemStore:
    """Items, per-type buckets, title index and link graph for one book.

    With ``files=None`` the store keeps everything in memory and persists
    nothing (no active book).
    """

    def __init__(self, files: BookFiles | None = None) -> None:
        self.files = files
        self._items: dict[int, Item] = {}                  # insertion order = store order
        self._buckets: dict[ItemType, list[int]] = {t: [] for t in ItemType}
        self._titles: set[str] = set()
        self._adj: dict[int, set[int]] = {}
        self.next_id = 1

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @property
    def book_name(self) -> str | None:
        return self.files.name if self.files is not None else None

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def get(self, item_id: int) -> Item | None:
        return self._items.get(item_id)

    def items(self) -> list[Item]:
        """All items in store order."""
        return list(self._items.values())

    def bucket(self, item_type: ItemType) -> list[Item]:
        """Items of one type in insertion order."""
        return [self._items[i] for i in self._buckets[item_type]]

    def has_title(self, title: str) -> bool:
        return normalize_title(title) in self._titles

    def has_link(self, a: int, b: int) -> bool:
        if a == b:
            return False
        return b in self._adj.get(a, ())

    def neighbors_of(self, item_id: int) -> list[int]:
        """Linked ids, ascending."""
        return sorted(self._adj.get(item_id, ()))

    def links(self) -> Iterator[tuple[int, int]]:
        """Every edge once as (a, b) with a < b, in adjacency order."""
        for a in sorted(self._adj):
            for b in sorted(self._adj[a]):
                if a < b:
                    yield a, b

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def add_item(self, item_type: ItemType, title: str, body: str) -> int | None:
        """Insert a new item and append it to the items log.

        Returns the new id, or None when the normalized title is taken (no id
        is consumed in that case).
        """
        key = normalize_title(title)
        if key in self._titles:
            return None

        item = Item(id=self.next_id, type=item_type, title=title, body=body)
        self.next_id += 1
        self._index(item)
        self._append(self._items_path, item.to_line())
        return item.id

    def add_link(self, a: int, b: int) -> LinkResult:
        """Insert the undirected edge {a, b} and append it to the links log."""
        if a == b:
            return LinkResult.SELF_LINK
        if a not in self._items or b not in self._items:
            return LinkResult.UNKNOWN_ID
        if self.has_link(a, b):
            return LinkResult.EXISTS
        self._connect(a, b)
        self._append(self._links_path, link_to_line(a, b))
        return LinkResult.CREATED

    def delete_item(self, item_id: int) -> bool:
        """Remove an item, its edges and its index entries, then compact both logs."""
        item = self._items.pop(item_id, None)
        if item is None:
            return False

        self._titles.discard(item.normalized_title)
        self._buckets[item.type].remove(item_id)
        for nbr in self._adj.pop(item_id, set()):
            nbrs = self._adj.get(nbr)
            if nbrs is not None:
                nbrs.discard(item_id)
                if not nbrs:
                    del self._adj[nbr]

        self.compact()
        return True

    def compact(self) -> None:
        """Rewrite both logs from the in-memory state."""
        if self.files is None:
            return
        self._rewrite(self.files.items_path, (item.to_line() for item in self._items.values()))
        self._rewrite(self.files.links_path, (link_to_line(a, b) for a, b in self.links()))
        logger.debug("compacted book %s (%d items)", self.files.name, len(self._items))

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def reset(self) -> None:
        self._items.clear()
        for ids in self._buckets.values():
            ids.clear()
        self._titles.clear()
        self._adj.clear()
        self.next_id = 1

    def load_from_disk(self) -> None:
        """Replace in-memory state with the contents of the book's logs.

        Malformed item lines, duplicate ids or titles, and links to unknown
        ids are skipped. Missing files load as an empty book. The id counter
        restarts at max(surviving id) + 1, so ids freed by deleting the
        highest item can be handed out again after a reload.
        """
        self.reset()
        if self.files is None:
            return

        skipped = 0
        for line in _read_lines(self.files.items_path):
            item = Item.from_line(line)
            if item is None or item.id in self._items or item.normalized_title in self._titles:
                skipped += 1
                continue
            self._index(item)

        for line in _read_lines(self.files.links_path):
            pair = link_from_line(line)
            if pair is None or pair[0] not in self._items or pair[1] not in self._items:
                skipped += 1
                continue
            self._connect(*pair)

        self.next_id = max(self._items, default=0) + 1
        if skipped:
            logger.info("book %s: skipped %d unusable log lines", self.files.name, skipped)
        logger.info(
            "loaded book %s: %d items, %d links",
            self.files.name, len(self._items), sum(1 for _ in self.links()),
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @property
    def _items_path(self) -> Path | None:
        return self.files.items_path if self.files is not None else None

    @property
    def _links_path(self) -> Path | None:
        return self.files.links_path if self.files is not None else None

    def _index(self, item: Item) -> None:
        self._items[item.id] = item
        self._buckets[item.type].append(item.id)
        self._titles.add(item.normalized_title)

    def _connect(self, a: int, b: int) -> None:
        self._adj.setdefault(a, set()).add(b)
        self._adj.setdefault(b, set()).add(a)

    def _append(self, path: Path | None, line: str) -> None:
        """Append one line. Failures are logged; the in-memory change stands."""
        if path is None:
            return
        try:
            with path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as exc:
            logger.warning("append to %s failed: %s", path, exc)

    def _rewrite(self, path: Path, lines: Iterable[str]) -> None:
        """Write lines to a temp sibling, then rename over path."""
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as f:
                f.writelines(line + "\n" for line in lines)
            tmp.replace(path)
        except OSError as exc:
            logger.warning("rewrite of %s failed: %s", path, exc)
            with contextlib.suppress(OSError):
                tmp.unlink()


def _read_lines(path: Path) -> Iterator[str]:
    """Yield non-empty lines without their terminator; nothing if path is missing."""
    if not path.exists():
        return
    with path.open(encoding="utf-8", errors="replace", newline="\n") as f:
        for raw in f:
            line = raw.rstrip("\n").rstrip("\r")
            if line:
                yield line
