"""Command processor: parse one request line, act on the store, format the reply.

Request:   <VERB> <verb-specific text>
Reply:     ERR <CODE>
           OK [payload]
           OK | OK CONTEXT | OK OUTLINE   followed by lines, then .END

A handler returns the full list of reply lines or raises ProtocolError; the
reply is written to the sink only once it is complete.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from bbp.books import BookFiles, create_book, delete_book, is_valid_book_name
from bbp.models import OUTLINE_SECTIONS, ItemType, collect_matches, parse_id
from bbp.status import END_SENTINEL, ErrorCode, OkCode, ProtocolError
from bbp.store import ItemStore, LinkResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from bbp.models import Item

logger = logging.getLogger("bbp.commands")

# Shared secret for DELETEB. Not configurable.
DELETE_BOOK_KEY = "m0u53!"

_FIELD_SEP = ";;"


@dataclass(frozen=True)
class Command:
    verb: str
    handler: str
    help: str


COMMANDS: tuple[Command, ...] = (
    Command("ADD", "_handle_add",
            "ADD TYPE;;title;;body - Add a new item of the given TYPE with the given title and body."),
    Command("GET", "_handle_get",
            "GET id - Retrieve the full details of the item with the given id."),
    Command("LIST", "_handle_list",
            "LIST TYPE - List all items of the given TYPE."),
    Command("SEARCH", "_handle_search",
            "SEARCH TYPE|TITLE|KEYWORDS ... - Search items by type, title, or keywords."),
    Command("LINK", "_handle_link",
            "LINK id1 id2 - Create a link between two existing items."),
    Command("CONTEXT", "_handle_context",
            "CONTEXT id - Show the item and all items it is directly linked to."),
    Command("OUTLINE", "_handle_outline",
            "OUTLINE - Show a high-level outline of items for current book grouped by type."),
    Command("DELETE", "_handle_delete",
            "DELETE id - Delete the item with the given id."),
    Command("NEWB", "_handle_new_book",
            "NEWB name - Create a new empty book backed by name_items.db/name_links.db and switch to it."),
    Command("LOADB", "_handle_load_book",
            "LOADB name - Load an existing book (name_items.db/name_links.db) into the server."),
    Command("DELETEB", "_handle_delete_book",
            "DELETEB name <secret key> - Delete the files for the named book (not allowed for the active book)."),
    Command("WHICHB", "_handle_which_book",
            "WHICHB - Show the name of the currently active book."),
    Command("USAGE", "_handle_usage",
            "USAGE [command] - Show help for all commands or for a specific command."),
)

USAGE_BY_VERB: dict[str, str] = {c.verb: c.help for c in COMMANDS}


class LineSink(Protocol):
    def write(self, s: str, /) -> object: ...


def _ok(payload: str | None = None) -> list[str]:
    return [OkCode.SIMPLE.value if payload is None else f"{OkCode.SIMPLE.value} {payload}"]


def _block(lines: list[str], header: OkCode = OkCode.SIMPLE) -> list[str]:
    return [header.value, *lines, END_SENTINEL]


def _matches_or_not_found(matches: list[Item]) -> list[str]:
    if not matches:
        raise ProtocolError(ErrorCode.NOT_FOUND)
    return _block([item.format_summary() for item in matches])


def _split_first(text: str) -> tuple[str, str]:
    """Split off the first whitespace-delimited token; the remainder is trimmed."""
    parts = text.split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1].strip() if len(parts) > 1 else ""


def _require_id(text: str) -> int:
    item_id = parse_id(text)
    if item_id is None:
        raise ProtocolError(ErrorCode.MALFORMED_ID)
    return item_id


def _single_book_name(args: str) -> str:
    tokens = args.split()
    if len(tokens) != 1:
        raise ProtocolError(ErrorCode.MALFORMED_REQUEST)
    name = tokens[0]
    if not is_valid_book_name(name):
        raise ProtocolError(ErrorCode.INVALID_BOOK_NAME)
    return name


class CommandProcessor:
    """Dispatches request lines to per-verb handlers.

    Owns the active ItemStore and swaps it for a freshly loaded one on
    NEWB/LOADB. ``data_dir`` is where book files are created and looked up.
    """

    def __init__(self, store: ItemStore, data_dir: Path | str) -> None:
        self.store = store
        self.data_dir = Path(data_dir)
        self._dispatch: dict[str, Callable[[str], list[str]]] = {
            c.verb: getattr(self, c.handler) for c in COMMANDS
        }

    @property
    def current_book(self) -> str | None:
        return self.store.book_name

    def handle(self, line: str, out: LineSink | None = None) -> list[str]:
        """Process one request line; write and return the reply lines."""
        reply = self._reply(line)
        if out is not None:
            out.write("".join(f"{r}\n" for r in reply))
            flush = getattr(out, "flush", None)
            if flush is not None:
                flush()
        return reply

    def _reply(self, line: str) -> list[str]:
        text = line.strip()
        if not text:
            return [ErrorCode.EMPTY_REQUEST.line]
        verb, args = _split_first(text)
        handler = self._dispatch.get(verb)
        if handler is None:
            return [ErrorCode.COMMAND_NOT_FOUND.line]
        try:
            return handler(args.strip())
        except ProtocolError as exc:
            return [exc.code.line]
        except Exception:
            logger.exception("unhandled error processing %r", text)
            return [ErrorCode.UNKNOWN_REQUEST.line]

    def _find(self, item_id: int) -> Item:
        item = self.store.get(item_id)
        if item is None:
            raise ProtocolError(ErrorCode.NOT_FOUND)
        return item

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def _handle_add(self, args: str) -> list[str]:
        parts = args.split(_FIELD_SEP)
        type_token = parts[0].strip()
        title = parts[1].strip() if len(parts) >= 2 else ""
        body = parts[2].strip() if len(parts) >= 3 else ""

        if not title:
            raise ProtocolError(ErrorCode.MISSING_TITLE)
        if not body:
            raise ProtocolError(ErrorCode.MISSING_BODY)
        if len(parts) > 3:
            raise ProtocolError(ErrorCode.MALFORMED_REQUEST)
        item_type = ItemType.parse(type_token)
        if item_type is None:
            raise ProtocolError(ErrorCode.UNKNOWN_TYPE)

        item_id = self.store.add_item(item_type, title, body)
        if item_id is None:
            raise ProtocolError(ErrorCode.ITEM_EXISTS)
        return _ok(f"{item_id} ;; {title}")

    def _handle_get(self, args: str) -> list[str]:
        item = self._find(_require_id(args))
        return _ok(item.format_full())

    def _handle_list(self, args: str) -> list[str]:
        item_type = ItemType.parse(args)
        if item_type is None:
            raise ProtocolError(ErrorCode.UNKNOWN_TYPE)
        bucket = self.store.bucket(item_type)
        if not bucket:
            raise ProtocolError(ErrorCode.NOT_FOUND)
        return _block([item.format_summary() for item in bucket])

    def _handle_delete(self, args: str) -> list[str]:
        item = self._find(_require_id(args))
        if not self.store.delete_item(item.id):
            raise ProtocolError(ErrorCode.NOT_FOUND)
        return _ok(item.format_full())

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def _handle_search(self, args: str) -> list[str]:
        mode, rest = _split_first(args)
        if mode == "TYPE":
            return self._search_type(rest)
        if mode == "TITLE":
            return self._search_title(rest)
        if mode == "KEYWORDS":
            return self._search_keywords(rest)
        raise ProtocolError(ErrorCode.MALFORMED_REQUEST)

    def _search_type(self, rest: str) -> list[str]:
        type_token, term = _split_first(rest)
        if not type_token or not term:
            raise ProtocolError(ErrorCode.MALFORMED_REQUEST)
        item_type = ItemType.parse(type_token)
        if item_type is None:
            raise ProtocolError(ErrorCode.TYPE_NOT_FOUND)
        needle = term.casefold()
        return _matches_or_not_found(
            collect_matches(self.store.bucket(item_type), lambda item: item.matches(needle))
        )

    def _search_title(self, term: str) -> list[str]:
        if not term:
            raise ProtocolError(ErrorCode.MALFORMED_REQUEST)
        needle = term.casefold()
        return _matches_or_not_found(
            collect_matches(self.store.items(), lambda item: item.matches(needle, title_only=True))
        )

    def _search_keywords(self, rest: str) -> list[str]:
        keywords = [k.casefold() for k in rest.split()]
        if not keywords:
            raise ProtocolError(ErrorCode.MALFORMED_REQUEST)
        return _matches_or_not_found(
            collect_matches(self.store.items(), lambda item: all(item.matches(k) for k in keywords))
        )

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def _handle_link(self, args: str) -> list[str]:
        tokens = args.split()
        if len(tokens) < 2:
            raise ProtocolError(ErrorCode.MALFORMED_REQUEST)
        a, b = parse_id(tokens[0]), parse_id(tokens[1])
        if a is None or b is None:
            raise ProtocolError(ErrorCode.MALFORMED_ID)
        if a == b:
            raise ProtocolError(ErrorCode.MALFORMED_REQUEST)
        self._find(a)
        self._find(b)

        result = self.store.add_link(a, b)
        if result is LinkResult.EXISTS:
            raise ProtocolError(ErrorCode.LINK_EXISTS)
        # Self-links and unknown ids were rejected above.
        if result is not LinkResult.CREATED:
            raise ProtocolError(ErrorCode.MALFORMED_REQUEST)
        return _ok()

    def _handle_context(self, args: str) -> list[str]:
        center = self._find(_require_id(args))
        lines = ["ITEM:", center.format_full(), "", "LINKED-TO:"]
        for nbr_id in self.store.neighbors_of(center.id):
            nbr = self.store.get(nbr_id)
            if nbr is not None:
                lines.append(nbr.format_full())
        return _block(lines, OkCode.CONTEXT)

    def _handle_outline(self, args: str) -> list[str]:  # noqa: ARG002
        lines: list[str] = []
        for item_type, header in OUTLINE_SECTIONS:
            lines.append(f"{header}:")
            lines.extend(item.format_outline() for item in self.store.bucket(item_type))
            lines.append("")
        return _block(lines, OkCode.OUTLINE)

    # ------------------------------------------------------------------
    # Books
    # ------------------------------------------------------------------

    def _book_files(self, name: str) -> BookFiles:
        return BookFiles.for_name(self.data_dir, name)

    def _switch_to(self, files: BookFiles) -> None:
        """Load files into a fresh store, then make it the active one."""
        store = ItemStore(files)
        store.load_from_disk()
        self.store = store
        logger.info("active book is now %s", files.name)

    def _handle_new_book(self, args: str) -> list[str]:
        name = _single_book_name(args)
        files = self._book_files(name)
        if files.any_exists():
            raise ProtocolError(ErrorCode.BOOK_EXISTS)
        try:
            create_book(files)
        except FileExistsError as exc:
            raise ProtocolError(ErrorCode.BOOK_EXISTS) from exc
        except OSError as exc:
            logger.warning("creating book %s failed: %s", name, exc)
            raise ProtocolError(ErrorCode.BOOK_CREATE_FAILED) from exc
        try:
            self._switch_to(files)
        except OSError as exc:
            logger.warning("loading new book %s failed: %s", name, exc)
            raise ProtocolError(ErrorCode.BOOK_LOAD_FAILED) from exc
        return _ok(f"CREATED {name}")

    def _handle_load_book(self, args: str) -> list[str]:
        name = _single_book_name(args)
        files = self._book_files(name)
        if not files.items_exist():
            raise ProtocolError(ErrorCode.BOOK_NOT_FOUND)
        try:
            self._switch_to(files)
        except OSError as exc:
            logger.warning("loading book %s failed: %s", name, exc)
            raise ProtocolError(ErrorCode.BOOK_LOAD_FAILED) from exc
        return _ok(f"LOADED {name}")

    def _handle_delete_book(self, args: str) -> list[str]:
        tokens = args.split()
        if len(tokens) != 2:
            raise ProtocolError(ErrorCode.MALFORMED_REQUEST)
        name, key = tokens
        if not is_valid_book_name(name):
            raise ProtocolError(ErrorCode.INVALID_BOOK_NAME)
        if not hmac.compare_digest(key.encode(), DELETE_BOOK_KEY.encode()):
            raise ProtocolError(ErrorCode.UNAUTHORIZED)
        files = self._book_files(name)
        if not files.any_exists():
            raise ProtocolError(ErrorCode.BOOK_NOT_FOUND)
        if name == self.current_book:
            raise ProtocolError(ErrorCode.ACTIVE_BOOK)
        try:
            delete_book(files)
        except OSError as exc:
            logger.warning("deleting book %s failed: %s", name, exc)
            raise ProtocolError(ErrorCode.BOOK_DELETE_FAILED) from exc
        logger.info("deleted book %s", name)
        return _ok(f"DELETED {name}")

    def _handle_which_book(self, args: str) -> list[str]:
        if args:
            raise ProtocolError(ErrorCode.MALFORMED_REQUEST)
        if not self.current_book:
            raise ProtocolError(ErrorCode.NOT_FOUND)
        return _ok(self.current_book)

    # ------------------------------------------------------------------
    # Help
    # ------------------------------------------------------------------

    def _handle_usage(self, args: str) -> list[str]:
        tokens = args.split()
        if not tokens:
            return _block([c.help for c in COMMANDS])
        help_line = USAGE_BY_VERB.get(tokens[0].upper())
        if help_line is None:
            raise ProtocolError(ErrorCode.NOT_FOUND)
        return _block([help_line])
