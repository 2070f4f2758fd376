"""Book server: serves the line protocol over TCP, one connection at a time.

    bbp serve --port 7350

Each connection is read line by line; every non-empty line is handed to the
CommandProcessor and its reply flushed before the next line is read. The
server is not threaded: while a client is connected, new connections wait in
the listen backlog.
"""

from __future__ import annotations

import logging
import socketserver
from typing import TYPE_CHECKING, ClassVar

from bbp.books import BookFiles, is_valid_book_name
from bbp.commands import CommandProcessor
from bbp.store import ItemStore

if TYPE_CHECKING:
    from bbp.config import BBPConfig

logger = logging.getLogger("bbp.server")


class _Handler(socketserver.StreamRequestHandler):
    processor: ClassVar[CommandProcessor]

    def handle(self) -> None:
        peer = "%s:%s" % self.client_address[:2]
        logger.info("client connected: %s", peer)
        try:
            for raw in self.rfile:
                line = raw.decode("utf-8", errors="replace").strip()
                if not line:
                    continue
                logger.debug("C -> S: %s", line)
                reply = self.processor.handle(line)
                self.wfile.write("".join(f"{r}\n" for r in reply).encode("utf-8"))
                self.wfile.flush()
                for r in reply:
                    logger.debug("S -> C: %s", r)
        except OSError as exc:
            logger.info("connection %s dropped: %s", peer, exc)
        logger.info("client disconnected: %s", peer)


class _SequentialTCPServer(socketserver.TCPServer):
    allow_reuse_address = True


def make_handler(processor: CommandProcessor) -> type[_Handler]:
    class _Bound(_Handler):
        pass
    _Bound.processor = processor
    return _Bound


def make_server(processor: CommandProcessor, host: str, port: int) -> socketserver.TCPServer:
    """Bind (port 0 picks a free port) without starting to serve."""
    return _SequentialTCPServer((host, port), make_handler(processor))


def open_default_book(cfg: BBPConfig, book: str | None = None) -> ItemStore:
    """Build the startup store: the configured book, loaded if present."""
    name = cfg.default_book if book is None else book
    if not name:
        logger.info("no default book configured; starting without an active book")
        return ItemStore()
    if not is_valid_book_name(name):
        msg = f"invalid book name: {name!r}"
        raise ValueError(msg)
    store = ItemStore(BookFiles.for_name(cfg.data_dir, name))
    store.load_from_disk()
    return store


def serve(cfg: BBPConfig, host: str, port: int, book: str | None = None) -> None:
    """Start the book server (blocking until Ctrl+C)."""
    cfg.ensure_dirs()
    processor = CommandProcessor(open_default_book(cfg, book), cfg.data_dir)
    server = make_server(processor, host, port)
    logger.info("BBP server listening on %s:%d (book: %s)", host, port, processor.current_book or "-")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
