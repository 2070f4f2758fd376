import threading

import pytest

from bbp.books import BookFiles
from bbp.commands import CommandProcessor
from bbp.server import make_server
from bbp.store import ItemStore


@pytest.fixture
def book_files(tmp_path):
    return BookFiles.for_name(tmp_path, "novel")


@pytest.fixture
def store(book_files):
    store = ItemStore(book_files)
    store.load_from_disk()
    return store


@pytest.fixture
def processor(store, tmp_path):
    return CommandProcessor(store, tmp_path)


@pytest.fixture
def running_server(processor):
    """A real server on an ephemeral port, serving from a background thread."""
    server = make_server(processor, "127.0.0.1", 0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield server

    server.shutdown()
    server.server_close()
    thread.join(timeout=5)
