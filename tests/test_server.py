import io
import socket

import pytest

from bbp.client import BBPClient, expects_block
from bbp.config import load_config
from bbp.server import open_default_book


def _address(server):
    host, port = server.server_address[:2]
    return host, port


def test_expects_block():
    for line in ("LIST PLOT", "SEARCH TITLE x", "CONTEXT 1", "OUTLINE", "USAGE", "USAGE GET"):
        assert expects_block(line)
    for line in ("ADD QUOTE;;a;;b", "GET 1", "LINK 1 2", "WHICHB", "", "OUTLINES"):
        assert not expects_block(line)


def test_scenario_over_tcp(running_server):
    with BBPClient(*_address(running_server), timeout=5) as client:
        assert client.request("ADD QUOTE;;Opening Line;;It was the best of times") == ["OK 1 ;; Opening Line"]
        assert client.request("GET 1") == ["OK 1 ;; QUOTE ;; Opening Line ;; It was the best of times"]
        assert client.request("ADD PLOT;;Rising Action;;Conflict emerges") == ["OK 2 ;; Rising Action"]
        assert client.request("LINK 1 2") == ["OK"]

        context = client.request("CONTEXT 1")
        assert context[0] == "OK CONTEXT"
        assert context[context.index("LINKED-TO:") + 1] == "2 ;; PLOT ;; Rising Action ;; Conflict emerges"
        assert context[-1] == ".END"

        assert client.request("LIST QUOTE") == ["OK", "1 ;; Opening Line ;; It was the best of times", ".END"]
        assert client.request("SEARCH KEYWORDS best times") == [
            "OK", "1 ;; Opening Line ;; It was the best of times", ".END",
        ]
        assert client.request("LIST CHAR") == ["ERR NOT-FOUND"]

        outline = client.request("OUTLINE")
        assert outline[0] == "OK OUTLINE"
        assert "" in outline
        assert outline[-1] == ".END"


def test_blank_lines_are_skipped_and_connection_survives_errors(running_server):
    with socket.create_connection(_address(running_server), timeout=5) as sock, \
            sock.makefile("rw", encoding="utf-8", newline="\n") as f:
        f.write("\n   \nFROB\nWHICHB\n")
        f.flush()
        assert f.readline() == "ERR COMMAND-NOT-FOUND\n"
        assert f.readline() == "OK novel\n"


def test_connections_are_served_one_after_another(running_server):
    with BBPClient(*_address(running_server), timeout=5) as first:
        assert first.request("ADD THEME;;Sacrifice;;a far better thing") == ["OK 1 ;; Sacrifice"]
    with BBPClient(*_address(running_server), timeout=5) as second:
        assert second.request("GET 1") == ["OK 1 ;; THEME ;; Sacrifice ;; a far better thing"]


def test_run_interactive(running_server):
    stdin = io.StringIO("ADD CHAR;;Lucie;;golden thread\n\nUSAGE WHICHB\nGET 1\n")
    out: list[str] = []
    prompts: list[str] = []
    with BBPClient(*_address(running_server), timeout=5) as client:
        client.run_interactive(stdin, echo=out.append, prompt=prompts.append)

    assert out[0] == "Starting Client"
    assert out[2:] == [
        "S: OK 1 ;; Lucie",
        "S: OK",
        "S: WHICHB - Show the name of the currently active book.",
        "S: .END",
        "S: OK 1 ;; CHAR ;; Lucie ;; golden thread",
    ]
    assert prompts == ["C: "] * 5


def test_client_reports_server_hangup():
    listener = socket.socket()
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    try:
        client = BBPClient(*listener.getsockname(), timeout=5)
        conn, _ = listener.accept()
        conn.close()
        out: list[str] = []
        with client:
            client.run_interactive(io.StringIO("GET 1\n"), echo=out.append, prompt=lambda p: None)
        assert out[-1] == "S: <connection closed>"
    finally:
        listener.close()


def test_read_block_raises_on_truncated_reply():
    listener = socket.socket()
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    try:
        client = BBPClient(*listener.getsockname(), timeout=5)
        conn, _ = listener.accept()
        conn.sendall(b"OK\n1 ;; a ;; b\n")
        conn.close()
        with client, pytest.raises(ConnectionError):
            client.read_block()
    finally:
        listener.close()


def test_open_default_book(tmp_path):
    (tmp_path / "bbp.toml").write_text("[bbp]\n")
    (tmp_path / "bbp_items.db").write_text("1|QUOTE|Opening Line|It was the best of times\n")
    cfg = load_config(tmp_path)
    store = open_default_book(cfg)
    assert store.book_name == "bbp"
    assert store.get(1).title == "Opening Line"

    other = open_default_book(cfg, "draft")
    assert other.book_name == "draft"
    assert len(other) == 0
    assert not (tmp_path / "draft_items.db").exists()

    assert open_default_book(cfg, "").book_name is None


def test_open_default_book_rejects_path_like_names(tmp_path):
    cfg = load_config(tmp_path)
    with pytest.raises(ValueError, match="invalid book name"):
        open_default_book(cfg, "../escape")
    assert not (tmp_path.parent / "escape_items.db").exists()
