"""Interactive client for the book server.

Sends one request line, then reads either a single reply line or, for the
block commands, every line up to the ``.END`` sentinel (or an ``ERR`` line).
"""

from __future__ import annotations

import socket
from typing import TYPE_CHECKING

from bbp.status import END_SENTINEL

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import TextIO

BLOCK_VERBS = frozenset({"LIST", "SEARCH", "CONTEXT", "OUTLINE", "USAGE"})

BANNER = """\
Welcome! You are connected to the Book Builder Protocol (BBP) server.
Enter commands like:
  ADD QUOTE;;title;;body
  GET 1
  LIST PLOT
  SEARCH TYPE PLOT hero
  SEARCH TITLE redemption
  SEARCH KEYWORDS modernity failure
  LINK 1 4
  CONTEXT 1
  OUTLINE
  USAGE
Type Ctrl-D (EOF) to exit."""


def expects_block(request: str) -> bool:
    """True if the reply to request is a multi-line block."""
    parts = request.split(None, 1)
    return bool(parts) and parts[0] in BLOCK_VERBS


class BBPClient:
    """Line-protocol connection to a book server."""

    def __init__(self, host: str, port: int, *, timeout: float | None = None) -> None:
        self._sock = socket.create_connection((host, port), timeout=timeout)
        self._rfile = self._sock.makefile("r", encoding="utf-8", errors="replace", newline="\n")
        self._wfile = self._sock.makefile("w", encoding="utf-8", newline="\n")

    def close(self) -> None:
        for f in (self._rfile, self._wfile):
            try:
                f.close()
            except OSError:
                pass
        self._sock.close()

    def __enter__(self) -> BBPClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def send_line(self, line: str) -> None:
        self._wfile.write(line + "\n")
        self._wfile.flush()

    def read_line(self) -> str:
        raw = self._rfile.readline()
        if not raw:
            msg = "server closed the connection"
            raise ConnectionError(msg)
        return raw.rstrip("\r\n")

    def read_block(self) -> list[str]:
        """Read a block reply through .END; an ERR header is the whole reply."""
        lines = [self.read_line()]
        if lines[0].startswith("ERR"):
            return lines
        while lines[-1] != END_SENTINEL:
            lines.append(self.read_line())
        return lines

    def request(self, line: str) -> list[str]:
        """Send one request and return its reply lines."""
        line = line.strip()
        self.send_line(line)
        if expects_block(line):
            return self.read_block()
        return [self.read_line()]

    def run_interactive(
        self,
        stdin: TextIO,
        echo: Callable[[str], None] = print,
        prompt: Callable[[str], None] | None = None,
    ) -> None:
        """Prompt/request/print loop until EOF, Ctrl+C or server hang-up."""
        echo("Starting Client")
        echo(BANNER)
        show_prompt = prompt or (lambda p: print(p, end="", flush=True))
        try:
            while True:
                show_prompt("C: ")
                raw = stdin.readline()
                if not raw:
                    break
                line = raw.strip()
                if not line:
                    continue
                try:
                    reply = self.request(line)
                except OSError:
                    echo("S: <connection closed>")
                    break
                for r in reply:
                    echo(f"S: {r}")
        except KeyboardInterrupt:
            pass
