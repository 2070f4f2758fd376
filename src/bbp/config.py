"""BBPConfig: project-local config for the book server.

Default layout (all relative to the project root):

    bbp.toml              # server config
    bbp_items.db          # default book: items log
    bbp_links.db          # default book: links log
    <name>_items.db       # further books created with NEWB
    <name>_links.db

bbp.toml example:

    [bbp]
    data_dir = "."        # where book files live
    default_book = "bbp"  # opened at startup; "" = start with no active book

    [server]
    host = "127.0.0.1"
    port = 7350

    [logging]
    level = "INFO"
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bbp.books import is_valid_book_name

_CONFIG_FILENAME = "bbp.toml"
_DEFAULT_BOOK = "bbp"
_DEFAULT_HOST = "127.0.0.1"
_DEFAULT_PORT = 7350
_DEFAULT_LOG_LEVEL = "INFO"


@dataclass
class ServerConfig:
    host: str = _DEFAULT_HOST
    port: int = _DEFAULT_PORT


@dataclass
class LoggingConfig:
    level: str = _DEFAULT_LOG_LEVEL


@dataclass
class BBPConfig:
    """Resolved configuration for a book server."""

    root: Path                      # directory that contains bbp.toml
    data_dir: Path = field(default_factory=Path)
    default_book: str = _DEFAULT_BOOK
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_path(self) -> Path:
        return self.root / _CONFIG_FILENAME

    def ensure_dirs(self) -> None:
        """Create data_dir if it doesn't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)


def load_config(root: Path | str | None = None) -> BBPConfig:
    """Load bbp.toml from root (or search upward from cwd if root is None)."""
    root_path = _find_root(Path(root) if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    bbp_section = raw.get("bbp", {})
    srv_section = raw.get("server", {})
    log_section = raw.get("logging", {})

    default_book = str(bbp_section.get("default_book", _DEFAULT_BOOK))
    if default_book and not is_valid_book_name(default_book):
        msg = f"{config_path}: default_book must be letters and digits only, got {default_book!r}"
        raise ValueError(msg)

    data_dir = Path(bbp_section.get("data_dir", "."))
    if not data_dir.is_absolute():
        data_dir = root_path / data_dir

    return BBPConfig(
        root=root_path,
        data_dir=data_dir,
        default_book=default_book,
        server=ServerConfig(
            host=str(srv_section.get("host", _DEFAULT_HOST)),
            port=int(srv_section.get("port", _DEFAULT_PORT)),
        ),
        logging=LoggingConfig(
            level=str(log_section.get("level", _DEFAULT_LOG_LEVEL)).upper(),
        ),
    )


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for bbp.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path) -> Path:
    """Write a default bbp.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"bbp.toml already exists at {config_path}"
        raise FileExistsError(msg)

    content = f"""\
[bbp]
# data_dir = "."          # directory holding <name>_items.db / <name>_links.db
# default_book = "{_DEFAULT_BOOK}"   # opened at startup; "" = no active book

# [server]
# host = "{_DEFAULT_HOST}"
# port = {_DEFAULT_PORT}

# [logging]
# level = "{_DEFAULT_LOG_LEVEL}"
"""
    config_path.write_text(content)
    return config_path
