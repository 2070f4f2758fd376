"""bbp CLI: Book Builder Protocol server and client.

Commands:
    bbp init                   create bbp.toml in the current project
    bbp serve                  run the book server (one client at a time)
    bbp status                 config and per-book item/link counts
    bbp connect                interactive client
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from bbp.books import is_valid_book_name, list_books
from bbp.config import BBPConfig, init_config, load_config

_LOG_FORMAT = "%(asctime)s %(name)s %(message)s"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg() -> BBPConfig:
    try:
        return load_config()
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc


def _setup_logging(level: str) -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        msg = f"Unknown log level: {level}"
        raise click.ClickException(msg)
    logging.basicConfig(level=numeric, format=_LOG_FORMAT)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="bbp")
def cli() -> None:
    """bbp: Book Builder Protocol server and client."""


# ---------------------------------------------------------------------------
# bbp init
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
def init(root: str) -> None:
    """Create bbp.toml in the current project."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("bbp.toml already exists, skipping init")

    cfg = load_config(root_path)
    cfg.ensure_dirs()
    click.echo(f"Data dir     : {cfg.data_dir}")
    click.echo(f"Default book : {cfg.default_book or '(none)'}")


# ---------------------------------------------------------------------------
# bbp serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", "-b", default=None, help="Bind address (default: bbp.toml [server].host)")
@click.option("--port", "-p", default=None, type=int, help="Port (default: bbp.toml [server].port)")
@click.option("--book", default=None, help="Book to open at startup (default: bbp.toml [bbp].default_book)")
@click.option("--log-level", default=None, help="Logging level (default: bbp.toml [logging].level)")
def serve(host: str | None, port: int | None, book: str | None, log_level: str | None) -> None:
    """Run the book server. Serves one connection at a time.

    \b
    bbp serve                 # 127.0.0.1:7350
    bbp serve -p 9000 --book novel
    bbp serve --log-level DEBUG   # log every request/response line
    """
    cfg = _load_cfg()
    _setup_logging(log_level or cfg.logging.level)
    if book and not is_valid_book_name(book):
        raise click.BadParameter("book names are letters and digits only", param_hint="--book")

    from bbp.server import serve as _serve

    try:
        _serve(cfg, host=host or cfg.server.host, port=port or cfg.server.port, book=book)
    except OSError as exc:
        raise click.ClickException(f"cannot serve: {exc}") from exc


# ---------------------------------------------------------------------------
# bbp status
# ---------------------------------------------------------------------------


@cli.command()
def status() -> None:
    """Show config and the books found in the data dir."""
    from rich.console import Console
    from rich.table import Table

    from bbp.store import ItemStore

    cfg = _load_cfg()
    console = Console()

    table = Table(title="bbp", show_header=True, header_style="bold")
    table.add_column("Metric", style="dim", no_wrap=True)
    table.add_column("Value", justify="right")

    from importlib.metadata import PackageNotFoundError, version as _pkg_version
    try:
        _ver = _pkg_version("bbp")
    except PackageNotFoundError:
        _ver = "unknown"
    table.add_row("Version", _ver)
    table.add_row("Config", str(cfg.config_path) if cfg.config_path.exists() else "[dim]defaults[/dim]")
    table.add_row("Data dir", str(cfg.data_dir))
    table.add_row("Server", f"{cfg.server.host}:{cfg.server.port}")
    table.add_row("Default book", cfg.default_book or "[dim](none)[/dim]")
    table.add_row("", "")

    books = list_books(cfg.data_dir)
    if not books:
        table.add_row("Books", "[yellow]none yet[/yellow]")
    for files in books:
        store = ItemStore(files)
        store.load_from_disk()
        n_links = sum(1 for _ in store.links())
        marker = " *" if files.name == cfg.default_book else ""
        table.add_row(f"{files.name}{marker}", f"{len(store)} items · {n_links} links")

    console.print(table)


# ---------------------------------------------------------------------------
# bbp connect
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", "-h", default=None, help="Server host (default: bbp.toml [server].host)")
@click.option("--port", "-p", default=None, type=int, help="Server port (default: bbp.toml [server].port)")
def connect(host: str | None, port: int | None) -> None:
    """Interactive client: type requests, see framed replies."""
    cfg = _load_cfg()
    from bbp.client import BBPClient

    target_host = host or cfg.server.host
    target_port = port or cfg.server.port
    try:
        client = BBPClient(target_host, target_port)
    except OSError as exc:
        raise click.ClickException(f"Could not connect to {target_host}:{target_port}: {exc}") from exc

    with client:
        client.run_interactive(
            click.get_text_stream("stdin"),
            echo=click.echo,
            prompt=lambda p: click.echo(p, nl=False),
        )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()
