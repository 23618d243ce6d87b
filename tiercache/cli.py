"""CLI interface for tiercache."""

import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from tiercache.consts import DEFAULT_CACHE_DIR, ROOT_ENV_VAR
from tiercache.exceptions import CacheError
from tiercache.storage.cache.file_store import FileStore
from tiercache.storage.cache.payload import JsonSerializer, PayloadCodec

app = typer.Typer(
    name="tiercache",
    help="tiercache - inspect and edit a file-backed key-value cache",
)

console = Console()

RootOption = typer.Option(
    DEFAULT_CACHE_DIR, "--root", "-r", envvar=ROOT_ENV_VAR, help="Cache root directory"
)
PrefixOption = typer.Option("", "--prefix", "-p", help="Key prefix")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Enable debug logging")


def _open_store(root: Path, prefix: str, verbose: bool) -> FileStore:
    """Configure logging and build a JSON-backed FileStore."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        return FileStore(root, prefix=prefix, codec=PayloadCodec(JsonSerializer()))
    except CacheError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _format_value(value: object) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


@app.command()
def get(
    key: str = typer.Argument(..., help="Cache key"),
    root: Path = RootOption,
    prefix: str = PrefixOption,
    verbose: bool = VerboseOption,
) -> None:
    """Print the value stored under KEY."""
    store = _open_store(root, prefix, verbose)
    value = store.get(key)
    if value is None:
        console.print(f"[yellow]Not found:[/yellow] {key}")
        raise typer.Exit(1)
    console.print(_format_value(value), markup=False, highlight=False)


@app.command()
def put(
    key: str = typer.Argument(..., help="Cache key"),
    value: str = typer.Argument(..., help="Value to store"),
    ttl: int = typer.Option(0, "--ttl", "-t", help="Time-to-live in seconds (0 = never)"),
    as_json: bool = typer.Option(False, "--json", help="Parse VALUE as JSON"),
    if_absent: bool = typer.Option(False, "--if-absent", help="Only write if KEY is missing"),
    root: Path = RootOption,
    prefix: str = PrefixOption,
    verbose: bool = VerboseOption,
) -> None:
    """Store VALUE under KEY."""
    store = _open_store(root, prefix, verbose)

    stored: object = value
    if as_json:
        try:
            stored = json.loads(value)
        except json.JSONDecodeError as e:
            console.print(f"[red]Error:[/red] Invalid JSON: {e}")
            raise typer.Exit(1)

    try:
        ok = store.if_put(key, stored, ttl) if if_absent else store.put(key, stored, ttl)
    except CacheError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if not ok:
        reason = "key already present" if if_absent else "write failed"
        console.print(f"[red]Not stored:[/red] {key} ({reason})")
        raise typer.Exit(1)
    console.print(f"[green]Stored[/green] {key}")


@app.command()
def delete(
    key: str = typer.Argument(..., help="Cache key"),
    root: Path = RootOption,
    prefix: str = PrefixOption,
    verbose: bool = VerboseOption,
) -> None:
    """Delete KEY."""
    store = _open_store(root, prefix, verbose)
    if not store.delete(key):
        console.print(f"[red]Error:[/red] Could not delete {key}")
        raise typer.Exit(1)
    console.print(f"[green]Deleted[/green] {key}")


@app.command()
def exists(
    key: str = typer.Argument(..., help="Cache key"),
    root: Path = RootOption,
    prefix: str = PrefixOption,
    verbose: bool = VerboseOption,
) -> None:
    """Exit 0 if KEY has a live entry, 1 otherwise."""
    store = _open_store(root, prefix, verbose)
    found = store.exists(key)
    console.print("yes" if found else "no")
    if not found:
        raise typer.Exit(1)


@app.command()
def incr(
    key: str = typer.Argument(..., help="Cache key"),
    by: int = typer.Option(1, "--by", "-b", help="Amount to add"),
    root: Path = RootOption,
    prefix: str = PrefixOption,
    verbose: bool = VerboseOption,
) -> None:
    """Increment the integer stored under KEY and print the result."""
    store = _open_store(root, prefix, verbose)
    console.print(str(store.increment(key, by)))


@app.command()
def decr(
    key: str = typer.Argument(..., help="Cache key"),
    by: int = typer.Option(1, "--by", "-b", help="Amount to subtract"),
    root: Path = RootOption,
    prefix: str = PrefixOption,
    verbose: bool = VerboseOption,
) -> None:
    """Decrement the integer stored under KEY and print the result."""
    store = _open_store(root, prefix, verbose)
    console.print(str(store.decrement(key, by)))


@app.command()
def flush(
    root: Path = RootOption,
    verbose: bool = VerboseOption,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Remove every entry under the cache root."""
    store = _open_store(root, "", verbose)
    if not yes:
        typer.confirm(f"Remove all entries under {root}?", abort=True)
    if not store.flush():
        console.print(f"[red]Error:[/red] Could not flush {root}")
        raise typer.Exit(1)
    console.print(f"[green]Flushed[/green] {root}")


@app.command()
def path(
    keys: list[str] = typer.Argument(..., help="Cache keys"),
    root: Path = RootOption,
    prefix: str = PrefixOption,
) -> None:
    """Show the entry file for each KEY."""
    store = FileStore(root, prefix=prefix)

    table = Table(title="Entry Paths")
    table.add_column("Key", style="cyan")
    table.add_column("Path", style="magenta")
    table.add_column("On disk", justify="center")
    for key in keys:
        entry_path = store.path_for(key)
        table.add_row(key, str(entry_path), "yes" if entry_path.exists() else "no")
    console.print(table)


if __name__ == "__main__":
    app()
