import logging
from dataclasses import dataclass
from pathlib import Path
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax

from .errors import JsonWrapError
from .io import deserialize_from_path, deserialize_from_resource, serialize

app = typer.Typer(help="jsonwrap persistence utilities")
console = Console()

@dataclass
class SmokeTestObject:
    name: str
    hp: int

@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log file and serializer activity")):
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )

@app.command("smoke-test")
def smoke_test(
    directory: Path | None = typer.Option(None, "--dir", help="Directory to write test.json into (default: cwd)"),
):
    """
    Round-trip a small object through a file and check it comes back intact.
    """
    path = (directory or Path.cwd()).resolve() / "test.json"
    serialize(SmokeTestObject("abcd", 1), path)
    console.print(Syntax(path.read_text(encoding="utf-8"), "json"))

    restored = deserialize_from_path(path, SmokeTestObject)
    if restored.name != "abcd" or restored.hp != 1:
        console.print(f"[red]Round trip mismatch:[/red] {restored!r}")
        raise typer.Exit(code=1)
    console.print(f"[green]OK[/green] {path}")

@app.command()
def show(path: Path = typer.Argument(..., help="Document to load")):
    """
    Load a document, restoring embedded types, and pretty-print the result.
    """
    try:
        value = deserialize_from_path(path)
    except (OSError, JsonWrapError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    console.print(value)

@app.command()
def resource(name: str = typer.Argument(..., help="Logical resource name, e.g. defaults/hero")):
    """
    Load a bundled resource and pretty-print it.
    """
    try:
        value = deserialize_from_resource(name)
    except JsonWrapError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    console.print(value)

if __name__ == "__main__":
    app()
