"""sexprefs CLI - find real references to Emacs Lisp symbols."""
import json
from contextlib import nullcontext
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

import typer
from rich.markup import escape
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    TimeElapsedColumn
)
from rich.table import Table

from sexprefs.config import __version__, get_config
from sexprefs.utils.safe_console import SafeConsole
from sexprefs.analyzer.cache import OccurrenceCache
from sexprefs.analyzer.corpus import discover_files, iter_units, remember_outcome
from sexprefs.analyzer.forms import SourceUnit
from sexprefs.analyzer.oracle import ChainOracle, DefinitionOracle, SearchError, StaticOracle
from sexprefs.analyzer.predicates import ReferenceKind
from sexprefs.analyzer.search import Outcome, ReferenceSearch, SearchResult, merge
from sexprefs.report import render, to_json

app = typer.Typer(
    name="sexprefs",
    help="Find real references to Emacs Lisp functions, macros and variables",
    add_completion=False
)
console = SafeConsole()

# Cache management sub-command
cache_app = typer.Typer(name="cache", help="Manage the occurrence cache")

CALL_KINDS = (ReferenceKind.FUNCTION, ReferenceKind.MACRO, ReferenceKind.SPECIAL)


def build_oracle(kind: ReferenceKind, paths: List[Path], oracle_file: Optional[str] = None):
    """Build the classification oracle a search of ``kind`` needs.

    Call searches classify the symbol from the definitions found in the
    corpus, optionally preceded by an explicit JSON oracle. Variable and
    symbol searches need no oracle.

    Raises:
        ValueError: If the oracle file is malformed
        OSError: If the oracle file cannot be read
    """
    if kind not in CALL_KINDS:
        return None

    loaded = (unit for unit in iter_units(paths) if isinstance(unit, SourceUnit))
    definitions = DefinitionOracle.from_units(loaded)
    if oracle_file:
        return ChainOracle(StaticOracle.from_json(oracle_file), definitions)
    return definitions


def search_root(search_path: Path) -> Path:
    """Directory owning the cache and relative display paths."""
    return search_path if search_path.is_dir() else search_path.parent


def search_project(search_path: Path, symbol: str, kind: ReferenceKind,
                   use_cache: bool = True, oracle_file: Optional[str] = None,
                   show_progress: bool = True) -> SearchResult:
    """Search every source file under ``search_path``.

    Args:
        search_path: File or directory to search
        symbol: Symbol name to look for
        kind: Kind of reference
        use_cache: Skip files whose cached symbol set lacks ``symbol``
            and record symbol sets of files read
        oracle_file: Optional JSON classification file
        show_progress: Display a transient progress bar

    Returns:
        Merged SearchResult

    Raises:
        SearchError: If the symbol cannot be classified for a call search
    """
    config = get_config()
    paths = discover_files(search_path, config.extensions, config.excluded_dirs)
    search = ReferenceSearch(symbol, kind, build_oracle(kind, paths, oracle_file))

    cache = OccurrenceCache(search_root(search_path), config.cache_dir) if use_cache else None

    if show_progress:
        progress_ctx = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True
        )
    else:
        progress_ctx = nullcontext()

    def observed(outcomes: Iterable[Outcome]) -> Iterator[Outcome]:
        for outcome in outcomes:
            if cache is not None:
                remember_outcome(cache, outcome)
            if show_progress:
                progress.advance(task)
            yield outcome

    try:
        with progress_ctx as progress:
            if show_progress:
                task = progress.add_task(f"[cyan]Searching for {escape(symbol)}...", total=len(paths))
            return merge(observed(search.iter_outcomes(iter_units(paths, cache, symbol))))
    finally:
        if cache is not None:
            cache.close()


def _run(kind: ReferenceKind, symbol: str, path: str, json_output: bool,
         no_cache: bool, oracle_file: Optional[str], context: Optional[int]):
    """Shared body of the search commands."""
    search_path = Path(path).resolve()

    if not search_path.exists():
        console.print(f"[bold red]Error:[/bold red] Path does not exist: {escape(str(search_path))}")
        raise typer.Exit(1)

    try:
        config = get_config()
        result = search_project(
            search_path, symbol, kind,
            use_cache=not no_cache, oracle_file=oracle_file, show_progress=not json_output
        )
    except (SearchError, ValueError, OSError) as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    root = search_root(search_path)
    if json_output:
        typer.echo(json.dumps(to_json(result, root), indent=2))
        return

    render(result, console, root=root, theme=config.theme,
           context=config.context_lines if context is None else context)


@app.command()
def function(
    symbol: str = typer.Argument(..., help="Function to find calls of"),
    path: str = typer.Argument(".", help="File or directory to search"),
    json_output: bool = typer.Option(False, "--json", help="Print matches as JSON"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Neither use nor update the occurrence cache"),
    oracle_file: Optional[str] = typer.Option(None, "--oracle", help="JSON file classifying symbols"),
    context: Optional[int] = typer.Option(None, "--context", "-C", min=0, help="Extra lines shown around each match"),
):
    """Find calls to a function."""
    _run(ReferenceKind.FUNCTION, symbol, path, json_output, no_cache, oracle_file, context)


@app.command()
def macro(
    symbol: str = typer.Argument(..., help="Macro to find uses of"),
    path: str = typer.Argument(".", help="File or directory to search"),
    json_output: bool = typer.Option(False, "--json", help="Print matches as JSON"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Neither use nor update the occurrence cache"),
    oracle_file: Optional[str] = typer.Option(None, "--oracle", help="JSON file classifying symbols"),
    context: Optional[int] = typer.Option(None, "--context", "-C", min=0, help="Extra lines shown around each match"),
):
    """Find uses of a macro."""
    _run(ReferenceKind.MACRO, symbol, path, json_output, no_cache, oracle_file, context)


@app.command()
def special(
    symbol: str = typer.Argument(..., help="Special form to find uses of"),
    path: str = typer.Argument(".", help="File or directory to search"),
    json_output: bool = typer.Option(False, "--json", help="Print matches as JSON"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Neither use nor update the occurrence cache"),
    oracle_file: Optional[str] = typer.Option(None, "--oracle", help="JSON file classifying symbols"),
    context: Optional[int] = typer.Option(None, "--context", "-C", min=0, help="Extra lines shown around each match"),
):
    """Find uses of a special form (if, let, progn, ...)."""
    _run(ReferenceKind.SPECIAL, symbol, path, json_output, no_cache, oracle_file, context)


@app.command()
def variable(
    symbol: str = typer.Argument(..., help="Variable to find references to"),
    path: str = typer.Argument(".", help="File or directory to search"),
    json_output: bool = typer.Option(False, "--json", help="Print matches as JSON"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Neither use nor update the occurrence cache"),
    context: Optional[int] = typer.Option(None, "--context", "-C", min=0, help="Extra lines shown around each match"),
):
    """Find references to a variable, ignoring parameter and let-bound names."""
    _run(ReferenceKind.VARIABLE, symbol, path, json_output, no_cache, None, context)


@app.command()
def symbol(
    symbol: str = typer.Argument(..., help="Symbol to find"),
    path: str = typer.Argument(".", help="File or directory to search"),
    json_output: bool = typer.Option(False, "--json", help="Print matches as JSON"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Neither use nor update the occurrence cache"),
    context: Optional[int] = typer.Option(None, "--context", "-C", min=0, help="Extra lines shown around each match"),
):
    """Find every occurrence of a symbol, binding occurrences included."""
    _run(ReferenceKind.SYMBOL, symbol, path, json_output, no_cache, None, context)


# =========================================================================
# CACHE MANAGEMENT COMMANDS
# =========================================================================

@cache_app.command("clear")
def cache_clear(
    path: str = typer.Argument(".", help="Directory whose cache to clear"),
):
    """Clear the occurrence cache of a directory.

    The next search reads every file again.
    """
    project_path = Path(path).resolve()

    if not project_path.is_dir():
        console.print(f"[bold red]Error:[/bold red] Not a directory: {escape(str(project_path))}")
        raise typer.Exit(1)

    with OccurrenceCache(project_path, get_config().cache_dir) as cache:
        cache.clear_cache()

    console.print(f"[green]✓ Cache cleared for {escape(str(project_path))}[/green]")


@cache_app.command("stats")
def cache_stats(
    path: str = typer.Argument(".", help="Directory whose cache to inspect"),
):
    """Display occurrence cache statistics for a directory."""
    project_path = Path(path).resolve()

    if not project_path.is_dir():
        console.print(f"[bold red]Error:[/bold red] Not a directory: {escape(str(project_path))}")
        raise typer.Exit(1)

    with OccurrenceCache(project_path, get_config().cache_dir) as cache:
        stats = cache.get_cache_stats()

    table = Table(title=f"Cache Statistics: {project_path}", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")

    table.add_row("Total Files Cached", str(stats['total_files']))
    table.add_row("Distinct Symbols", str(stats['distinct_symbols']))

    console.print(table)


# Register cache sub-command
app.add_typer(cache_app)


def _version_callback(value: bool):
    if value:
        typer.echo(f"sexprefs {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True,
                                 help="Show the version and exit"),
):
    """sexprefs - find real references to Emacs Lisp symbols."""


if __name__ == "__main__":
    app()
