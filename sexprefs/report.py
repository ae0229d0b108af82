"""Presentation of search results: terminal rendering and JSON export."""
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax

from .analyzer.search import Match, SearchResult
from .utils.logger import format_document_error

LEXER = "emacs-lisp"


def snippet(match: Match, context: int = 0) -> Tuple[int, str]:
    """Expand a match to the whole lines it spans.

    Args:
        match: Match to expand
        context: Extra lines to include before and after

    Returns:
        Tuple of (first line number, snippet text)
    """
    text = match.unit.text
    line_start = text.rfind('\n', 0, match.start - 1) + 1
    for _ in range(context):
        if line_start == 0:
            break
        line_start = text.rfind('\n', 0, line_start - 1) + 1

    line_end = text.find('\n', match.end - 1)
    if line_end == -1:
        line_end = len(text)
    for _ in range(context):
        if line_end >= len(text):
            break
        following = text.find('\n', line_end + 1)
        line_end = len(text) if following == -1 else following

    first_line = text.count('\n', 0, line_start) + 1
    return first_line, text[line_start:line_end]


def display_path(identifier: str, root: Optional[Path] = None) -> str:
    """Show ``identifier`` relative to ``root`` when it lies below it."""
    if root is None:
        return identifier
    try:
        return str(Path(identifier).resolve().relative_to(root))
    except ValueError:
        return identifier


def _file_link(identifier: str, root: Optional[Path]) -> str:
    shown = escape(display_path(identifier, root))
    path = Path(identifier)
    if not path.exists():
        return f"[bold magenta]{shown}[/bold magenta]"
    return f"[bold magenta][link={path.resolve().as_uri()}]{shown}[/link][/bold magenta]"


def summary_line(result: SearchResult) -> str:
    """Summary such as 'Found 3 references in 2 files.'"""
    refs = "reference" if result.match_count == 1 else "references"
    files = "file" if result.document_count == 1 else "files"
    return f"Found {result.match_count} {refs} in {result.document_count} {files}."


def render(result: SearchResult, console: Console, root: Optional[Path] = None,
           theme: str = "monokai", context: int = 0):
    """Print a search result: snippets per file, summary, then errors.

    Args:
        result: Result to print
        console: Rich console to print to
        root: Search root; paths below it are shown relative to it
        theme: Rich Syntax theme
        context: Extra lines of context around each match
    """
    for unit, matches in result:
        console.print(_file_link(unit.identifier, root))
        for match in matches:
            first_line, code = snippet(match, context)
            console.print(Panel(
                Syntax(code, LEXER, theme=theme, line_numbers=True,
                       start_line=first_line, highlight_lines={match.line}),
                title=f"{escape(display_path(unit.identifier, root))}:{match.line}",
                title_align="left",
                border_style="cyan"
            ))
        console.print()

    if result.match_count:
        console.print(f"[bold green]{summary_line(result)}[/bold green]")
    else:
        console.print(f"[yellow]{summary_line(result)}[/yellow]")
    console.print(f"[dim]Documents scanned: {result.documents_scanned}[/dim]")

    if result.errors:
        console.print()
        console.print("[bold yellow]Documents With Errors[/bold yellow]")
        for error in result.errors:
            where = display_path(error.identifier, root)
            if error.offset is not None:
                where = f"{where} (offset {error.offset})"
            console.print(format_document_error(where, error.message))


def to_json(result: SearchResult, root: Optional[Path] = None) -> Dict[str, Any]:
    """Convert a search result into a JSON-serializable dict."""
    return {
        'matches': [
            {
                'file': display_path(unit.identifier, root),
                'line': match.line,
                'start': match.start,
                'end': match.end,
                'text': match.text,
            }
            for unit, matches in result
            for match in matches
        ],
        'match_count': result.match_count,
        'document_count': result.document_count,
        'documents_scanned': result.documents_scanned,
        'errors': [
            {
                'file': display_path(error.identifier, root),
                'offset': error.offset,
                'message': str(error.error),
            }
            for error in result.errors
        ],
    }
