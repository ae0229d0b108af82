"""Corpus discovery: finding source files and loading them as SourceUnits."""
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union

from .cache import OccurrenceCache
from .forms import SourceUnit
from .search import DocumentError, DocumentOutcome, SkippedDocument


def discover_files(root: str | Path, extensions: Iterable[str],
                   excluded_dirs: Iterable[str] = ()) -> List[Path]:
    """Find source files under ``root``.

    Args:
        root: Directory to scan, or a single file (returned as-is)
        extensions: Suffixes to include, e.g. ['.el']
        excluded_dirs: Directory names to skip anywhere in the tree

    Returns:
        Sorted list of file paths
    """
    root = Path(root)
    if root.is_file():
        return [root]

    excluded = set(excluded_dirs)
    files = set()
    for ext in extensions:
        for file_path in root.rglob(f'*{ext}'):
            relative_parts = file_path.relative_to(root).parts[:-1]
            if any(part in excluded for part in relative_parts):
                continue
            if file_path.is_file():
                files.add(file_path)
    return sorted(files)


def load_unit(file_path: str | Path) -> SourceUnit:
    """Read a file as a SourceUnit.

    Raises:
        OSError: If the file cannot be read
        UnicodeDecodeError: If the file is not UTF-8
    """
    file_path = Path(file_path)
    return SourceUnit(str(file_path), file_path.read_text(encoding='utf-8'))


def iter_units(paths: Iterable[Path], cache: Optional[OccurrenceCache] = None,
               symbol: Optional[str] = None
               ) -> Iterator[Union[SourceUnit, DocumentError, SkippedDocument]]:
    """Load files lazily, in order.

    With a cache and a symbol, a file whose cached symbol set lacks the
    symbol is not read at all and comes out as a SkippedDocument. Files that
    cannot be loaded come out as DocumentErrors; the iteration goes on.
    """
    for file_path in paths:
        if cache is not None and symbol is not None:
            cached = cache.get_symbols(file_path)
            if cached is not None and symbol not in cached:
                yield SkippedDocument(str(file_path))
                continue
        try:
            yield load_unit(file_path)
        except (OSError, UnicodeDecodeError) as e:
            yield DocumentError(str(file_path), e)


def remember_outcome(cache: OccurrenceCache, outcome) -> bool:
    """Store a cleanly read document's symbol set in the cache.

    Returns:
        True if the outcome was cached
    """
    if not isinstance(outcome, DocumentOutcome) or outcome.symbols is None:
        return False
    cache.set_symbols(Path(outcome.unit.identifier), outcome.symbols)
    return True
