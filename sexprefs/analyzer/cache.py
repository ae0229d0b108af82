"""Occurrence cache for repeat searches.

Remembers, per file, the set of symbols the file mentions. On the next
search a file whose cached set lacks the target symbol is skipped without
being read or parsed, which makes repeat searches over a large corpus cheap.

Cache Strategy:
- Key: file mtime + size (a changed file is simply re-read)
- Value: union of the file's top-level occurrence sets, stored as JSON
- Only files read to the end without errors are cached, so malformed files
  keep being reported

Cache Format: SQLite database, one row per file
Location: <cache dir>/occurrences.db under the search root
"""
import json
import sqlite3
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

SCHEMA = '''
    CREATE TABLE IF NOT EXISTS occurrences (
        path TEXT PRIMARY KEY,
        mtime REAL NOT NULL,
        size INTEGER NOT NULL,
        symbols TEXT NOT NULL
    )
'''


class OccurrenceCache:
    """Per-file symbol sets stored under the search root.

    Example:
        with OccurrenceCache(root) as cache:
            symbols = cache.get_symbols(path)  # None when unknown or stale
    """

    def __init__(self, root: Path, cache_dir: str = '.sexprefs_cache'):
        """Open (or create) the cache database.

        Args:
            root: Directory searched; the cache lives below it
            cache_dir: Name of the cache directory
        """
        self.root = Path(root)
        self.cache_dir = self.root / cache_dir
        self.cache_file = self.cache_dir / 'occurrences.db'

        self.cache_dir.mkdir(parents=True, exist_ok=True)

        self.conn = sqlite3.connect(str(self.cache_file))
        with self.conn:
            self.conn.execute(SCHEMA)

    @staticmethod
    def _stamp(file_path: Path) -> Optional[Tuple[float, int]]:
        """Return (mtime, size) of a file, or None if it cannot be stat'ed."""
        try:
            stat = Path(file_path).stat()
        except OSError:
            return None
        return stat.st_mtime, stat.st_size

    def _fresh_row(self, file_path: Path) -> Optional[Tuple[float, int, str]]:
        """Return the file's row if it matches the file's current mtime and size."""
        stamp = self._stamp(file_path)
        if stamp is None:
            return None
        row = self.conn.execute(
            'SELECT mtime, size, symbols FROM occurrences WHERE path = ?',
            (str(file_path),)
        ).fetchone()
        if row is None or tuple(row[:2]) != stamp:
            return None
        return row

    def is_file_cached(self, file_path: Path) -> bool:
        """True if the file has an entry matching its current mtime and size."""
        return self._fresh_row(file_path) is not None

    def get_symbols(self, file_path: Path) -> Optional[FrozenSet[str]]:
        """Get the cached symbol set of a file.

        Returns:
            Set of symbol names, or None if not cached or stale
        """
        row = self._fresh_row(file_path)
        if row is None:
            return None
        try:
            return frozenset(json.loads(row[2]))
        except json.JSONDecodeError:
            return None

    def set_symbols(self, file_path: Path, symbols: Iterable[str]):
        """Cache the symbol set of a file; a missing file is ignored."""
        stamp = self._stamp(file_path)
        if stamp is None:
            return
        with self.conn:
            self.conn.execute(
                'INSERT OR REPLACE INTO occurrences (path, mtime, size, symbols) VALUES (?, ?, ?, ?)',
                (str(file_path), *stamp, json.dumps(sorted(symbols)))
            )

    def invalidate_file(self, file_path: Path):
        """Drop the entry of one file."""
        with self.conn:
            self.conn.execute('DELETE FROM occurrences WHERE path = ?', (str(file_path),))

    def clear_cache(self):
        """Drop every entry."""
        with self.conn:
            self.conn.execute('DELETE FROM occurrences')

    def get_cache_stats(self) -> Dict[str, int]:
        """Count cached files and the distinct symbols they mention."""
        rows = self.conn.execute('SELECT symbols FROM occurrences').fetchall()
        distinct = set()
        for (symbols,) in rows:
            distinct.update(json.loads(symbols))
        return {
            'total_files': len(rows),
            'distinct_symbols': len(distinct),
        }

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
