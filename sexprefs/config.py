"""Configuration management for sexp-refs.

Loads environment variables (optionally from a .env file) and provides
centralized config access.
"""
import os
from pathlib import Path
from typing import List, Set
from dotenv import load_dotenv

__version__ = "1.0.0"

DEFAULT_EXCLUDED_DIRS = '.git,.cask,.eldev,elpa,node_modules,.sexprefs_cache'


class Config:
    """Configuration loader with environment variable support."""

    def __init__(self, env_path: str | Path | None = None):
        """Initialize config by loading the .env file.

        Args:
            env_path: Explicit .env file; defaults to the project root's .env
        """
        if env_path is None:
            project_root = Path(__file__).parent.parent
            env_path = project_root / ".env"
        load_dotenv(env_path)

        self._validate()

    def _validate(self):
        """Validate configured values.

        Raises:
            ValueError: If no file extension is configured or the context
                line count is not a non-negative integer
        """
        if not self.extensions:
            raise ValueError(
                "SEXPREFS_EXTENSIONS is empty. "
                "Set it to a comma-separated list such as '.el'."
            )
        try:
            context = int(os.getenv("SEXPREFS_CONTEXT_LINES", "0"))
        except ValueError:
            context = -1
        if context < 0:
            raise ValueError("SEXPREFS_CONTEXT_LINES must be a non-negative integer.")

    @property
    def extensions(self) -> List[str]:
        """Get the file suffixes to search.

        Returns:
            Lower-cased suffixes, each starting with a dot
        """
        raw = os.getenv("SEXPREFS_EXTENSIONS", ".el")
        extensions = []
        for ext in raw.split(','):
            ext = ext.strip().lower()
            if ext:
                extensions.append(ext if ext.startswith('.') else f".{ext}")
        return extensions

    @property
    def excluded_dirs(self) -> Set[str]:
        """Get directory names skipped during file discovery."""
        raw = os.getenv("SEXPREFS_EXCLUDED_DIRS", DEFAULT_EXCLUDED_DIRS)
        return {name.strip() for name in raw.split(',') if name.strip()}

    @property
    def cache_dir(self) -> str:
        """Get the cache directory name, relative to the search root."""
        return os.getenv("SEXPREFS_CACHE_DIR", ".sexprefs_cache")

    @property
    def theme(self) -> str:
        """Get the rich Syntax theme used for snippets."""
        return os.getenv("SEXPREFS_THEME", "monokai")

    @property
    def context_lines(self) -> int:
        """Get the number of extra lines shown around each match."""
        return int(os.getenv("SEXPREFS_CONTEXT_LINES", "0"))


# Singleton instance
_config = None


def get_config() -> Config:
    """Get or create singleton Config instance.

    Returns:
        Config instance
    """
    global _config
    if _config is None:
        _config = Config()
    return _config
