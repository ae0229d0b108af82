"""Terminal-safe status output with an ASCII fallback.

Detects the terminal encoding and swaps the Unicode icons used in status
lines for ASCII equivalents where the terminal cannot print them.
"""
import sys
import locale

from rich.markup import escape


# Unicode to ASCII icon mapping for non-UTF-8 terminals; values are rich markup
ICON_MAP = {
    '✓': r'\[OK]',
    '✗': r'\[FAIL]',
    '⚠': r'\[WARN]',
    '⚡': r'\[!]',
    '→': '->',
    '…': '...',
    '•': '*',
    '│': '|',
    '─': '-',
}


def detect_terminal_encoding() -> str:
    """Detect the terminal's encoding.

    Returns:
        str: Terminal encoding ('utf-8', 'cp1252', 'ascii', etc.)
    """
    if getattr(sys.stdout, 'encoding', None):
        return sys.stdout.encoding.lower()

    encoding = locale.getpreferredencoding(False)
    if encoding:
        return encoding.lower()

    return 'ascii'


def is_utf8_capable() -> bool:
    """Check if the terminal can handle UTF-8 output."""
    return detect_terminal_encoding().replace('_', '-') in ('utf-8', 'utf8')


def sanitize_for_terminal(text: str) -> str:
    """Replace Unicode icons with ASCII equivalents if the terminal needs it.

    Args:
        text: Text potentially containing Unicode icons

    Returns:
        str: Text safe for the current terminal
    """
    if is_utf8_capable():
        return text

    sanitized = text
    for unicode_char, ascii_replacement in ICON_MAP.items():
        sanitized = sanitized.replace(unicode_char, ascii_replacement)

    return sanitized


def format_document_error(identifier: str, message: str) -> str:
    """Format a per-document warning line as rich markup."""
    return sanitize_for_terminal(
        f"[yellow]⚠ {escape(identifier)}:[/yellow] {escape(message)}"
    )
