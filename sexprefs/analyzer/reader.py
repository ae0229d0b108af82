"""Positional reader for Emacs Lisp source text.

Turns raw text into top-level forms whose every subform carries exact
offsets into the text. Scanning is syntax-aware: brackets inside comments,
strings and character literals never disturb the structure.

Reading is strictly incremental. ``Reader.read_form`` consumes exactly one
top-level form from the cursor using an explicit stack, so very deep
nesting never touches the interpreter's recursion limit. While a top-level
form is read, every symbol inside it is collected into ``Form.symbols``;
searches use that set to skip forms that cannot mention their target.

Two outcomes end a document:

- ``END_OF_INPUT`` is returned when the text runs out between tokens,
  including in the middle of an unclosed form. Callers simply stop.
- ``MalformedInputError`` is raised when the text cannot be read: an
  unterminated string, a stray closing bracket, a misplaced dot, an
  unsupported ``#`` syntax.
"""
import re
import unicodedata
from typing import Iterator, List, Optional, Set, Union

from .forms import Form, FormKind, QUOTE_HEADS


class MalformedInputError(ValueError):
    """Raised when source text cannot be read as S-expressions."""

    def __init__(self, message: str, offset: int):
        super().__init__(f"{message} (offset {offset})")
        self.message = message
        self.offset = offset


class _EndOfInput:
    """Singleton marking clean exhaustion of a document."""

    def __repr__(self):
        return 'END_OF_INPUT'

    def __bool__(self):
        return False


END_OF_INPUT = _EndOfInput()

# Whitespace, line comments and #! interpreter lines between tokens
_BLANK_RE = re.compile(r'(?:\s+|;[^\n]*|#![^\n]*)*')

# Symbol or number token: anything up to a delimiter, backslash escapes included
_TOKEN_RE = re.compile(r'(?:[^\s"\';()\[\]#`,\\]|\\.)+', re.S)

_STRING_RE = re.compile(r'"(?:[^"\\]|\\.)*"', re.S)

_ESCAPE_RE = re.compile(
    r'\\(x[0-9a-fA-F]+|u[0-9a-fA-F]{4}|U[0-9a-fA-F]{8}|N\{[^}]*\}|[0-7]{1,3}|.)',
    re.S,
)

_SYMBOL_ESCAPE_RE = re.compile(r'\\(.)', re.S)

_INTEGER_RE = re.compile(r'[+-]?[0-9]+\.?\Z')
_FLOAT_RE = re.compile(
    r'[+-]?(?:[0-9]*\.[0-9]+(?:e[+-]?[0-9]+)?|[0-9]+(?:\.[0-9]*)?e[+-]?[0-9]+)\Z'
)

_RADIX_RE = re.compile(r'([0-9]+)[rR]')
_RADIX_BASES = {'x': 16, 'o': 8, 'b': 2}

_CHAR_MODIFIER_RE = re.compile(r'\\(?:[CMSHsA]-|\^)')
_HEX_DIGITS_RE = re.compile(r'[0-9a-fA-F]*')
_OCTAL_DIGITS_RE = re.compile(r'[0-7]{0,2}')

_SIMPLE_ESCAPES = {
    'n': '\n', 't': '\t', 'r': '\r', 'e': '\x1b', 'a': '\a',
    'b': '\b', 'f': '\f', 'v': '\v', 's': ' ', 'd': '\x7f',
}

# Dotted-pair state of an open list
_NO_DOT, _EXPECT_TAIL, _HAVE_TAIL = 0, 1, 2


class _OpenList:
    """An open bracket waiting for its closing partner."""
    __slots__ = ('start', 'close', 'kind', 'items', 'dot_state')

    def __init__(self, start: int, close: str, kind: FormKind):
        self.start = start
        self.close = close
        self.kind = kind
        self.items: List[Form] = []
        self.dot_state = _NO_DOT


class _OpenPrefix:
    """A reader macro prefix (quote, backquote, ...) waiting for its form."""
    __slots__ = ('start', 'kind', 'head')

    def __init__(self, start: int, kind: FormKind, head: str):
        self.start = start
        self.kind = kind
        self.head = head


# Digits converted per int() call, well under the interpreter's
# str-to-int digit limit
_INTEGER_CHUNK = 1000

_DIGITS_RE = re.compile(r'[+-]?[0-9a-zA-Z]+\Z')


def parse_integer(digits: str, base: int = 10) -> int:
    """Convert a signed digit string of any length to an int.

    Long literals are converted in chunks, so bignums of any size read
    the same as small ones.

    Raises:
        ValueError: If ``digits`` is not a valid base-``base`` integer
    """
    if not _DIGITS_RE.match(digits):
        raise ValueError(f"invalid base-{base} integer: {digits[:20]!r}")
    sign = -1 if digits[0] == '-' else 1
    digits = digits.lstrip('+-')
    value = 0
    for i in range(0, len(digits), _INTEGER_CHUNK):
        chunk = digits[i:i + _INTEGER_CHUNK]
        value = value * base ** len(chunk) + int(chunk, base)
    return sign * value


def _decode_escape(match: re.Match) -> str:
    esc = match.group(1)
    if esc in ('\n', ' '):
        # Line continuation and "\ " separator vanish from strings
        return ''
    try:
        if len(esc) > 1 and esc[0] in 'xuU':
            return chr(int(esc[1:], 16))
        if len(esc) > 1 and esc[0] == 'N':
            return unicodedata.lookup(esc[2:-1])
        if esc.isdigit() and esc[0] in '01234567':
            return chr(int(esc, 8))
    except (KeyError, ValueError, OverflowError):
        return match.group(0)
    return _SIMPLE_ESCAPES.get(esc, esc)


def decode_string(body: str) -> str:
    """Decode the escapes of a string literal's body (quotes excluded)."""
    if '\\' not in body:
        return body
    return _ESCAPE_RE.sub(_decode_escape, body)


def _character_value(body: str) -> Union[int, str]:
    """Value of a character literal given the text after ``?``.

    Characters with modifier prefixes (``?\\C-x``, ``?\\^M``) are kept as
    their raw text.
    """
    if not body.startswith('\\'):
        return ord(body)
    if _CHAR_MODIFIER_RE.match(body):
        return body
    decoded = decode_string(body)
    return ord(decoded) if len(decoded) == 1 else body


def _atom_from_token(raw: str, start: int, end: int) -> Form:
    """Build a number or symbol form from a bare token."""
    if '\\' not in raw:
        if _INTEGER_RE.match(raw):
            return Form(FormKind.NUMBER, start, end, parse_integer(raw.rstrip('.')))
        if _FLOAT_RE.match(raw):
            return Form(FormKind.NUMBER, start, end, float(raw))
        return Form(FormKind.SYMBOL, start, end, raw)
    return Form(FormKind.SYMBOL, start, end, _SYMBOL_ESCAPE_RE.sub(r'\1', raw))


class Reader:
    """Incremental reader over one document.

    Example:
        reader = Reader("(foo) (bar)")
        for form in reader:
            ...
    """

    def __init__(self, text: str):
        """Initialize the reader with its cursor at the start of ``text``.

        Args:
            text: Complete source text of one document
        """
        self.text = text
        self.pos = 0

    def __iter__(self) -> Iterator[Form]:
        while True:
            form = self.read_form()
            if form is END_OF_INPUT:
                return
            yield form

    def read_form(self) -> Union[Form, _EndOfInput]:
        """Read the next top-level form.

        Returns:
            The form, with ``symbols`` populated, or END_OF_INPUT when the
            document has no further complete form

        Raises:
            MalformedInputError: If the text at the cursor cannot be read
        """
        text = self.text
        n = len(text)
        stack: List[Union[_OpenList, _OpenPrefix]] = []
        symbols: Set[str] = set()

        while True:
            pos = _BLANK_RE.match(text, self.pos).end()
            if pos >= n:
                # Clean end, or end inside an unfinished form
                self.pos = n
                return END_OF_INPUT

            ch = text[pos]
            form: Optional[Form] = None

            if ch == '(' or ch == '[':
                kind = FormKind.LIST if ch == '(' else FormKind.VECTOR
                stack.append(_OpenList(pos, ')' if ch == '(' else ']', kind))
                self.pos = pos + 1
                continue

            if ch == ')' or ch == ']':
                form = self._close(stack, ch, pos)
                self.pos = pos + 1
            elif ch in "'`,":
                prefix = ',@' if text.startswith(',@', pos) else ch
                stack.append(_OpenPrefix(pos, FormKind.QUOTED, QUOTE_HEADS[prefix]))
                self.pos = pos + len(prefix)
                continue
            elif ch == '"':
                match = _STRING_RE.match(text, pos)
                if match is None:
                    raise MalformedInputError("unterminated string", pos)
                self.pos = match.end()
                form = Form(FormKind.STRING, pos, self.pos, decode_string(text[pos + 1:self.pos - 1]))
            elif ch == '?':
                self.pos = self._scan_character(pos)
                form = Form(FormKind.NUMBER, pos, self.pos, _character_value(text[pos + 1:self.pos]))
            elif ch == '#':
                form = self._read_dispatch(stack, pos)
                if form is None:
                    continue
            else:
                match = _TOKEN_RE.match(text, pos)
                if match is None:
                    # Only a lone backslash at the very end gets here
                    raise MalformedInputError("end of input after backslash", pos)
                self.pos = match.end()
                raw = match.group()
                if raw == '.':
                    self._dot(stack, pos)
                    continue
                form = _atom_from_token(raw, pos, self.pos)

            if form.kind is FormKind.SYMBOL:
                symbols.add(form.value)

            # Hand the finished form to whatever encloses it
            while True:
                if not stack:
                    form.symbols = frozenset(symbols)
                    return form
                top = stack[-1]
                if isinstance(top, _OpenPrefix):
                    stack.pop()
                    form = Form(top.kind, top.start, form.end, top.head, (form,))
                    continue
                if top.dot_state == _HAVE_TAIL:
                    raise MalformedInputError("more than one form after '.'", form.start)
                top.items.append(form)
                if top.dot_state == _EXPECT_TAIL:
                    top.dot_state = _HAVE_TAIL
                break

    def _close(self, stack, ch: str, pos: int) -> Form:
        if not stack or not isinstance(stack[-1], _OpenList):
            raise MalformedInputError(f"unexpected '{ch}'", pos)
        frame = stack[-1]
        if ch != frame.close:
            raise MalformedInputError(f"'{ch}' does not match '{frame.close}'", pos)
        if frame.dot_state == _EXPECT_TAIL:
            raise MalformedInputError("missing form after '.'", pos)
        stack.pop()
        kind = FormKind.IMPROPER_LIST if frame.dot_state == _HAVE_TAIL else frame.kind
        return Form(kind, frame.start, pos + 1, None, tuple(frame.items))

    def _dot(self, stack, pos: int):
        frame = stack[-1] if stack else None
        if (not isinstance(frame, _OpenList) or frame.kind is not FormKind.LIST
                or not frame.items or frame.dot_state != _NO_DOT):
            raise MalformedInputError("unexpected '.'", pos)
        frame.dot_state = _EXPECT_TAIL

    def _scan_character(self, pos: int) -> int:
        """Return the end offset of the character literal starting at ``pos``."""
        text = self.text
        n = len(text)
        i = pos + 1
        while True:
            if i >= n:
                raise MalformedInputError("end of input in character literal", pos)
            if text[i] != '\\':
                return i + 1
            i += 1
            if i >= n:
                raise MalformedInputError("end of input in character literal", pos)
            esc = text[i]
            if esc in 'CMSHsA' and text.startswith('-', i + 1):
                i += 2
                continue
            if esc == '^':
                i += 1
                continue
            if esc == 'N' and text.startswith('{', i + 1):
                close = text.find('}', i)
                if close == -1:
                    raise MalformedInputError("unterminated character name", pos)
                return close + 1
            if esc in 'xuU':
                return _HEX_DIGITS_RE.match(text, i + 1).end()
            if esc in '01234567':
                return _OCTAL_DIGITS_RE.match(text, i + 1).end()
            return i + 1

    def _read_dispatch(self, stack, pos: int) -> Optional[Form]:
        """Read ``#`` syntax at ``pos``.

        Returns:
            A finished form, or None when an opening frame was pushed
        """
        text = self.text
        nxt = text[pos + 1:pos + 2]

        if nxt == "'":
            stack.append(_OpenPrefix(pos, FormKind.SHARP_QUOTED, QUOTE_HEADS["#'"]))
            self.pos = pos + 2
            return None
        if nxt == '(' or nxt == '[':
            # Propertized strings and byte-code objects are literal data
            stack.append(_OpenList(pos, ')' if nxt == '(' else ']', FormKind.VECTOR))
            self.pos = pos + 2
            return None
        if nxt == 's' and text.startswith('(', pos + 2):
            stack.append(_OpenList(pos, ')', FormKind.VECTOR))
            self.pos = pos + 3
            return None
        if nxt == '#':
            self.pos = pos + 2
            return Form(FormKind.SYMBOL, pos, self.pos, '')
        if nxt == ':' or nxt == '_':
            match = _TOKEN_RE.match(text, pos + 2)
            self.pos = match.end() if match else pos + 2
            name = _SYMBOL_ESCAPE_RE.sub(r'\1', text[pos + 2:self.pos])
            return Form(FormKind.SYMBOL, pos, self.pos, name)

        if nxt and nxt.lower() in _RADIX_BASES:
            base = _RADIX_BASES[nxt.lower()]
            digits_at = pos + 2
        else:
            radix = _RADIX_RE.match(text, pos + 1)
            if radix is None:
                if not nxt:
                    raise MalformedInputError("end of input after '#'", pos)
                raise MalformedInputError(f"invalid read syntax '#{nxt}'", pos)
            digits = radix.group(1).lstrip('0') or '0'
            base = int(digits) if len(digits) <= 2 else 0
            if not 2 <= base <= 36:
                raise MalformedInputError(f"invalid radix {digits[:20]}", pos)
            digits_at = radix.end()

        match = _TOKEN_RE.match(text, digits_at)
        if match is None:
            raise MalformedInputError("missing digits in radix integer", pos)
        try:
            value = parse_integer(match.group(), base)
        except ValueError:
            raise MalformedInputError(f"invalid base-{base} integer", pos) from None
        self.pos = match.end()
        return Form(FormKind.NUMBER, pos, self.pos, value)


def read(text: str) -> List[Form]:
    """Read every complete top-level form of ``text``.

    Args:
        text: Source text of one document

    Returns:
        Top-level forms in document order

    Raises:
        MalformedInputError: If the text cannot be read
    """
    return list(Reader(text))
