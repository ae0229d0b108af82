"""Syntax tree nodes and source units produced by the positional reader."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, FrozenSet, Iterable, Iterator, NamedTuple, Optional, Tuple


class FormKind(str, Enum):
    """Kinds of parsed forms."""
    SYMBOL = 'symbol'
    NUMBER = 'number'
    STRING = 'string'
    LIST = 'list'
    IMPROPER_LIST = 'improper-list'
    QUOTED = 'quoted'
    SHARP_QUOTED = 'sharp-quoted'
    VECTOR = 'vector'


ATOM_KINDS = frozenset({FormKind.SYMBOL, FormKind.NUMBER, FormKind.STRING})

# Reader macro prefixes and the head symbol each one expands to
QUOTE_HEADS = {
    "'": 'quote',
    '`': '`',
    ',': ',',
    ',@': ',@',
    "#'": 'function',
}


@dataclass(frozen=True, eq=False)
class SourceUnit:
    """One document of the corpus: an identifier (usually a path) and its text."""
    identifier: str
    text: str = field(repr=False)


@dataclass(eq=False)
class Form:
    """A parsed form with its offsets into the source text.

    ``text[start:end]`` reproduces the exact surface syntax of the form,
    including comments and whitespace inside lists.
    """
    kind: FormKind
    start: int
    end: int
    value: Any = None  # atom payload, or the expansion head for quote kinds
    children: Tuple['Form', ...] = ()
    symbols: Optional[FrozenSet[str]] = None  # only set on top-level forms

    @property
    def is_atom(self) -> bool:
        return self.kind in ATOM_KINDS

    def is_symbol(self, name: str) -> bool:
        """Return True if this form is the symbol ``name``."""
        return self.kind is FormKind.SYMBOL and self.value == name

    @property
    def head_symbol(self) -> Optional[str]:
        """Head symbol as seen from a child's position.

        For lists this is the first element when it is a symbol. Quote
        wrappers report the symbol they expand to, so ``'x`` looks like
        ``(quote x)`` to a walker. Anything else has no head.
        """
        if self.kind is FormKind.LIST:
            if self.children and self.children[0].kind is FormKind.SYMBOL:
                return self.children[0].value
            return None
        if self.kind in (FormKind.QUOTED, FormKind.SHARP_QUOTED):
            return self.value
        return None

    def source(self, text: str) -> str:
        """Slice this form's surface syntax out of ``text``."""
        return text[self.start:self.end]


class AncestorFrame(NamedTuple):
    """One level of enclosure: the enclosing form's head and the child index."""
    head: Optional[str]
    index: int


class PathStack:
    """Enclosing frames of a form, innermost first.

    Stored as a linked chain: extending a path with ``push`` shares the
    parent's frames, so building a child's path costs the same at any
    depth. Indexing, ``len`` and iteration behave like a tuple of frames,
    and a path compares equal to the tuple holding the same frames.
    """
    __slots__ = ('frame', 'parent', 'depth')

    def __init__(self, frame: Optional[AncestorFrame] = None,
                 parent: Optional['PathStack'] = None):
        self.frame = frame
        self.parent = parent
        self.depth = 0 if parent is None else parent.depth + 1

    @classmethod
    def of(cls, frames: Iterable[AncestorFrame] = ()) -> 'PathStack':
        """Build a path from frames listed innermost first."""
        path = EMPTY_PATH
        for frame in reversed(tuple(frames)):
            path = path.push(frame)
        return path

    def push(self, frame: AncestorFrame) -> 'PathStack':
        """Return this path extended by one inner frame."""
        return PathStack(frame, self)

    def __len__(self) -> int:
        return self.depth

    def __bool__(self) -> bool:
        return self.depth > 0

    def __getitem__(self, index: int) -> AncestorFrame:
        if index < 0:
            index += self.depth
        if not 0 <= index < self.depth:
            raise IndexError("path index out of range")
        node = self
        for _ in range(index):
            node = node.parent
        return node.frame

    def __iter__(self) -> Iterator[AncestorFrame]:
        node = self
        while node.depth:
            yield node.frame
            node = node.parent

    def __eq__(self, other) -> bool:
        if isinstance(other, (PathStack, tuple)):
            return len(self) == len(other) and tuple(self) == tuple(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(self))

    def __repr__(self) -> str:
        return f"PathStack({tuple(self)!r})"


EMPTY_PATH = PathStack()
