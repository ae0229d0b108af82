"""Reference search over a corpus of source units.

Each document is read one top-level form at a time. A form whose occurrence
set lacks the target symbol is skipped without being walked; the others go
through the path-aware matcher (call and variable searches) or the
leaf-symbol walker (symbol searches). Per-document outcomes are merged into
an ordered SearchResult.

A malformed document is reported as a DocumentError and the search moves on;
matches already found, in that document or earlier ones, are kept.
"""
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Union

from .forms import Form, SourceUnit
from .matcher import walk, walk_symbols
from .oracle import ClassificationOracle
from .predicates import ReferenceKind, build_predicate
from .reader import MalformedInputError, Reader


@dataclass(frozen=True)
class Match:
    """A reference found in a source unit.

    ``start`` and ``end`` are 1-based, end-exclusive character positions,
    as an editor counts buffer positions: the matched text is
    ``unit.text[start - 1:end - 1]``.
    """
    form: Form = field(repr=False)
    start: int
    end: int
    unit: SourceUnit = field(repr=False, compare=False)

    @classmethod
    def from_form(cls, form: Form, unit: SourceUnit) -> 'Match':
        return cls(form, form.start + 1, form.end + 1, unit)

    @property
    def text(self) -> str:
        """Exact surface syntax of the matched form."""
        return self.unit.text[self.start - 1:self.end - 1]

    @property
    def line(self) -> int:
        """1-based line number where the match starts."""
        return self.unit.text.count('\n', 0, self.start - 1) + 1


@dataclass
class DocumentError:
    """A document that could not be searched to the end."""
    identifier: str
    error: Exception
    unit: Optional[SourceUnit] = field(default=None, repr=False)

    @property
    def offset(self) -> Optional[int]:
        return getattr(self.error, 'offset', None)

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass
class DocumentOutcome:
    """Everything a search learned about one document."""
    unit: SourceUnit
    matches: List[Match] = field(default_factory=list)
    error: Optional[DocumentError] = None
    # Union of the top-level occurrence sets; None when reading failed
    symbols: Optional[FrozenSet[str]] = None


@dataclass
class SkippedDocument:
    """A document left unread because it cannot mention the symbol."""
    identifier: str


@dataclass
class SearchResult:
    """Ordered report of a search.

    ``matches`` maps each document with at least one match to its matches,
    in the order documents were supplied.
    """
    matches: Dict[SourceUnit, List[Match]] = field(default_factory=dict)
    errors: List[DocumentError] = field(default_factory=list)
    documents_scanned: int = 0

    @property
    def match_count(self) -> int:
        return sum(len(found) for found in self.matches.values())

    @property
    def document_count(self) -> int:
        return len(self.matches)

    def __iter__(self):
        return iter(self.matches.items())


Document = Union[SourceUnit, DocumentError, SkippedDocument]
Outcome = Union[DocumentOutcome, DocumentError, SkippedDocument]


def merge(outcomes: Iterable[Outcome]) -> SearchResult:
    """Merge per-document outcomes into a SearchResult.

    Document order is preserved; documents without matches are counted as
    scanned but left out of ``matches``. A bare DocumentError stands for a
    document that could not even be loaded, a SkippedDocument for one the
    occurrence cache ruled out.
    """
    result = SearchResult()
    for outcome in outcomes:
        result.documents_scanned += 1
        if isinstance(outcome, SkippedDocument):
            continue
        if isinstance(outcome, DocumentError):
            result.errors.append(outcome)
            continue
        if outcome.matches:
            result.matches[outcome.unit] = outcome.matches
        if outcome.error is not None:
            result.errors.append(outcome.error)
    return result


class ReferenceSearch:
    """Search for references to one symbol.

    Example:
        search = ReferenceSearch('foo', ReferenceKind.FUNCTION, oracle)
        result = search.run(units)
    """

    def __init__(self, symbol: str, kind: ReferenceKind | str = ReferenceKind.SYMBOL,
                 oracle: Optional[ClassificationOracle] = None, prefilter: bool = True):
        """Prepare a search.

        Args:
            symbol: Symbol name to look for
            kind: Kind of reference; call kinds need the oracle to confirm
                the symbol's classification
            oracle: Classification oracle
            prefilter: Skip top-level forms whose occurrence set lacks the
                symbol (never changes results)

        Raises:
            UnknownSymbolClassification: If the oracle cannot classify the
                symbol for a call search
            SymbolKindMismatch: If the oracle classifies it as another kind
        """
        self.symbol = symbol
        self.kind = ReferenceKind(kind)
        self.prefilter = prefilter
        self.predicate = build_predicate(self.kind, symbol, oracle)

    def find_in_form(self, form: Form) -> List[Form]:
        """Return the matching subforms of one top-level form, in order."""
        if self.prefilter and form.symbols is not None and self.symbol not in form.symbols:
            return []
        if self.kind is ReferenceKind.SYMBOL:
            return walk_symbols(form, self.predicate)
        return [found for found, _path in walk(form, self.predicate)]

    def search_unit(self, unit: SourceUnit) -> DocumentOutcome:
        """Search a single document.

        Forms are read and searched one at a time, so only one top-level
        form tree is alive at any moment.
        """
        outcome = DocumentOutcome(unit)
        seen = set()
        try:
            for form in Reader(unit.text):
                seen.update(form.symbols)
                outcome.matches.extend(
                    Match.from_form(found, unit) for found in self.find_in_form(form)
                )
        except MalformedInputError as e:
            outcome.error = DocumentError(unit.identifier, e, unit)
        else:
            outcome.symbols = frozenset(seen)
        return outcome

    def iter_outcomes(self, units: Iterable[Document]) -> Iterator[Outcome]:
        """Yield one outcome per document, in order.

        The caller may stop at any point; outcomes already yielded are
        final. DocumentErrors (documents that failed to load) and
        SkippedDocuments in ``units`` are passed through.
        """
        for unit in units:
            if isinstance(unit, SourceUnit):
                yield self.search_unit(unit)
            else:
                yield unit

    def run(self, units: Iterable[Document]) -> SearchResult:
        """Search every unit and merge the outcomes."""
        return merge(self.iter_outcomes(units))


def find_references(units: Iterable[SourceUnit], symbol: str,
                    kind: ReferenceKind | str = ReferenceKind.SYMBOL,
                    oracle: Optional[ClassificationOracle] = None) -> SearchResult:
    """Find references to ``symbol`` in ``units``.

    Shorthand for ``ReferenceSearch(symbol, kind, oracle).run(units)``.
    """
    return ReferenceSearch(symbol, kind, oracle).run(units)
