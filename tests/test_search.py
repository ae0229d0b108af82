"""Tests for ReferenceSearch and the result aggregator."""

import pytest

from sexprefs.analyzer.forms import SourceUnit
from sexprefs.analyzer.oracle import StaticOracle, SymbolKindMismatch, UnknownSymbolClassification
from sexprefs.analyzer.predicates import ReferenceKind
from sexprefs.analyzer.reader import MalformedInputError
from sexprefs.analyzer.search import (
    DocumentError,
    Match,
    ReferenceSearch,
    SkippedDocument,
    find_references,
    merge,
)


@pytest.fixture
def oracle():
    return StaticOracle(functions=['foo'], macros=['with-foo'])


@pytest.fixture
def units():
    """Three documents: two with calls, one without."""
    return [
        SourceUnit('a.el', "(foo)\n(bar (foo))"),
        SourceUnit('b.el', "(bar)"),
        SourceUnit('c.el', "(defun baz ()\n  (foo 1))"),
    ]


class TestMatch:
    """Match positions are 1-based and end-exclusive."""

    def test_text_and_line(self, oracle):
        unit = SourceUnit('c.el', "(defun baz ()\n  (foo 1))")
        result = find_references([unit], 'foo', ReferenceKind.FUNCTION, oracle)
        match = result.matches[unit][0]
        assert (match.start, match.end) == (17, 24)
        assert match.text == "(foo 1)"
        assert match.line == 2

    def test_equality_ignores_unit_identity(self):
        form_unit = SourceUnit('x.el', "(foo)")
        search = ReferenceSearch('foo', ReferenceKind.SYMBOL)
        first = search.search_unit(form_unit).matches[0]
        again = Match(first.form, first.start, first.end, SourceUnit('x.el', "(foo)"))
        assert first == again


class TestAggregation:
    """Per-document results merged in document order."""

    def test_documents_without_matches_are_omitted(self, units, oracle):
        result = find_references(units, 'foo', ReferenceKind.FUNCTION, oracle)
        assert [unit.identifier for unit, _found in result] == ['a.el', 'c.el']
        assert result.match_count == 3
        assert result.document_count == 2
        assert result.documents_scanned == 3

    def test_matches_in_document_order(self, units, oracle):
        result = find_references(units, 'foo', ReferenceKind.FUNCTION, oracle)
        assert [m.text for m in result.matches[units[0]]] == ["(foo)", "(foo)"]
        assert [m.start for m in result.matches[units[0]]] == [1, 12]

    def test_empty_corpus(self):
        result = find_references([], 'foo')
        assert result.match_count == 0
        assert result.document_count == 0
        assert result.documents_scanned == 0
        assert result.errors == []

    def test_merge_counts_skipped_and_failed_documents(self):
        error = DocumentError('gone.el', OSError("no such file"))
        result = merge([SkippedDocument('skipped.el'), error])
        assert result.documents_scanned == 2
        assert result.errors == [error]
        assert result.matches == {}


class TestMalformedDocuments:
    """A malformed document is reported and the search continues."""

    def test_error_reported_and_corpus_continues(self, oracle):
        broken = SourceUnit('broken.el', "(foo)\n)\n(foo)")
        fine = SourceUnit('fine.el', "(foo)")
        result = find_references([broken, fine], 'foo', ReferenceKind.FUNCTION, oracle)

        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.identifier == 'broken.el'
        assert isinstance(error.error, MalformedInputError)
        assert error.offset == 6

        # Matches read before the error are kept
        assert len(result.matches[broken]) == 1
        assert len(result.matches[fine]) == 1
        assert result.documents_scanned == 2

    def test_malformed_outcome_has_no_symbol_set(self):
        outcome = ReferenceSearch('foo').search_unit(SourceUnit('x.el', "(foo) ]"))
        assert outcome.error is not None
        assert outcome.symbols is None

    def test_clean_outcome_collects_symbols(self):
        outcome = ReferenceSearch('foo').search_unit(SourceUnit('x.el', "(a b) 'c"))
        assert outcome.error is None
        assert outcome.symbols == {'a', 'b', 'c'}

    def test_unclosed_final_form_is_not_an_error(self, oracle):
        unit = SourceUnit('x.el', "(foo)\n(defun half (")
        result = find_references([unit], 'foo', ReferenceKind.FUNCTION, oracle)
        assert result.errors == []
        assert result.match_count == 1

    def test_bignum_literal_does_not_fail_document(self):
        big = SourceUnit('big.el', "(defconst big " + "1" * 5000 + ")\n(foo)")
        other = SourceUnit('other.el', "(foo)")
        result = find_references([big, other], 'foo', ReferenceKind.SYMBOL)
        assert result.errors == []
        assert [unit.identifier for unit, _found in result] == ['big.el', 'other.el']
        assert result.match_count == 2

    def test_script_with_interpreter_line(self, oracle):
        unit = SourceUnit('script.el', "#!/usr/bin/env -S emacs --script\n(foo)\n")
        result = find_references([unit], 'foo', ReferenceKind.FUNCTION, oracle)
        assert result.errors == []
        assert [(m.start, m.end) for m in result.matches[unit]] == [(34, 39)]


class TestPrefilter:
    """Skipping forms by occurrence set never changes the result."""

    @pytest.mark.parametrize("kind", [ReferenceKind.FUNCTION, ReferenceKind.VARIABLE, ReferenceKind.SYMBOL])
    def test_prefilter_is_transparent(self, units, oracle, kind):
        with_filter = ReferenceSearch('foo', kind, oracle, prefilter=True).run(units)
        without = ReferenceSearch('foo', kind, oracle, prefilter=False).run(units)
        def spans(result):
            return [(u.identifier, [(m.start, m.end) for m in found]) for u, found in result]

        assert spans(with_filter) == spans(without)

    def test_form_without_symbol_is_skipped(self):
        search = ReferenceSearch('foo')
        unit = SourceUnit('x.el', "(bar (baz))")
        outcome = search.search_unit(unit)
        assert outcome.matches == []


class TestOracleErrors:
    """Classification failures abort the search before any document is read."""

    def test_unknown_symbol(self, oracle):
        with pytest.raises(UnknownSymbolClassification):
            ReferenceSearch('mystery', ReferenceKind.FUNCTION, oracle)

    def test_wrong_kind(self, oracle):
        with pytest.raises(SymbolKindMismatch):
            ReferenceSearch('with-foo', ReferenceKind.FUNCTION, oracle)

    def test_macro_search(self, oracle):
        unit = SourceUnit('m.el', "(with-foo (foo))")
        result = find_references([unit], 'with-foo', ReferenceKind.MACRO, oracle)
        assert [m.text for m in result.matches[unit]] == ["(with-foo (foo))"]


class TestIterOutcomes:
    """Lazy per-document outcomes."""

    def test_passes_through_non_units(self):
        search = ReferenceSearch('foo')
        skipped = SkippedDocument('s.el')
        error = DocumentError('e.el', OSError("denied"))
        outcomes = list(search.iter_outcomes([skipped, error]))
        assert outcomes == [skipped, error]

    def test_caller_can_stop_early(self):
        search = ReferenceSearch('foo')
        outcomes = search.iter_outcomes(SourceUnit(f'{i}.el', "(foo)") for i in range(1000))
        first = next(outcomes)
        assert first.unit.identifier == '0.el'
        assert len(first.matches) == 1
