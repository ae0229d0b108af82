"""Tests for the reference predicates and the classification check."""

import pytest

from sexprefs.analyzer.matcher import walk
from sexprefs.analyzer.oracle import (
    SearchError,
    StaticOracle,
    SymbolKindMismatch,
    UnknownSymbolClassification,
)
from sexprefs.analyzer.predicates import (
    ReferenceKind,
    build_predicate,
    check_classification,
    is_call,
    is_variable_reference,
)
from sexprefs.analyzer.reader import read


@pytest.fixture
def oracle():
    """Oracle knowing one name of every kind."""
    return StaticOracle(
        functions=['foo'],
        macros=['when-let'],
        special_forms=['if'],
        variables=['count'],
    )


def matched_text(text, predicate):
    found = []
    for top in read(text):
        found.extend(text[f.start:f.end] for f, _path in walk(top, predicate))
    return found


def calls(text, symbol='foo'):
    return matched_text(text, lambda form, path: is_call(form, path, symbol))


def variables(text, symbol='x'):
    return matched_text(text, lambda form, path: is_variable_reference(form, path, symbol))


class TestIsCall:
    """Call sites versus call-shaped binders."""

    def test_direct_call(self):
        assert calls("(progn (foo 1 2))") == ["(foo 1 2)"]

    def test_apply_sharp_quoted(self):
        assert calls("(apply #'foo args)") == ["(apply #'foo args)"]

    def test_funcall_of_other_symbol(self):
        assert calls("(funcall 'bar)") == []

    def test_function_value_in_variable_not_followed(self):
        assert calls("(funcall fn)") == []

    def test_lambda_and_cl_defun_arglists(self):
        assert calls("(lambda (foo) nil) (cl-defun g (foo) nil)") == []

    def test_let_binding_spec_named_like_symbol(self):
        assert calls("(let ((foo 1)) (foo))") == ["(foo)"]

    def test_empty_let_binding_list(self):
        assert calls("(let (foo) (foo))") == ["(foo)"]

    def test_other_symbol_head(self):
        assert calls("(foobar)") == []

    def test_written_out_quote_is_data(self):
        assert calls("(list (quote (foo)) (function (foo)))") == []

    def test_funcall_of_written_out_quote(self):
        assert calls("(funcall (quote foo)) (apply (function foo) args)") == [
            "(funcall (quote foo))", "(apply (function foo) args)",
        ]


class TestIsVariableReference:
    """Variable uses versus parameter and let-bound names."""

    def test_plain_use(self):
        assert variables("(+ x 1)") == ["x"]

    def test_parameter_names_excluded(self):
        assert variables("(defun f (x) x)") == ["x"]
        assert variables("(lambda (a x) (list x))") == ["x"]

    def test_let_names_excluded(self):
        assert variables("(let ((x 1) y) x)") == ["x"]
        assert variables("(let* (x) x)") == ["x"]

    def test_binding_value_is_a_reference(self):
        assert variables("(let ((y x)) y)") == ["x"]

    def test_quoted_symbol_not_a_reference(self):
        assert variables("(list 'x #'x)") == []
        assert variables("(list (quote x) (function x))") == []

    def test_head_position_counts(self):
        assert variables("(x 1)") == ["x"]


class TestClassification:
    """The oracle must agree with the requested call kind."""

    def test_known_kinds_pass(self, oracle):
        check_classification(ReferenceKind.FUNCTION, 'foo', oracle)
        check_classification(ReferenceKind.MACRO, 'when-let', oracle)
        check_classification(ReferenceKind.SPECIAL, 'if', oracle)

    def test_unknown_symbol(self, oracle):
        with pytest.raises(UnknownSymbolClassification) as excinfo:
            check_classification(ReferenceKind.FUNCTION, 'mystery', oracle)
        assert excinfo.value.symbol == 'mystery'

    def test_missing_oracle_is_unknown(self):
        with pytest.raises(UnknownSymbolClassification):
            build_predicate(ReferenceKind.MACRO, 'foo')

    def test_kind_mismatch(self, oracle):
        with pytest.raises(SymbolKindMismatch):
            check_classification(ReferenceKind.MACRO, 'foo', oracle)

    def test_variable_and_symbol_need_no_oracle(self):
        check_classification(ReferenceKind.VARIABLE, 'anything', None)
        check_classification(ReferenceKind.SYMBOL, 'anything', None)

    def test_errors_share_a_base(self, oracle):
        with pytest.raises(SearchError):
            build_predicate('function', 'count', oracle)


class TestBuildPredicate:
    """Predicates per kind."""

    def test_symbol_predicate_takes_form_only(self):
        predicate = build_predicate(ReferenceKind.SYMBOL, 'foo')
        top = read("foo")[0]
        assert predicate(top)

    def test_call_predicate(self, oracle):
        predicate = build_predicate(ReferenceKind.FUNCTION, 'foo', oracle)
        top = read("(foo)")[0]
        assert predicate(top, ())

    def test_kind_given_as_string(self):
        predicate = build_predicate('variable', 'x')
        assert predicate(read("x")[0], ())
