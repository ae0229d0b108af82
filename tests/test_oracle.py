"""Tests for the classification oracles."""

import json
from pathlib import Path

import pytest

from sexprefs.analyzer.forms import SourceUnit
from sexprefs.analyzer.oracle import ChainOracle, DefinitionOracle, StaticOracle


FIXTURES_DIR = Path(__file__).parent / 'fixtures' / 'elisp'


class TestStaticOracle:
    """Answers are True, False (known as something else) or None (unknown)."""

    def test_three_valued_answers(self):
        oracle = StaticOracle(functions=['f'], macros=['m'])
        assert oracle.is_function('f') is True
        assert oracle.is_macro('f') is False
        assert oracle.is_function('m') is False
        assert oracle.is_function('unknown') is None
        assert oracle.is_variable('unknown') is None

    def test_from_json(self, tmp_path):
        path = tmp_path / 'oracle.json'
        path.write_text(json.dumps({'functions': ['f'], 'special_forms': ['if']}))
        oracle = StaticOracle.from_json(path)
        assert oracle.is_function('f') is True
        assert oracle.is_special_form('if') is True
        assert oracle.macros == set()

    @pytest.mark.parametrize("content", [
        '[]',
        '{"functions": "f"}',
        '{"macros": [1, 2]}',
    ])
    def test_from_json_rejects_bad_shape(self, tmp_path, content):
        path = tmp_path / 'oracle.json'
        path.write_text(content)
        with pytest.raises(ValueError):
            StaticOracle.from_json(path)


class TestDefinitionOracle:
    """Classification harvested from defining forms."""

    def test_definers(self):
        unit = SourceUnit('defs.el', """
(defun f1 () nil)
(defsubst f2 () nil)
(cl-defun f3 (&key a) a)
(defmacro m1 (x) x)
(defvar v1 nil)
(defcustom v2 t "Doc." :type 'boolean)
(defalias 'f4 #'f1)
(defvaralias 'v3 'v1)
""")
        oracle = DefinitionOracle()
        assert oracle.add_definitions(unit) == 8
        assert oracle.functions == {'f1', 'f2', 'f3', 'f4'}
        assert oracle.macros == {'m1'}
        assert oracle.variables == {'v1', 'v2', 'v3'}

    def test_special_forms_always_known(self):
        oracle = DefinitionOracle()
        assert oracle.is_special_form('if') is True
        assert oracle.is_special_form('let*') is True
        assert oracle.is_function('if') is False

    def test_nested_definitions_found(self):
        unit = SourceUnit('nested.el', "(eval-and-compile (defun inner () 1))")
        oracle = DefinitionOracle.from_units([unit])
        assert oracle.is_function('inner') is True

    def test_definitions_inside_definitions_found(self):
        unit = SourceUnit('inner.el', "(defun outer ()\n  (defun inner () 1)\n  (defvar inner-var nil))")
        oracle = DefinitionOracle()
        assert oracle.add_definitions(unit) == 3
        assert oracle.functions == {'outer', 'inner'}
        assert oracle.is_variable('inner-var') is True

    def test_quoted_definitions_ignored(self):
        unit = SourceUnit('data.el', "(setq forms '((defun not-real () nil)))")
        oracle = DefinitionOracle.from_units([unit])
        assert oracle.is_function('not-real') is None

    def test_malformed_document_keeps_earlier_definitions(self):
        unit = SourceUnit('broken.el', "(defun early () nil)\n)\n(defun late () nil)")
        oracle = DefinitionOracle.from_units([unit])
        assert oracle.is_function('early') is True
        assert oracle.is_function('late') is None
        assert [identifier for identifier, _e in oracle.errors] == ['broken.el']

    def test_fixture_corpus(self):
        units = [
            SourceUnit(str(path), path.read_text(encoding='utf-8'))
            for path in sorted(FIXTURES_DIR.rglob('*.el'))
        ]
        oracle = DefinitionOracle.from_units(units)
        assert oracle.is_function('greet') is True
        assert oracle.is_macro('with-greeting') is True
        assert oracle.is_variable('greeting-prefix') is True


class TestChainOracle:
    """The first definite answer wins."""

    def test_first_definite_answer(self):
        explicit = StaticOracle(macros=['thing'])
        harvested = StaticOracle(functions=['thing', 'other'])
        chain = ChainOracle(explicit, harvested)
        assert chain.is_macro('thing') is True
        assert chain.is_function('thing') is False
        assert chain.is_function('other') is True
        assert chain.is_function('missing') is None

    def test_empty_chain_knows_nothing(self):
        assert ChainOracle().is_variable('x') is None
