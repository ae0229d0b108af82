"""Symbol classification oracles.

The matcher never decides on its own whether a symbol names a function, a
macro or a special form. That knowledge comes from an oracle: any object
with ``is_function``, ``is_macro``, ``is_special_form`` and ``is_variable``
methods answering True, False, or None when the symbol is unknown.

Oracles provided here:

- StaticOracle: answers from explicit sets (optionally loaded from JSON)
- DefinitionOracle: sets harvested from defining forms found in a corpus,
  plus the Emacs special forms
- ChainOracle: asks several oracles in turn
"""
import json
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Set, Tuple

from .forms import Form, FormKind, PathStack, SourceUnit
from .matcher import walk
from .reader import MalformedInputError, Reader


class SearchError(Exception):
    """Base class for errors surfaced to the caller of a search."""


class UnknownSymbolClassification(SearchError, LookupError):
    """Raised when the oracle cannot classify the target symbol."""

    def __init__(self, symbol: str, kind: str):
        super().__init__(f"cannot classify '{symbol}': unknown whether it is a {kind}")
        self.symbol = symbol
        self.kind = kind


class SymbolKindMismatch(SearchError, ValueError):
    """Raised when the oracle knows the symbol but not as the requested kind."""

    def __init__(self, symbol: str, kind: str):
        super().__init__(f"'{symbol}' is not a {kind}")
        self.symbol = symbol
        self.kind = kind


class ClassificationOracle(Protocol):
    """Interface of a symbol classification oracle."""

    def is_function(self, symbol: str) -> Optional[bool]: ...

    def is_macro(self, symbol: str) -> Optional[bool]: ...

    def is_special_form(self, symbol: str) -> Optional[bool]: ...

    def is_variable(self, symbol: str) -> Optional[bool]: ...


# Special forms of Emacs Lisp (special-form-p)
EMACS_SPECIAL_FORMS = frozenset({
    'and', 'catch', 'cond', 'condition-case', 'defconst', 'defvar',
    'function', 'if', 'interactive', 'let', 'let*', 'or', 'prog1', 'prog2',
    'progn', 'quote', 'save-current-buffer', 'save-excursion',
    'save-restriction', 'setq', 'setq-default', 'unwind-protect', 'while',
})

FUNCTION_DEFINERS = frozenset({
    'defun', 'defsubst', 'cl-defun', 'cl-defsubst', 'cl-defgeneric',
    'cl-defmethod', 'define-inline', 'define-minor-mode',
    'define-globalized-minor-mode', 'define-derived-mode',
})
MACRO_DEFINERS = frozenset({'defmacro', 'cl-defmacro'})
VARIABLE_DEFINERS = frozenset({
    'defvar', 'defvar-local', 'defcustom', 'defconst', 'define-minor-mode',
})
# Definers taking a quoted name: (defalias 'foo ...)
QUOTED_FUNCTION_DEFINERS = frozenset({'defalias', 'fset'})
QUOTED_VARIABLE_DEFINERS = frozenset({'defvaralias'})

_ALL_DEFINERS = (FUNCTION_DEFINERS | MACRO_DEFINERS | VARIABLE_DEFINERS
                 | QUOTED_FUNCTION_DEFINERS | QUOTED_VARIABLE_DEFINERS)


class StaticOracle:
    """Oracle backed by fixed sets of names."""

    def __init__(self, functions: Iterable[str] = (), macros: Iterable[str] = (),
                 special_forms: Iterable[str] = (), variables: Iterable[str] = ()):
        self.functions: Set[str] = set(functions)
        self.macros: Set[str] = set(macros)
        self.special_forms: Set[str] = set(special_forms)
        self.variables: Set[str] = set(variables)

    def _answer(self, names: Set[str], symbol: str) -> Optional[bool]:
        if symbol in names:
            return True
        if (symbol in self.functions or symbol in self.macros
                or symbol in self.special_forms or symbol in self.variables):
            return False
        return None

    def is_function(self, symbol: str) -> Optional[bool]:
        return self._answer(self.functions, symbol)

    def is_macro(self, symbol: str) -> Optional[bool]:
        return self._answer(self.macros, symbol)

    def is_special_form(self, symbol: str) -> Optional[bool]:
        return self._answer(self.special_forms, symbol)

    def is_variable(self, symbol: str) -> Optional[bool]:
        return self._answer(self.variables, symbol)

    @classmethod
    def from_json(cls, json_path: str | Path) -> 'StaticOracle':
        """Load an oracle from a JSON file.

        Expected shape::

            {"functions": [...], "macros": [...],
             "special_forms": [...], "variables": [...]}

        Raises:
            ValueError: If the file is not a JSON object of string lists
        """
        with open(json_path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"{json_path}: expected a JSON object, got {type(data).__name__}")

        groups = {}
        for key in ('functions', 'macros', 'special_forms', 'variables'):
            names = data.get(key, [])
            if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
                raise ValueError(f"{json_path}: '{key}' must be a list of strings")
            groups[key] = names
        return cls(**groups)


def _defined_name(form: Form) -> Optional[str]:
    """Name introduced by a defining form, or None if it is not one."""
    children = form.children
    if len(children) < 2 or children[0].kind is not FormKind.SYMBOL:
        return None
    definer = children[0].value
    name = children[1]
    if definer in QUOTED_FUNCTION_DEFINERS or definer in QUOTED_VARIABLE_DEFINERS:
        if (name.kind is FormKind.QUOTED and name.value == 'quote'
                and name.children[0].kind is FormKind.SYMBOL):
            return name.children[0].value
        return None
    if name.kind is FormKind.SYMBOL:
        return name.value
    return None


def _is_definition(form: Form, path: PathStack) -> bool:
    return (form.kind is FormKind.LIST and form.head_symbol in _ALL_DEFINERS
            and _defined_name(form) is not None)


class DefinitionOracle(StaticOracle):
    """Oracle built from the definitions found in a corpus.

    Emacs special forms are always known. Everything else is classified by
    the form that defines it: ``defun`` and friends make functions,
    ``defmacro`` makes macros, ``defvar`` and friends make variables.
    """

    def __init__(self, functions: Iterable[str] = (), macros: Iterable[str] = (),
                 variables: Iterable[str] = ()):
        super().__init__(functions, macros, EMACS_SPECIAL_FORMS, variables)
        # (identifier, error) for documents that could not be fully read
        self.errors: List[Tuple[str, MalformedInputError]] = []

    def add_definitions(self, unit: SourceUnit) -> int:
        """Record every definition in ``unit``.

        Definitions nested inside other forms (``eval-and-compile``,
        ``with-eval-after-load``, the body of another definition, ...) are
        found too. A malformed document contributes the definitions read
        before the error, and the error is recorded in ``errors``.

        Returns:
            Number of definitions recorded
        """
        count = 0
        try:
            for top_form in Reader(unit.text):
                if not (top_form.symbols & _ALL_DEFINERS):
                    continue
                for form, _path in walk(top_form, _is_definition, descend_into_matches=True):
                    definer = form.head_symbol
                    name = _defined_name(form)
                    if definer in FUNCTION_DEFINERS or definer in QUOTED_FUNCTION_DEFINERS:
                        self.functions.add(name)
                    if definer in MACRO_DEFINERS:
                        self.macros.add(name)
                    if definer in VARIABLE_DEFINERS or definer in QUOTED_VARIABLE_DEFINERS:
                        self.variables.add(name)
                    count += 1
        except MalformedInputError as e:
            self.errors.append((unit.identifier, e))
        return count

    @classmethod
    def from_units(cls, units: Iterable[SourceUnit]) -> 'DefinitionOracle':
        """Build an oracle from every definition in ``units``."""
        oracle = cls()
        for unit in units:
            oracle.add_definitions(unit)
        return oracle


class ChainOracle:
    """Ask several oracles in order; the first definite answer wins."""

    def __init__(self, *oracles: ClassificationOracle):
        self.oracles = oracles

    def _ask(self, method: str, symbol: str) -> Optional[bool]:
        for oracle in self.oracles:
            answer = getattr(oracle, method)(symbol)
            if answer is not None:
                return answer
        return None

    def is_function(self, symbol: str) -> Optional[bool]:
        return self._ask('is_function', symbol)

    def is_macro(self, symbol: str) -> Optional[bool]:
        return self._ask('is_macro', symbol)

    def is_special_form(self, symbol: str) -> Optional[bool]:
        return self._ask('is_special_form', symbol)

    def is_variable(self, symbol: str) -> Optional[bool]:
        return self._ask('is_variable', symbol)
