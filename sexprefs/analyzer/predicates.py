"""Semantic rules deciding which occurrences of a symbol are references.

A naive search for ``foo`` also finds ``(defun bar (foo) ...)`` and
``(let ((foo 1)) ...)``, where ``foo`` is a name being introduced, not used.
The predicates below tell those apart using the path of enclosing frames
(innermost first) that the matcher hands them.
"""
from enum import Enum
from functools import partial
from typing import Callable, Optional

from .forms import AncestorFrame, Form, FormKind, PathStack
from .oracle import ClassificationOracle, SymbolKindMismatch, UnknownSymbolClassification


class ReferenceKind(str, Enum):
    """What kind of reference a search looks for."""
    FUNCTION = 'function'
    MACRO = 'macro'
    SPECIAL = 'special'
    VARIABLE = 'variable'
    SYMBOL = 'symbol'


# Slots that introduce names: argument lists and let binding lists
BINDER_POSITIONS = frozenset({
    AncestorFrame('defun', 2),
    AncestorFrame('defsubst', 2),
    AncestorFrame('defmacro', 2),
    AncestorFrame('cl-defun', 2),
    AncestorFrame('lambda', 1),
    AncestorFrame('let', 1),
    AncestorFrame('let*', 1),
})

LET_BINDING_LISTS = frozenset({AncestorFrame('let', 1), AncestorFrame('let*', 1)})

# (funcall 'SYMBOL ...) and (apply #'SYMBOL ...) call SYMBOL
INDIRECT_CALLERS = frozenset({'funcall', 'apply'})

# Oracle method confirming each call kind
_ORACLE_CHECKS = {
    ReferenceKind.FUNCTION: 'is_function',
    ReferenceKind.MACRO: 'is_macro',
    ReferenceKind.SPECIAL: 'is_special_form',
}


def _is_quoted_symbol(form: Form, symbol: str) -> bool:
    """True for ``'SYMBOL`` and ``#'SYMBOL``, also written out as lists."""
    if form.kind is FormKind.LIST:
        return (len(form.children) == 2
                and form.head_symbol in ('quote', 'function')
                and form.children[1].is_symbol(symbol))
    return (form.kind in (FormKind.QUOTED, FormKind.SHARP_QUOTED)
            and form.value in ('quote', 'function')
            and form.children[0].is_symbol(symbol))


def is_call(form: Form, path: PathStack, symbol: str) -> bool:
    """Return True if ``form`` is a call site of ``symbol``.

    Matches ``(SYMBOL ...)`` as well as ``(funcall 'SYMBOL ...)`` and
    ``(apply #'SYMBOL ...)``. Function references held in variables are not
    followed.

    Argument lists such as the ``(SYMBOL)`` in ``(defun bar (SYMBOL))`` and
    binding specs such as ``(SYMBOL 1)`` in ``(let ((SYMBOL 1)) ...)`` have
    the shape of a call but are not.
    """
    if form.kind is not FormKind.LIST or not form.children:
        return False
    if path:
        if path[0] in BINDER_POSITIONS:
            return False
        if len(path) > 1 and path[1] in LET_BINDING_LISTS:
            return False

    head = form.children[0]
    if head.is_symbol(symbol):
        return True
    if head.kind is FormKind.SYMBOL and head.value in INDIRECT_CALLERS and len(form.children) > 1:
        return _is_quoted_symbol(form.children[1], symbol)
    return False


def is_variable_reference(form: Form, path: PathStack, symbol: str) -> bool:
    """Return True if ``form`` is the symbol ``symbol`` used as a variable.

    Parameter names and let-bound names are not references:
    ``(defun f (SYMBOL) ...)``, ``(lambda (SYMBOL) ...)``,
    ``(let (SYMBOL) ...)``, ``(let ((SYMBOL value)) ...)``.
    """
    if not form.is_symbol(symbol):
        return False
    if path:
        if path[0] in BINDER_POSITIONS:
            return False
        # Element of an argument list or of a let binding list
        if len(path) > 1 and path[1] in BINDER_POSITIONS:
            return False
        # Name slot of a (SYMBOL value) let binding
        if len(path) > 2 and path[0].index == 0 and path[2] in LET_BINDING_LISTS:
            return False
    return True


def is_symbol_occurrence(form: Form, symbol: str) -> bool:
    """Return True for every symbol atom named ``symbol``, binders included."""
    return form.is_symbol(symbol)


def check_classification(kind: ReferenceKind, symbol: str,
                         oracle: Optional[ClassificationOracle]) -> None:
    """Make sure the oracle agrees that ``symbol`` is of ``kind``.

    Only call kinds (function, macro, special form) are checked; variable
    and symbol searches work on any name.

    Raises:
        UnknownSymbolClassification: If there is no oracle or it cannot
            classify the symbol
        SymbolKindMismatch: If the oracle classifies the symbol as
            something else
    """
    method = _ORACLE_CHECKS.get(kind)
    if method is None:
        return
    if oracle is None:
        raise UnknownSymbolClassification(symbol, kind.value)
    verdict = getattr(oracle, method)(symbol)
    if verdict is None:
        raise UnknownSymbolClassification(symbol, kind.value)
    if not verdict:
        raise SymbolKindMismatch(symbol, kind.value)


def build_predicate(kind: ReferenceKind, symbol: str,
                    oracle: Optional[ClassificationOracle] = None) -> Callable[..., bool]:
    """Return the predicate for a search of ``kind`` for ``symbol``.

    For SYMBOL searches the predicate takes a form only and is meant for
    the leaf-symbol walker; every other kind yields a ``(form, path)``
    predicate for the path-aware matcher.

    Raises:
        UnknownSymbolClassification, SymbolKindMismatch: See
            ``check_classification``
    """
    kind = ReferenceKind(kind)
    check_classification(kind, symbol, oracle)
    if kind is ReferenceKind.SYMBOL:
        return partial(is_symbol_occurrence, symbol=symbol)
    if kind is ReferenceKind.VARIABLE:
        return partial(is_variable_reference, symbol=symbol)
    return partial(is_call, symbol=symbol)
