"""Structural walkers that find matching forms inside a form tree.

Two traversals live here:

- ``walk`` is the path-aware matcher. It tests a predicate against each form
  together with the chain of enclosing heads (the path), reports a matching
  form as a whole and does not look inside it.
- ``walk_symbols`` is the leaf-symbol walker used for "any occurrence"
  searches. It looks at every symbol atom and never stops early.

Both use an explicit work stack, so nesting depth is bounded by memory
rather than by the interpreter's recursion limit.
"""
from typing import Callable, List, Tuple

from .forms import EMPTY_PATH, AncestorFrame, Form, FormKind, PathStack

Predicate = Callable[[Form, PathStack], bool]
LeafPredicate = Callable[[Form], bool]

# Quote wrappers whose contents are evaluated (backquote templates)
EVALUATED_WRAPPERS = frozenset({'`', ',', ',@'})

# Written-out forms of ' and #' whose argument is data
OPAQUE_HEADS = frozenset({'quote', 'function'})

# Kinds the leaf walker looks inside; improper lists stay opaque
_LEAF_CONTAINERS = frozenset({
    FormKind.LIST, FormKind.VECTOR, FormKind.QUOTED, FormKind.SHARP_QUOTED,
})


def _is_descended(form: Form) -> bool:
    if form.kind is FormKind.LIST:
        return form.head_symbol not in OPAQUE_HEADS
    return form.kind is FormKind.QUOTED and form.value in EVALUATED_WRAPPERS


def walk(form: Form, predicate: Predicate, path: PathStack = EMPTY_PATH,
         descend_into_matches: bool = False) -> List[Tuple[Form, PathStack]]:
    """Find forms matching ``predicate`` in document order.

    A form that matches is reported once and, unless
    ``descend_into_matches`` is set, its children are not visited.
    Otherwise lists (and backquote/unquote wrappers) are entered; every
    child is tested with the path extended by ``(head, index)``, the head
    itself counting as index 0. Atoms, vectors, quoted data, sharp-quoted
    forms, improper lists and lists headed by ``quote`` or ``function``
    are tested but never entered.

    Child paths share their parent's frames, so the walk stays linear in
    the number of forms however deep they nest.

    Args:
        form: Form to search, usually a top-level form
        predicate: Called as ``predicate(form, path)``
        path: Enclosing frames of ``form``, innermost first; a tuple of
            frames is accepted too
        descend_into_matches: Keep walking inside matched forms

    Returns:
        List of ``(form, path)`` pairs for every match
    """
    if not isinstance(path, PathStack):
        path = PathStack.of(path)

    matches = []
    stack = [(form, path)]

    while stack:
        node, node_path = stack.pop()
        if predicate(node, node_path):
            matches.append((node, node_path))
            if not descend_into_matches:
                continue
        if not _is_descended(node):
            continue

        head = node.head_symbol
        # A wrapper's form sits where (quote x) would put it: index 1
        offset = 0 if node.kind is FormKind.LIST else 1
        children = node.children
        # Reverse push keeps pops in left-to-right order
        for index in range(len(children) - 1, -1, -1):
            stack.append((children[index], node_path.push(AncestorFrame(head, index + offset))))

    return matches


def walk_symbols(form: Form, predicate: LeafPredicate) -> List[Form]:
    """Return every symbol atom inside ``form`` accepted by ``predicate``."""
    matches = []
    stack = [form]

    while stack:
        node = stack.pop()
        if node.kind is FormKind.SYMBOL:
            if predicate(node):
                matches.append(node)
        elif node.kind in _LEAF_CONTAINERS:
            stack.extend(reversed(node.children))

    return matches
