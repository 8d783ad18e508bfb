"""Deep-structure normalizer.

Purpose
-------
Copy arbitrary mapping/sequence graphs handed in by callers into the canonical
tree every algorithm works on: ``dict`` with ``str`` keys, ``list`` for
sequences, scalars untouched.

Contents
    - ``normalize``: iterative deep copy preserving shared and cyclic
      references.
    - ``to_index_dict``: list positions as string keys.
    - ``is_mapping`` / ``is_sequence`` / ``is_container``: the type tests the
      pipelines branch on.

System Role
-----------
Called by the merge engine whenever a foreign mapping enters the result tree
and by the decoder for mapping input. The visited table is call-local.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence, Set
from typing import Any

from ..domain.values import OverflowDict, Undefined
from .codec import to_text

_TEXT_TYPES = (str, bytes, bytearray)


def is_mapping(value: object) -> bool:
    return isinstance(value, Mapping)


def is_sequence(value: object) -> bool:
    """Return ``True`` for list-like values (text and bytes excluded)."""

    return isinstance(value, Sequence) and not isinstance(value, _TEXT_TYPES)


def is_set(value: object) -> bool:
    return isinstance(value, Set)


def is_container(value: object) -> bool:
    return is_mapping(value) or is_sequence(value) or is_set(value)


def key_text(key: object) -> str:
    """Stringify a mapping key; keys with no text form become ``""``.

    >>> key_text(1), key_text(None), key_text(True)
    ('1', '', 'true')
    """

    if isinstance(key, str):
        return key
    return to_text(key)


def normalize(value: Any) -> Any:
    """Return a canonical deep copy of *value*.

    Why
        Algorithms downstream only branch on ``dict`` / ``list`` / ``set`` and
        scalars, never on caller-specific container types.
    What
        Walks the graph with an explicit stack. Each copy is registered in the
        visited table (keyed by ``id``) before its children are visited, so a
        reference met twice maps to the same copy and cycles terminate.
        :class:`OverflowDict` instances keep their marker; ``Undefined`` and
        other scalars are returned as-is.

    Examples
    --------
    >>> normalize({1: (2, {None: 3})})
    {'1': [2, {'': 3}]}
    >>> node = {}
    >>> node["self"] = node
    >>> copy = normalize(node)
    >>> copy["self"] is copy and copy is not node
    True
    """

    if not is_container(value):
        return value
    visited: dict[int, Any] = {}
    stack: list[tuple[Any, Any]] = []
    root = _register(value, visited, stack)
    while stack:
        source, copy = stack.pop()
        if isinstance(copy, dict):
            for key, child in source.items():
                copy[key_text(key)] = _resolve(child, visited, stack)
        else:
            copy.extend(_resolve(child, visited, stack) for child in source)
    return root


def _resolve(value: Any, visited: dict[int, Any], stack: list[tuple[Any, Any]]) -> Any:
    if not is_container(value):
        return value
    existing = visited.get(id(value))
    if existing is not None:
        return existing
    return _register(value, visited, stack)


def _register(value: Any, visited: dict[int, Any], stack: list[tuple[Any, Any]]) -> Any:
    """Allocate the canonical counterpart of *value* and schedule its children."""

    if is_set(value):
        copy: Any = set(value)
        visited[id(value)] = copy
        return copy
    if isinstance(value, OverflowDict):
        copy = OverflowDict(next_index=value.next_index)
    elif is_mapping(value):
        copy = {}
    else:
        copy = []
    visited[id(value)] = copy
    stack.append((value, copy))
    return copy


def to_index_dict(items: Sequence[Any]) -> dict[str, Any]:
    """Return *items* keyed by their positions, skipping ``Undefined`` slots.

    >>> to_index_dict(["a", Undefined, "c"])
    {'0': 'a', '2': 'c'}
    """

    return {str(index): item for index, item in enumerate(items) if item is not Undefined}
