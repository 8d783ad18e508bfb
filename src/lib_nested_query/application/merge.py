"""Application-layer merge engine.

Purpose
-------
Fold the single-path structures produced for each query parameter into one
result tree. Decides how lists, mappings and scalars combine when two
parameters address the same key path, including promotion of oversized lists
to :class:`~lib_nested_query.domain.values.OverflowDict` mappings.

Contents
    - ``merge``: public entry point driven by an explicit work list.
    - ``_merge_step``: one level of merging; nested collisions are pushed back
      onto the work list instead of recursing.
    - ``_merge_into_sequence`` / ``_merge_scalar_into_mapping`` /
      ``_merge_mapping``: the three shapes a step can take.
    - ``combine`` / ``combine_with_limit``: list concatenation for duplicate
      keys, with optional overflow promotion.
    - ``compact``: strips ``Undefined`` and canonicalises containers once a
      decode finishes.

System Role
-----------
Used by :mod:`lib_nested_query.application.decoder`; free of I/O and of any
parsing concerns. Everything here terminates on self-referential input: merge
remembers which (target, source) pairs it already visited and compaction
remembers which containers it already cleaned.
"""

from __future__ import annotations

from typing import Any

from ..domain.errors import LimitExceeded
from ..domain.options import DEFAULT_DECODE_OPTIONS, DecodeOptions
from ..domain.values import OverflowDict, Undefined, canonical_index, next_free_index
from .codec import to_text
from .normalize import is_container, is_mapping, is_sequence, is_set, key_text, normalize, to_index_dict

_Task = tuple[Any, Any, Any, Any]


def merge(target: Any, source: Any, options: DecodeOptions | None = None) -> Any:
    """Merge *source* into *target* and return the combined value.

    Why
    ----
    Query strings describe one tree as many flat parameters. Each parameter
    becomes a small single-path structure; merging rebuilds the tree.

    What
    ----
    Plain ``dict`` and ``list`` targets are updated in place (foreign mappings
    are copied first). Collisions between nested values are queued on a work
    list so arbitrarily deep inputs never exhaust the call stack.

    Parameters
    ----------
    target:
        Value already stored at the key path (``None`` when absent).
    source:
        Value contributed by the incoming parameter.
    options:
        Decode options; only ``parse_lists`` influences merging.

    Returns
    -------
    Any
        The merged value. May be *target* itself, a new list, or a mapping.

    Examples
    --------
    >>> merge({"a": "b"}, {"a": "c"})
    {'a': ['b', 'c']}
    >>> merge(["a"], ["b", Undefined, "c"])
    ['a', 'b', 'c']
    >>> merge({"a": "b"}, "c")
    {'a': 'b', 'c': True}
    >>> merge(None, "x")
    [None, 'x']
    """

    options = options or DEFAULT_DECODE_OPTIONS
    holder: list[Any] = [None]
    work: list[_Task] = [(holder, 0, target, source)]
    seen: dict[tuple[int, int], tuple[Any, Any]] = {}
    while work:
        container, slot, current, incoming = work.pop()
        if is_container(current) and is_container(incoming):
            pair = (id(current), id(incoming))
            if pair in seen:
                container[slot] = current
                continue
            seen[pair] = (current, incoming)
        container[slot] = _merge_step(current, incoming, options, work)
    return holder[0]


def _merge_step(target: Any, source: Any, options: DecodeOptions, work: list[_Task]) -> Any:
    """Merge one level and queue nested collisions on *work*."""

    if source is None:
        return target
    if not is_mapping(source):
        if is_sequence(target) or is_set(target):
            return _merge_into_sequence(target, source, options, work)
        if is_mapping(target):
            return _merge_scalar_into_mapping(target, source, work)
        if _is_list_like(source):
            return [target, *(item for item in source if item is not Undefined)]
        return [target, source]

    if is_mapping(target):
        acc = _mutable_mapping(target)
    elif is_sequence(target) or is_set(target):
        acc = to_index_dict(list(target))
    elif target is None or target is Undefined:
        return normalize(source)
    elif isinstance(source, OverflowDict):
        return _prepend_to_overflow(target, source)
    else:
        return [target, normalize(source)]
    return _merge_mapping(acc, source, work)


def _merge_into_sequence(target: Any, source: Any, options: DecodeOptions, work: list[_Task]) -> Any:
    """Merge a non-mapping *source* into a list or set *target*.

    Lists merge by position: holes (``Undefined``) are filled, two mappings at
    the same position are merged, anything else is appended.
    """

    if is_set(target):
        if _is_list_like(source):
            return set(target).union(item for item in source if item is not Undefined)
        return set(target) | {source}

    result = target if type(target) is list else list(target)
    items = list(source) if _is_list_like(source) else None
    if not options.parse_lists:
        result = [item for item in result if item is not Undefined]
        if items is not None:
            items = [item for item in items if item is not Undefined]
    if items is None:
        result.append(source)
        return result

    for index, item in enumerate(items):
        if item is Undefined:
            continue
        if index >= len(result):
            result.extend([Undefined] * (index - len(result)))
            result.append(item)
        elif result[index] is Undefined:
            result[index] = item
        elif is_mapping(result[index]) and is_mapping(item):
            work.append((result, index, result[index], item))
        else:
            result.append(item)
    return result


def _merge_scalar_into_mapping(target: Any, source: Any, work: list[_Task]) -> dict[str, Any]:
    """Merge a scalar or list *source* into a mapping *target*.

    Overflow mappings keep appending; plain mappings merge list items by
    index and use a bare scalar as a flag key.
    """

    acc = _mutable_mapping(target)
    if isinstance(acc, OverflowDict):
        for item in source if _is_list_like(source) else (source,):
            if item is not Undefined:
                acc.append(item)
        return acc
    if _is_list_like(source):
        return _merge_mapping(acc, to_index_dict(list(source)), work)
    if source is Undefined:
        return acc
    key = to_text(source)
    if key:
        acc[key] = True
    return acc


def _merge_mapping(acc: dict[str, Any], source: Any, work: list[_Task]) -> dict[str, Any]:
    """Merge mapping *source* key by key into *acc*, tracking overflow markers."""

    tracking = isinstance(acc, OverflowDict) or isinstance(source, OverflowDict)
    if tracking:
        marker = getattr(source, "next_index", 0)
        if isinstance(acc, OverflowDict):
            acc.next_index = max(acc.next_index, marker)
        else:
            acc = OverflowDict(acc, next_index=max(next_free_index(acc), marker))
    for raw_key, value in source.items():
        key = key_text(raw_key)
        if key in acc:
            work.append((acc, key, acc[key], value))
        else:
            acc[key] = value
        if tracking:
            index = canonical_index(key)
            if index is not None and index >= acc.next_index:
                acc.next_index = index + 1
    return acc


def _prepend_to_overflow(target: Any, source: OverflowDict) -> OverflowDict:
    """Place scalar *target* at ``"0"`` and shift the sequential keys of *source* by one."""

    result = OverflowDict({"0": target}, next_index=source.next_index + 1)
    for key, value in source.items():
        index = canonical_index(key)
        result[str(index + 1) if index is not None else key] = value
    return result


def _mutable_mapping(target: Any) -> dict[str, Any]:
    """Return *target* when it is one of ours, otherwise a string-keyed copy."""

    if type(target) is dict or type(target) is OverflowDict:
        return target
    return {key_text(key): value for key, value in target.items()}


def _is_list_like(value: Any) -> bool:
    return is_sequence(value) or is_set(value)


def combine(first: Any, second: Any) -> Any:
    """Concatenate two values as lists; an overflow mapping keeps appending.

    >>> combine(["a"], "b"), combine("a", ["b", "c"])
    (['a', 'b'], ['a', 'b', 'c'])
    """

    if isinstance(first, OverflowDict):
        for item in _as_items(second):
            first.append(item)
        return first
    return [*_as_items(first), *_as_items(second)]


def combine_with_limit(
    first: Any,
    second: Any,
    list_limit: int,
    throw_on_limit_exceeded: bool = False,
) -> Any:
    """Like :func:`combine`, but promote the result once it outgrows *list_limit*.

    Why
        Duplicate keys must not let attackers build arbitrarily long lists.
    What
        The result stays a list while its length is at most *list_limit*;
        beyond that it becomes an :class:`OverflowDict` keyed ``"0".."n-1"``
        whose marker is ``n``.

    Raises
        LimitExceeded: when the limit is exceeded and throwing is enabled.

    Examples
    --------
    >>> combine_with_limit(["a"], "b", 5)
    ['a', 'b']
    >>> promoted = combine_with_limit(["a"], "b", 1)
    >>> promoted, promoted.next_index
    ({'0': 'a', '1': 'b'}, 2)
    """

    if isinstance(first, OverflowDict):
        return combine(first, second)
    result = combine(first, second)
    if len(result) > list_limit:
        if throw_on_limit_exceeded:
            raise LimitExceeded(list_limit_message(list_limit))
        return OverflowDict({str(index): item for index, item in enumerate(result)}, next_index=len(result))
    return result


def _as_items(value: Any) -> list[Any]:
    if _is_list_like(value):
        return list(value)
    return [value]


def list_limit_message(list_limit: int) -> str:
    noun = "element" if list_limit == 1 else "elements"
    return f"List limit exceeded. Only {list_limit} {noun} allowed in a list."


def compact(value: Any, allow_sparse_lists: bool = False) -> Any:
    """Strip ``Undefined`` from *value* and canonicalise its containers.

    Why
    ----
    Sparse list positions are padded with ``Undefined`` while decoding; they
    must not leak into results.

    What
    ----
    Walks the tree with an explicit stack. ``Undefined`` entries are removed
    from mappings; in lists they become ``None`` when *allow_sparse_lists* is
    set, otherwise the slot is removed. Foreign mappings and overflow mappings
    turn into plain ``dict``, foreign sequences into ``list``. Already visited
    containers are skipped, so cycles terminate and keep their identity.
    Compacting a compacted value changes nothing.

    Examples
    --------
    >>> compact({"a": ["x", Undefined, "y"], "b": Undefined})
    {'a': ['x', 'y']}
    >>> compact([Undefined, "x"], allow_sparse_lists=True)
    [None, 'x']
    """

    holder: list[Any] = [value]
    stack: list[tuple[Any, Any]] = [(holder, 0)]
    replaced: dict[int, tuple[Any, Any]] = {}
    visited: set[int] = set()
    while stack:
        container, slot = stack.pop()
        node = container[slot]
        if not (is_mapping(node) or is_sequence(node)):
            continue
        entry = replaced.get(id(node))
        if entry is None:
            entry = (node, _canonical_container(node))
            replaced[id(node)] = entry
        canonical = entry[1]
        container[slot] = canonical
        if id(canonical) in visited:
            continue
        visited.add(id(canonical))
        if isinstance(canonical, dict):
            for key in [key for key, child in canonical.items() if child is Undefined]:
                del canonical[key]
            stack.extend((canonical, key) for key, child in canonical.items() if _needs_compaction(child))
        else:
            if allow_sparse_lists:
                canonical[:] = [None if item is Undefined else item for item in canonical]
            else:
                canonical[:] = [item for item in canonical if item is not Undefined]
            stack.extend((canonical, index) for index, child in enumerate(canonical) if _needs_compaction(child))
    return holder[0]


def _canonical_container(node: Any) -> Any:
    if type(node) is dict or type(node) is list:
        return node
    if is_mapping(node):
        return {key_text(key): child for key, child in node.items()}
    return list(node)


def _needs_compaction(value: Any) -> bool:
    return is_mapping(value) or is_sequence(value)
