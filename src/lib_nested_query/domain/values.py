"""Sentinel and container types shared by every pipeline stage.

Contents
--------
* :data:`Undefined` – singleton meaning "omit this entry".
* :class:`OverflowDict` – mapping produced when a list outgrows the list
  limit; remembers the next free sequential index.
* :func:`canonical_index` / :func:`next_free_index` – rules deciding which
  keys belong to the sequential index space of an overflow mapping.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Final, Iterable, Mapping

_CANONICAL_INDEX: Final[re.Pattern[str]] = re.compile(r"0|[1-9][0-9]*")


def _get_undefined_singleton() -> _UndefinedType:
    """Return the Undefined singleton. Called by pickle to reconstruct."""
    return Undefined


class _UndefinedType:
    """Sentinel type marking an entry that must be omitted from results.

    Decoding pads sparse list positions with it, merging skips it, and
    compaction strips it. It is falsy so ``if value:`` treats it like a
    missing entry.
    """

    __slots__ = ()

    def __repr__(self) -> str:
        return "Undefined"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _UndefinedType:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _UndefinedType:
        return self

    def __reduce__(self) -> tuple[Callable[[], _UndefinedType], tuple[()]]:
        """Pickle support: ensure singleton is preserved."""
        return (_get_undefined_singleton, ())


Undefined: Final[_UndefinedType] = _UndefinedType()


class OverflowDict(dict):
    """A ``dict`` that used to be a list and may keep growing like one.

    Why
        Once a list exceeds the list limit it is stored as a mapping with
        ``"0".."n-1"`` keys. Later merges must keep appending at ``n``,
        ``n+1``, ... even when the mapping also holds non-sequential keys such
        as ``"010"``.
    What
        A plain ``dict`` subclass carrying :attr:`next_index`.

    Examples
    --------
    >>> overflow = OverflowDict({"0": "a", "1": "b"}, next_index=2)
    >>> overflow.append("c")
    >>> overflow
    {'0': 'a', '1': 'b', '2': 'c'}
    >>> overflow.next_index
    3
    """

    __slots__ = ("next_index",)

    def __init__(self, *args: Any, next_index: int | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.next_index = next_free_index(self) if next_index is None else next_index

    def append(self, value: Any) -> None:
        """Store *value* under the next sequential index."""

        self[str(self.next_index)] = value
        self.next_index += 1

    def __repr__(self) -> str:
        return dict.__repr__(self)

    def __reduce__(self) -> tuple[Any, ...]:
        return (_rebuild_overflow, (dict(self), self.next_index))


def _rebuild_overflow(items: Mapping[str, Any], next_index: int) -> OverflowDict:
    return OverflowDict(items, next_index=next_index)


def canonical_index(key: object) -> int | None:
    """Return *key* as a sequential index, or ``None`` when it is not one.

    Only non-negative ints (never bools) and digit strings without leading
    zeros or signs qualify.

    Examples
    --------
    >>> canonical_index("5"), canonical_index(5), canonical_index("010"), canonical_index("-1")
    (5, 5, None, None)
    >>> canonical_index(True) is None
    True
    """

    if isinstance(key, bool):
        return None
    if isinstance(key, int):
        return key if key >= 0 else None
    if isinstance(key, str) and _CANONICAL_INDEX.fullmatch(key):
        return int(key)
    return None


def next_free_index(keys: Iterable[object]) -> int:
    """Return one past the largest canonical index among *keys* (``0`` if none).

    >>> next_free_index(["0", "5", "010", "x"])
    6
    """

    highest = -1
    for key in keys:
        index = canonical_index(key)
        if index is not None and index > highest:
            highest = index
    return highest + 1


def is_overflow(value: object) -> bool:
    """Return ``True`` when *value* carries an overflow marker."""

    return isinstance(value, OverflowDict)
