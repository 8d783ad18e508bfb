"""Application-layer ports describing pluggable callback shapes.

Purpose
-------
Define the structural contracts callers implement to customise decoding and
encoding. The option records store plain function values that satisfy these
protocols (strategy pattern); the pipelines invoke them synchronously at fixed
points.

Contents
--------
* :class:`ValueDecoder` – ``(text, charset) -> value``.
* :class:`KindAwareDecoder` – ``(text, charset, kind) -> value``.
* :class:`ValueEncoder` – ``(value, charset, format) -> text``.
* :class:`DateSerializer` – ``(date) -> text``.
* :class:`Sorter` – ``(a, b) -> int`` comparison used for key ordering.
* :class:`FilterFunction` – ``(prefix, value) -> value`` substitution hook.

System Role
-----------
The default implementations live in :mod:`lib_nested_query.application.codec`
(``decode`` / ``encode``) and satisfy :class:`ValueDecoder` /
:class:`ValueEncoder` respectively.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..domain.options import Charset, DecodeKind, Format


@runtime_checkable
class ValueDecoder(Protocol):
    """Decode one raw token.

    Keys must come back as ``str`` or ``None``; values may be any scalar.
    """

    def __call__(self, text: str | None, charset: Charset | None) -> Any: ...


@runtime_checkable
class KindAwareDecoder(Protocol):
    """Decode one raw token knowing whether it is a key or a value."""

    def __call__(self, text: str | None, charset: Charset | None, kind: DecodeKind) -> Any: ...


@runtime_checkable
class ValueEncoder(Protocol):
    """Turn a scalar (or a key path) into its wire text."""

    def __call__(self, value: Any, charset: Charset | None, format: Format | None) -> str: ...


@runtime_checkable
class DateSerializer(Protocol):
    """Render a date or datetime leaf."""

    def __call__(self, value: date) -> str: ...


@runtime_checkable
class Sorter(Protocol):
    """Compare two keys; negative, zero or positive like ``cmp``."""

    def __call__(self, left: Any, right: Any) -> int: ...


@runtime_checkable
class FilterFunction(Protocol):
    """Replace the value found at *prefix* (``""`` for the root)."""

    def __call__(self, prefix: str, value: Any) -> Any: ...
