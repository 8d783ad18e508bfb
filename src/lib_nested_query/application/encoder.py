"""Encode pipeline: nested value → query string.

Purpose
-------
Flatten a tree of mappings, sequences and scalars into ``key=value`` parts
and join them. Key paths use bracket or dot notation, lists follow the
configured :class:`~lib_nested_query.domain.options.ListFormat`.

Contents
    - ``encode``: public entry point (root handling, root filter, sorting,
      charset sentinel and query prefix).
    - ``_Walker``: depth-first flattening of one top-level key with an
      explicit stack; tracks the containers on the current path to reject
      cycles.

System Role
-----------
Called by :func:`lib_nested_query.core.encode`; uses the percent codec from
:mod:`lib_nested_query.application.codec` unless the caller supplies an
encoder. Filters, encoders, date serializers and sorters run synchronously and
their exceptions propagate unchanged.
"""

from __future__ import annotations

from datetime import date
from functools import cmp_to_key
from typing import Any, Callable

from ..domain.errors import CyclicReference
from ..domain.options import DEFAULT_ENCODE_OPTIONS, EncodeOptions, FunctionFilter, IterableFilter, ListFormat, Sentinel
from ..domain.values import Undefined, canonical_index
from . import codec
from .normalize import is_mapping, is_sequence, is_set, key_text

_Encoder = Callable[[Any, Any, Any], str]
_Visit = tuple[Any, str, "_Encoder | None"]


class _Leave:
    """Stack marker: the container with this ``id`` is no longer on the path."""

    __slots__ = ("node_id",)

    def __init__(self, node_id: int) -> None:
        self.node_id = node_id


def encode(value: Any, options: EncodeOptions | None = None) -> str:
    """Serialize *value* into a query string.

    Why
    ----
    Callers hold structured data; servers expect ``a[b]=c&d[]=e`` style
    parameters.

    What
    ----
    ``None`` and non-container roots encode to ``""``. A root sequence is keyed
    ``"0"``, ``"1"``, …. Each top-level key is flattened depth first in key
    order (or the order of an :class:`IterableFilter`, optionally sorted).
    Parts are joined with ``options.delimiter``; the charset sentinel leads
    when requested and ``?`` is prepended for ``add_query_prefix`` unless the
    result is empty.

    Parameters
    ----------
    value:
        Mapping or sequence to serialize.
    options:
        Encode options; defaults to :data:`DEFAULT_ENCODE_OPTIONS`.

    Returns
    -------
    str
        The query string without a leading ``?`` unless requested.

    Raises
    ------
    CyclicReference
        When a container is reached again through its own descendants.

    Examples
    --------
    >>> encode({"a": {"b": "c"}})
    'a%5Bb%5D=c'
    >>> encode({"a": ["b", "c"]}, EncodeOptions(encode=False))
    'a[0]=b&a[1]=c'
    >>> encode({"a": "b c"}, EncodeOptions(add_query_prefix=True))
    '?a=b%20c'
    """

    options = options or DEFAULT_ENCODE_OPTIONS
    if value is None or value is Undefined:
        return ""

    root = value
    keys: list[Any] | None = None
    if isinstance(options.filter, FunctionFilter):
        root = options.filter("", root)
    elif isinstance(options.filter, IterableFilter):
        keys = list(options.filter)

    if is_sequence(root) or is_set(root):
        root = {str(index): item for index, item in enumerate(root)}
    elif not is_mapping(root):
        return ""
    if not root:
        return ""

    if keys is None:
        keys = list(root.keys())
    if options.sort is not None:
        keys.sort(key=cmp_to_key(options.sort))

    walker = _Walker(options)
    parts: list[str] = []
    for key in keys:
        found, item = _lookup(root, key)
        if options.skip_nulls and (not found or item is None):
            continue
        walker.walk(item if found else Undefined, key_text(key), parts)

    joined = options.delimiter.join(parts)
    prefix = "?" if options.add_query_prefix else ""
    if options.charset_sentinel:
        sentinel = Sentinel.for_charset(options.charset).encoded
        return f"{prefix}{sentinel}{'&' if joined else ''}{joined}"
    return f"{prefix}{joined}" if joined else ""


def _lookup(container: Any, key: Any) -> tuple[bool, Any]:
    """Return ``(found, value)`` for *key* in a mapping or sequence."""

    if is_mapping(container):
        if key in container:
            return True, container[key]
        text = key_text(key)
        if text in container:
            return True, container[text]
        return False, None
    index = canonical_index(key)
    if index is not None and index < len(container):
        return True, container[index]
    return False, None


class _Walker:
    """Flatten one top-level value into ``key=value`` parts."""

    def __init__(self, options: EncodeOptions) -> None:
        self.options = options
        self.charset = options.charset
        self.format = options.format
        self.formatter = options.formatter
        self.list_format = options.list_format or ListFormat.INDICES
        self.is_comma = self.list_format is ListFormat.COMMA
        self.comma_round_trip = self.is_comma and bool(options.comma_round_trip)
        self.encoder: _Encoder | None = (options.encoder or codec.encode) if options.encode else None

    def walk(self, value: Any, prefix: str, parts: list[str]) -> None:
        stack: list[_Visit | _Leave] = [(value, prefix, self.encoder)]
        path: dict[int, Any] = {}
        while stack:
            task = stack.pop()
            if isinstance(task, _Leave):
                path.pop(task.node_id, None)
                continue
            self._visit(*task, stack=stack, path=path, parts=parts)

    def _visit(
        self,
        value: Any,
        prefix: str,
        encoder: _Encoder | None,
        *,
        stack: list[_Visit | _Leave],
        path: dict[int, Any],
        parts: list[str],
    ) -> None:
        options = self.options
        obj = self._prepare(value, prefix)

        if obj is None:
            if options.strict_null_handling:
                if encoder is not None and not options.encode_values_only:
                    parts.append(self.formatter(encoder(prefix, self.charset, self.format)))
                else:
                    parts.append(prefix)
                return
            obj = ""

        if obj is Undefined:
            return

        as_list = is_sequence(obj) or is_set(obj)
        if not as_list and not is_mapping(obj):
            parts.append(self._leaf(prefix, obj, encoder))
            return

        if id(obj) in path:
            raise CyclicReference("Cyclic object value")

        items = list(obj) if as_list else None
        child_encoder = encoder
        if as_list and self.is_comma:
            if options.comma_compact_nulls:
                items = [item for item in items if item is not None]
            entries = [("", True, self._comma_value(items, encoder) if items else Undefined)]
            if options.encode_values_only and encoder is not None:
                child_encoder = None
        else:
            entries = self._entries(obj, items)

        encoded_prefix = prefix.replace(".", "%2E") if options.encode_dot_in_keys else prefix
        adjusted_prefix = encoded_prefix
        if as_list and self.comma_round_trip and len(items) == 1:
            adjusted_prefix = f"{encoded_prefix}[]"

        if as_list and options.allow_empty_lists and not items:
            parts.append(f"{adjusted_prefix}[]")
            return

        children: list[_Visit] = []
        for key, found, child in entries:
            if options.skip_nulls and found and child is None:
                continue
            if options.allow_dots and options.encode_dot_in_keys:
                key = key.replace(".", "%2E")
            if as_list:
                child_prefix = self.list_format.generate(adjusted_prefix, key)
            elif options.allow_dots:
                child_prefix = f"{adjusted_prefix}.{key}"
            else:
                child_prefix = f"{adjusted_prefix}[{key}]"
            children.append((child if found else Undefined, child_prefix, child_encoder))

        path[id(obj)] = obj
        stack.append(_Leave(id(obj)))
        stack.extend(reversed(children))

    def _prepare(self, value: Any, prefix: str) -> Any:
        """Apply the function filter, or serialize dates when there is none."""

        if isinstance(self.options.filter, FunctionFilter):
            return self.options.filter(prefix, value)
        if isinstance(value, date):
            return self._serialize_date(value)
        if self.is_comma and (is_sequence(value) or is_set(value)):
            return [self._serialize_date(item) if isinstance(item, date) else item for item in value]
        return value

    def _serialize_date(self, value: date) -> str:
        if self.options.date_serializer is not None:
            return self.options.date_serializer(value)
        return value.isoformat()

    def _entries(self, obj: Any, items: list[Any] | None) -> list[tuple[str, bool, Any]]:
        """Return ``(key, found, child)`` triples in visiting order."""

        container = items if items is not None else obj
        if isinstance(self.options.filter, IterableFilter):
            return [(key_text(key), *_lookup(container, key)) for key in self.options.filter]
        if items is not None:
            return [(str(index), True, item) for index, item in enumerate(items)]
        keys = list(obj.keys())
        if self.options.sort is not None:
            keys.sort(key=cmp_to_key(self.options.sort))
        return [(key_text(key), True, obj[key]) for key in keys]

    def _comma_value(self, items: list[Any], encoder: _Encoder | None) -> str | None:
        """Join list *items* for the comma format; an empty join reads as ``None``."""

        if self.options.encode_values_only and encoder is not None:
            joined = ",".join(
                "" if item is None else encoder(item, self.charset, self.format).replace(",", "%2C") for item in items
            )
        else:
            joined = ",".join(codec.to_text(item, self.charset) for item in items)
        return joined or None

    def _leaf(self, prefix: str, obj: Any, encoder: _Encoder | None) -> str:
        if encoder is None:
            return f"{self.formatter(prefix)}={self.formatter(codec.to_text(obj, self.charset))}"
        key = prefix if self.options.encode_values_only else encoder(prefix, self.charset, self.format)
        return f"{self.formatter(key)}={self.formatter(encoder(obj, self.charset, self.format))}"
