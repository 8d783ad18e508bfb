"""Immutable option records steering the decode and encode pipelines.

Purpose
-------
Collect every limit, policy flag and callback hook in two frozen value objects
so a single call can never observe options changing underneath it. Defaults are
module-level constants, safe to share across threads without locking.

Contents
--------
* Enums: :class:`Charset`, :class:`Format`, :class:`ListFormat`,
  :class:`Duplicates`, :class:`DecodeKind`, :class:`Sentinel`.
* Filters: :class:`FunctionFilter`, :class:`IterableFilter`.
* Records: :class:`DecodeOptions`, :class:`EncodeOptions` and the shared
  :data:`DEFAULT_DECODE_OPTIONS` / :data:`DEFAULT_ENCODE_OPTIONS`.

System Role
-----------
Lives in the domain layer: validation happens in ``__post_init__`` so invalid
combinations raise :class:`~lib_nested_query.domain.errors.InvalidArgument`
before any input is touched. Behaviour that needs the codec (resolving the
default decoder/encoder) lives in the application layer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Final, Iterable, Mapping

from .errors import InvalidArgument

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..application.ports import DateSerializer, FilterFunction, KindAwareDecoder, Sorter, ValueDecoder, ValueEncoder

_CHARSET_ALIASES: Final[Mapping[str, str]] = {
    "utf-8": "utf-8",
    "utf8": "utf-8",
    "iso-8859-1": "iso-8859-1",
    "iso8859-1": "iso-8859-1",
    "latin1": "iso-8859-1",
    "latin-1": "iso-8859-1",
}


class Charset(str, Enum):
    """Character sets understood by the percent codec.

    >>> Charset("latin1") is Charset.LATIN1
    True
    """

    UTF8 = "utf-8"
    LATIN1 = "iso-8859-1"

    @classmethod
    def _missing_(cls, value: object) -> Charset | None:
        if isinstance(value, str):
            canonical = _CHARSET_ALIASES.get(value.strip().lower())
            if canonical is not None:
                return cls(canonical)
        return None


class Format(str, Enum):
    """Percent-encoding flavour applied to encoded output."""

    RFC3986 = "RFC3986"
    RFC1738 = "RFC1738"

    @classmethod
    def _missing_(cls, value: object) -> Format | None:
        if isinstance(value, str):
            upper = value.strip().upper()
            for member in cls:
                if member.value == upper:
                    return member
        return None

    @property
    def formatter(self) -> Callable[[str], str]:
        """Post-processor applied to every encoded key and value.

        >>> Format.RFC1738.formatter("a%20b")
        'a+b'
        """

        if self is Format.RFC1738:
            return _rfc1738
        return _identity


def _identity(text: str) -> str:
    return text


def _rfc1738(text: str) -> str:
    return text.replace("%20", "+")


class ListFormat(str, Enum):
    """How list elements are keyed when encoding.

    >>> [member.generate("a", "0") for member in ListFormat]
    ['a[0]', 'a[]', 'a', 'a']
    """

    INDICES = "indices"
    BRACKETS = "brackets"
    REPEAT = "repeat"
    COMMA = "comma"

    @classmethod
    def _missing_(cls, value: object) -> ListFormat | None:
        if isinstance(value, str):
            lower = value.strip().lower()
            for member in cls:
                if member.value == lower:
                    return member
        return None

    def generate(self, prefix: str, key: str) -> str:
        """Return the key path of element *key* below *prefix*."""

        if self is ListFormat.INDICES:
            return f"{prefix}[{key}]"
        if self is ListFormat.BRACKETS:
            return f"{prefix}[]"
        return prefix


class Duplicates(str, Enum):
    """Policy for keys that occur more than once in decoded input."""

    COMBINE = "combine"
    FIRST = "first"
    LAST = "last"


class DecodeKind(str, Enum):
    """Tells a kind-aware decoder whether it is decoding a key or a value."""

    KEY = "key"
    VALUE = "value"


class Sentinel(Enum):
    """The ``utf8=`` parameter announcing the charset of a submission.

    ``ISO`` is what browsers send from Latin1 pages (the check mark survives
    only as a numeric entity); ``CHARSET`` is the UTF-8 check mark.
    """

    ISO = ("&#10003;", "utf8=%26%2310003%3B")
    CHARSET = ("✓", "utf8=%E2%9C%93")

    @property
    def raw(self) -> str:
        return self.value[0]

    @property
    def encoded(self) -> str:
        return self.value[1]

    @classmethod
    def for_charset(cls, charset: Charset) -> Sentinel:
        """Return the sentinel an encoder emits for *charset*."""

        return cls.ISO if charset is Charset.LATIN1 else cls.CHARSET


@dataclass(frozen=True, slots=True)
class FunctionFilter:
    """Encode filter called as ``function(prefix, value)`` at every node.

    The return value replaces the node; the root is visited with prefix ``""``.
    """

    function: FilterFunction

    def __call__(self, prefix: str, value: Any) -> Any:
        return self.function(prefix, value)


@dataclass(frozen=True, slots=True)
class IterableFilter:
    """Encode filter listing (and ordering) the keys or indices to visit."""

    keys: tuple[Any, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "keys", tuple(self.keys))

    def __iter__(self):
        return iter(self.keys)


Filter = FunctionFilter | IterableFilter


@dataclass(frozen=True, slots=True)
class DecodeOptions:
    """Options that configure :func:`lib_nested_query.decode`.

    Why
        Decoding untrusted text must be bounded (``depth``, ``list_limit``,
        ``parameter_limit``) and the many historical dialects of the wire
        format need switches. One frozen record keeps a call deterministic.

    What
        ``allow_dots`` defaults to ``None`` meaning "follow
        ``decode_dot_in_keys``"; after construction it always holds a bool.
        ``decoder`` receives ``(text, charset)``; ``kind_decoder`` receives
        ``(text, charset, kind)`` and wins when both are given.

    Raises
        InvalidArgument: unsupported charset, non-positive ``parameter_limit``,
        empty delimiter, or ``decode_dot_in_keys`` with ``allow_dots=False``.

    Examples
    --------
    >>> DecodeOptions(decode_dot_in_keys=True).allow_dots
    True
    >>> DecodeOptions().copy_with(depth=1).depth
    1
    """

    allow_dots: bool | None = None
    decode_dot_in_keys: bool = False
    allow_empty_lists: bool = False
    allow_sparse_lists: bool = False
    list_limit: int = 20
    charset: Charset = Charset.UTF8
    charset_sentinel: bool = False
    comma: bool = False
    delimiter: str | re.Pattern[str] = "&"
    depth: int = 5
    parameter_limit: int | float = 1000
    duplicates: Duplicates = Duplicates.COMBINE
    ignore_query_prefix: bool = False
    interpret_numeric_entities: bool = False
    parse_lists: bool = True
    strict_depth: bool = False
    strict_null_handling: bool = False
    throw_on_limit_exceeded: bool = False
    decoder: ValueDecoder | None = None
    kind_decoder: KindAwareDecoder | None = None
    _explicit_allow_dots: bool | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "charset", _coerce_charset(self.charset))
        object.__setattr__(self, "duplicates", _coerce(Duplicates, self.duplicates, "duplicates"))
        if isinstance(self.delimiter, str):
            if not self.delimiter:
                raise InvalidArgument("Delimiter must not be empty.")
        elif not isinstance(self.delimiter, re.Pattern):
            raise InvalidArgument("Delimiter must be a string or a compiled regular expression.")
        if isinstance(self.parameter_limit, bool) or not self.parameter_limit > 0:
            raise InvalidArgument("Parameter limit must be a positive number.")
        if self.decode_dot_in_keys and self.allow_dots is False:
            raise InvalidArgument("decode_dot_in_keys=True requires allow_dots=True.")
        object.__setattr__(self, "_explicit_allow_dots", self.allow_dots)
        if self.allow_dots is None:
            object.__setattr__(self, "allow_dots", bool(self.decode_dot_in_keys))

    def copy_with(self, **changes: Any) -> DecodeOptions:
        """Return a new record with *changes* applied.

        An ``allow_dots`` that was implied by ``decode_dot_in_keys`` stays
        implied, so switching ``decode_dot_in_keys`` on later is coherent.
        """

        if "allow_dots" not in changes:
            changes["allow_dots"] = self._explicit_allow_dots
        return replace(self, **changes)


@dataclass(frozen=True, slots=True)
class EncodeOptions:
    """Options that configure :func:`lib_nested_query.encode`.

    ``list_format`` defaults to ``None`` and resolves from the legacy
    ``indices`` flag (``False`` selects :attr:`ListFormat.REPEAT`); it always
    holds a :class:`ListFormat` after construction. ``allow_dots`` follows
    ``encode_dot_in_keys`` unless given. ``filter`` accepts a
    :class:`FunctionFilter`, an :class:`IterableFilter`, a bare callable or a
    list/tuple of keys.

    >>> EncodeOptions(indices=False).list_format
    <ListFormat.REPEAT: 'repeat'>
    >>> EncodeOptions(encode_dot_in_keys=True).allow_dots
    True
    """

    encoder: ValueEncoder | None = None
    date_serializer: DateSerializer | None = None
    list_format: ListFormat | None = None
    indices: bool | None = None
    allow_dots: bool | None = None
    add_query_prefix: bool = False
    allow_empty_lists: bool = False
    charset: Charset = Charset.UTF8
    charset_sentinel: bool = False
    delimiter: str = "&"
    encode: bool = True
    encode_dot_in_keys: bool = False
    encode_values_only: bool = False
    format: Format = Format.RFC3986
    filter: Filter | None = None
    skip_nulls: bool = False
    strict_null_handling: bool = False
    comma_round_trip: bool | None = None
    comma_compact_nulls: bool = False
    sort: Sorter | None = None
    _explicit_allow_dots: bool | None = field(default=None, init=False, repr=False, compare=False)
    _explicit_list_format: ListFormat | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "charset", _coerce_charset(self.charset))
        object.__setattr__(self, "format", _coerce(Format, self.format, "format"))
        if not isinstance(self.delimiter, str):
            raise InvalidArgument("Delimiter must be a string.")
        object.__setattr__(self, "filter", _coerce_filter(self.filter))

        explicit_format = None if self.list_format is None else _coerce(ListFormat, self.list_format, "list_format")
        object.__setattr__(self, "_explicit_list_format", explicit_format)
        if explicit_format is None:
            explicit_format = ListFormat.REPEAT if self.indices is False else ListFormat.INDICES
        object.__setattr__(self, "list_format", explicit_format)

        object.__setattr__(self, "_explicit_allow_dots", self.allow_dots)
        if self.allow_dots is None:
            object.__setattr__(self, "allow_dots", bool(self.encode_dot_in_keys))

    @property
    def formatter(self) -> Callable[[str], str]:
        """Shortcut for ``self.format.formatter``."""

        return self.format.formatter

    def copy_with(self, **changes: Any) -> EncodeOptions:
        """Return a new record with *changes* applied, keeping implied flags implied."""

        if "allow_dots" not in changes:
            changes["allow_dots"] = self._explicit_allow_dots
        if "list_format" not in changes:
            changes["list_format"] = self._explicit_list_format
        return replace(self, **changes)


def _coerce_charset(value: object) -> Charset:
    try:
        return Charset(value)
    except ValueError as exc:
        raise InvalidArgument(f"Invalid charset: {value!r}") from exc


def _coerce(enum_type: type[Enum], value: object, name: str) -> Any:
    try:
        return enum_type(value)
    except ValueError as exc:
        raise InvalidArgument(f"Invalid {name}: {value!r}") from exc


def _coerce_filter(value: object) -> Filter | None:
    if value is None or isinstance(value, (FunctionFilter, IterableFilter)):
        return value
    if callable(value):
        return FunctionFilter(value)
    if isinstance(value, Iterable) and not isinstance(value, (str, bytes, Mapping)):
        return IterableFilter(tuple(value))
    raise InvalidArgument(f"Unsupported filter: {value!r}")


DEFAULT_DECODE_OPTIONS: Final[DecodeOptions] = DecodeOptions()
DEFAULT_ENCODE_OPTIONS: Final[EncodeOptions] = EncodeOptions()
