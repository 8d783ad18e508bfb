"""Query-string decoder: tokenizer, structure builder and result assembly.

Purpose
-------
Turn flat ``key=value`` text (or an already split mapping) into the nested
result tree, honouring every :class:`~lib_nested_query.domain.options.DecodeOptions`
switch.

Contents
    - ``decode``: pipeline entry point used by :mod:`lib_nested_query.core`.
    - ``parse_query_values``: splits raw text into a flat ``{key: value}``
      mapping (delimiters, parameter limit, charset sentinel, duplicates).
    - ``parse_list_value``: comma splitting and list-limit enforcement.
    - ``split_key_into_segments``: key-path tokenizer (brackets, dots, depth).
    - ``parse_keys``: builds the single-path structure for one parameter.

System Role
-----------
Sits between the codec (token decoding) and the merge engine (folding the
single-path structures together). Never recurses: segments are folded
leaf-first in a loop and the merge engine and compaction use work stacks.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from typing import Any, Final

from ..domain.errors import DepthExceeded, InvalidArgument, LimitExceeded
from ..domain.options import DEFAULT_DECODE_OPTIONS, Charset, DecodeKind, DecodeOptions, Duplicates, Sentinel
from ..domain.values import Undefined, canonical_index
from . import codec
from .merge import combine, combine_with_limit, compact, list_limit_message, merge
from .normalize import is_mapping, key_text, normalize

_DOT_TO_BRACKET: Final[re.Pattern[str]] = re.compile(r"\.([^.\[]+)")
_ENCODED_OPEN: Final[re.Pattern[str]] = re.compile("%5B", re.IGNORECASE)
_ENCODED_CLOSE: Final[re.Pattern[str]] = re.compile("%5D", re.IGNORECASE)
_SENTINEL_PREFIX: Final[str] = "utf8="


def decode(
    value: str | Mapping[Any, Any] | Iterable[tuple[Any, Any]] | None,
    options: DecodeOptions | None = None,
) -> dict[str, Any]:
    """Decode *value* into a nested ``dict``.

    Why
    ----
    Single place where text input and mapping input converge so both follow
    the same key-path and merge rules.

    What
    ----
    Builds a flat ``{key: value}`` mapping (repeated keys in pair input follow
    the duplicates policy), turns every entry into a single-path structure, merges them into one tree and compacts it.
    Shared and cyclic references inside mapping input are preserved.

    Parameters
    ----------
    value:
        Query text, a mapping of raw keys to values, an iterable of
        ``(key, value)`` pairs such as :func:`urllib.parse.parse_qsl` output,
        or ``None``.
    options:
        Decode options; defaults to :data:`DEFAULT_DECODE_OPTIONS`.

    Returns
    -------
    dict[str, Any]
        The decoded tree; empty for empty or ``None`` input.

    Raises
    ------
    InvalidArgument
        When *value* is neither text, a mapping nor an iterable of pairs.
    LimitExceeded / DepthExceeded
        When the corresponding strict options are enabled.

    Examples
    --------
    >>> decode("a[b][c]=d&e=f")
    {'a': {'b': {'c': 'd'}}, 'e': 'f'}
    >>> decode("a[]=b&a[]=c")
    {'a': ['b', 'c']}
    >>> decode([("a", "1"), ("a", "2"), ("b[c]", "3")])
    {'a': ['1', '2'], 'b': {'c': '3'}}
    """

    options = options or DEFAULT_DECODE_OPTIONS
    if value is None:
        return {}
    if isinstance(value, str):
        if not value:
            return {}
        flat = parse_query_values(value, options)
        values_parsed = True
    elif is_mapping(value):
        if not value:
            return {}
        flat = _parse_mapping_input(value, options)
        values_parsed = False
    elif isinstance(value, Iterable) and not isinstance(value, (bytes, bytearray)):
        flat = _parse_pair_input(value, options)
        if not flat:
            return {}
        values_parsed = False
    else:
        raise InvalidArgument(
            f"The input must be a string, a mapping or an iterable of pairs, got {type(value).__name__}."
        )

    if options.parse_lists and options.list_limit > 0 and len(flat) > options.list_limit:
        options = options.copy_with(parse_lists=False)

    result: Any = {}
    for key, item in flat.items():
        parsed = parse_keys(key, item, options, values_parsed)
        if parsed is None:
            continue
        if not result and is_mapping(parsed):
            result = parsed
            continue
        result = merge(result, parsed, options)
    return compact(result, options.allow_sparse_lists)


def parse_query_values(text: str, options: DecodeOptions = DEFAULT_DECODE_OPTIONS) -> dict[str, Any]:
    """Split *text* into a flat mapping of decoded keys to decoded values.

    Handles the query prefix, encoded brackets, the parameter limit, the
    charset sentinel, comma lists, numeric entities and the duplicates
    policy. Keys are not tokenized yet.

    >>> parse_query_values("a=1&a=2&b[c]=3")
    {'a': ['1', '2'], 'b[c]': '3'}
    """

    if options.ignore_query_prefix and text.startswith("?"):
        text = text[1:]
    text = _ENCODED_CLOSE.sub("]", _ENCODED_OPEN.sub("[", text))
    parts = _limit_parameters(_split(text, options.delimiter), options)

    charset = options.charset
    skip_index = -1
    if options.charset_sentinel:
        for index, part in enumerate(parts):
            if part.startswith(_SENTINEL_PREFIX):
                if part == Sentinel.CHARSET.encoded:
                    charset = Charset.UTF8
                elif part == Sentinel.ISO.encoded:
                    charset = Charset.LATIN1
                skip_index = index
                break

    flat: dict[str, Any] = {}
    for index, part in enumerate(parts):
        if index == skip_index:
            continue
        bracket_equals = part.find("]=")
        position = part.find("=") if bracket_equals == -1 else bracket_equals + 1

        if position == -1:
            key = _decode_key(part, charset, options)
            value: Any = None if options.strict_null_handling else ""
        else:
            key = _decode_key(part[:position], charset, options)
            existing = flat.get(key)
            current_length = len(existing) if isinstance(existing, list) else 0
            raw = parse_list_value(part[position + 1 :], options, current_length)
            if isinstance(raw, list):
                value = [_decode_value(item, charset, options) for item in raw]
            else:
                value = _decode_value(raw, charset, options)

        if value and options.interpret_numeric_entities and charset is Charset.LATIN1:
            joined = ",".join(codec.to_text(item) for item in value) if isinstance(value, list) else codec.to_text(value)
            value = codec.interpret_numeric_entities(joined)

        if "[]=" in part and isinstance(value, list):
            value = [value]

        if key is None:
            continue
        if key not in flat or options.duplicates is Duplicates.LAST:
            flat[key] = value
        elif options.duplicates is Duplicates.COMBINE:
            flat[key] = combine(flat[key], value)
    return flat


def _split(text: str, delimiter: str | re.Pattern[str]) -> list[str]:
    if isinstance(delimiter, str):
        return text.split(delimiter)
    return delimiter.split(text)


def _limit_parameters(parts: list[str], options: DecodeOptions) -> list[str]:
    limit = options.parameter_limit
    if limit == math.inf or len(parts) <= limit:
        return parts
    limit = int(limit)
    if options.throw_on_limit_exceeded:
        noun = "parameter" if limit == 1 else "parameters"
        raise LimitExceeded(f"Parameter limit exceeded. Only {limit} {noun} allowed.")
    return parts[:limit]


def _parse_mapping_input(value: Mapping[Any, Any], options: DecodeOptions) -> dict[str, Any]:
    """Flatten mapping input; keys that stringify alike follow the duplicates policy."""

    keys = list(value.keys())
    values = normalize(list(value.values()))
    flat: dict[str, Any] = {}
    for raw_key, item in zip(keys, values):
        key = key_text(raw_key)
        if key not in flat or options.duplicates is Duplicates.LAST:
            flat[key] = item
        elif options.duplicates is Duplicates.COMBINE:
            flat[key] = combine_with_limit(flat[key], item, options.list_limit, options.throw_on_limit_exceeded)
    return flat


def _parse_pair_input(pairs: Iterable[Any], options: DecodeOptions) -> dict[str, Any]:
    """Flatten ``(key, value)`` pairs; repeats of a decoded key follow the duplicates policy.

    The first raw key of each group is kept so key parsing still sees the
    original text.
    """

    flat: dict[str, Any] = {}
    representatives: dict[str, str] = {}
    for pair in pairs:
        try:
            raw_key, item = pair
        except (TypeError, ValueError) as exc:
            raise InvalidArgument(f"Expected a (key, value) pair, got {pair!r}.") from exc
        raw = "" if raw_key is None else key_text(raw_key)
        if not raw:
            continue
        decoded = _decode_key(raw, options.charset, options)
        if decoded is None:
            continue
        value = normalize(item)
        representative = representatives.get(decoded)
        if representative is None:
            representatives[decoded] = raw
            flat[raw] = value
        elif options.duplicates is Duplicates.COMBINE:
            flat[representative] = combine_with_limit(
                flat[representative], value, options.list_limit, options.throw_on_limit_exceeded
            )
        elif options.duplicates is Duplicates.LAST:
            flat[representative] = value
    return flat


def _decode_key(text: str, charset: Charset, options: DecodeOptions) -> str | None:
    decoded = _decode_token(text, charset, DecodeKind.KEY, options)
    if decoded is None or isinstance(decoded, str):
        return decoded or None
    raise InvalidArgument(f"Key decoder must return a string or None, got {type(decoded).__name__}.")


def _decode_value(text: str, charset: Charset, options: DecodeOptions) -> Any:
    return _decode_token(text, charset, DecodeKind.VALUE, options)


def _decode_token(text: str, charset: Charset, kind: DecodeKind, options: DecodeOptions) -> Any:
    if options.kind_decoder is not None:
        return options.kind_decoder(text, charset, kind)
    if options.decoder is not None:
        return options.decoder(text, charset)
    return codec.decode(text, charset)


def parse_list_value(value: Any, options: DecodeOptions, current_length: int) -> Any:
    """Split comma lists and enforce the list limit for one raw value.

    >>> parse_list_value("a,b", DecodeOptions(comma=True), 0)
    ['a', 'b']
    """

    if isinstance(value, str) and value and options.comma and "," in value:
        parts = value.split(",")
        if options.throw_on_limit_exceeded and len(parts) > options.list_limit:
            raise LimitExceeded(list_limit_message(options.list_limit))
        return parts
    if options.throw_on_limit_exceeded and current_length >= options.list_limit:
        raise LimitExceeded(list_limit_message(options.list_limit))
    return value


def split_key_into_segments(key: str, allow_dots: bool, depth: int, strict_depth: bool) -> list[str]:
    """Tokenize a decoded key into its path segments.

    Why
        Bracket and dot syntax both describe nesting; bounding the number of
        segments stops hostile keys from building deep trees.
    What
        Returns the bare parent name followed by bracket segments (brackets
        kept). Dots become brackets first when *allow_dots* is set. Once
        *depth* segments are taken the remainder is kept as one literal
        segment, or :class:`DepthExceeded` is raised under *strict_depth*.
        A non-positive *depth* keeps the key whole.

    Examples
    --------
    >>> split_key_into_segments("a[b][c]", False, 5, False)
    ['a', '[b]', '[c]']
    >>> split_key_into_segments("a.b[c]", True, 5, False)
    ['a', '[b]', '[c]']
    >>> split_key_into_segments("a[b][c]", False, 1, False)
    ['a', '[b]', '[[c]]']
    """

    if allow_dots:
        key = _DOT_TO_BRACKET.sub(r"[\1]", key)
    if depth <= 0:
        return [key]

    segments: list[str] = []
    opening = key.find("[")
    parent = key[:opening] if opening >= 0 else key
    if parent:
        segments.append(parent)

    level = 0
    while opening >= 0 and level < depth:
        closing = key.find("]", opening + 1)
        if closing < 0:
            break
        segments.append(key[opening : closing + 1])
        level += 1
        opening = key.find("[", closing + 1)

    if opening < 0:
        return segments
    if strict_depth and level >= depth:
        raise DepthExceeded(f"Input depth exceeded depth option of {depth} and strict_depth is true")
    segments.append(f"[{key[opening:]}]")
    return segments


def parse_keys(key: str | None, value: Any, options: DecodeOptions, values_parsed: bool) -> Any:
    """Build the single-path structure for one parameter (``None`` for empty keys).

    >>> parse_keys("a[1]", "x", DecodeOptions(), True)
    {'a': [Undefined, 'x']}
    """

    if not key:
        return None
    segments = split_key_into_segments(key, options.allow_dots, options.depth, options.strict_depth)
    return _parse_object(segments, value, options, values_parsed)


def _parse_object(chain: list[str], value: Any, options: DecodeOptions, values_parsed: bool) -> Any:
    """Fold *chain* leaf-first around *value*."""

    if values_parsed:
        leaf = value
    else:
        leaf = parse_list_value(value, options, _current_list_length(chain, value))

    for segment in reversed(chain):
        if segment == "[]" and options.parse_lists:
            if options.allow_empty_lists and (leaf == "" or (options.strict_null_handling and leaf is None)):
                node: Any = []
            else:
                node = combine([], leaf)
            leaf = node
            continue

        bracketed = segment.startswith("[") and segment.endswith("]")
        name = segment[1:-1] if bracketed else segment
        if options.decode_dot_in_keys:
            name = name.replace("%2E", ".")

        if not options.parse_lists or options.list_limit < 0:
            leaf = {name or "0": leaf}
            continue

        index = canonical_index(name) if bracketed else None
        if index is not None and index <= options.list_limit:
            leaf = [Undefined] * index + [leaf]
        else:
            leaf = {name: leaf}
    return leaf


def _current_list_length(chain: list[str], value: Any) -> int:
    if not chain or chain[-1] != "[]":
        return 0
    parent = canonical_index("".join(chain[:-1]))
    if parent is not None and isinstance(value, list) and parent < len(value) and isinstance(value[parent], list):
        return len(value[parent])
    return 0
