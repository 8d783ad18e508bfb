"""Contract tests for the callback ports.

The default codec functions must satisfy the protocols the option records
accept, and user callbacks shaped like the protocols must plug straight in.
"""

from __future__ import annotations

from datetime import date

from lib_nested_query import DecodeKind, DecodeOptions, EncodeOptions, FunctionFilter, decode, encode
from lib_nested_query.application import codec, ports


def test_default_codec_satisfies_value_ports() -> None:
    """codec.decode / codec.encode are the default ValueDecoder / ValueEncoder."""

    assert isinstance(codec.decode, ports.ValueDecoder)
    assert isinstance(codec.encode, ports.ValueEncoder)


def test_kind_aware_decoder_contract() -> None:
    """A KindAwareDecoder sees every key and value with its kind."""

    seen: list[tuple[str, DecodeKind]] = []

    def upper_values(text, charset, kind):
        seen.append((text, kind))
        decoded = codec.decode(text, charset)
        return decoded.upper() if kind is DecodeKind.VALUE else decoded

    assert isinstance(upper_values, ports.KindAwareDecoder)
    assert decode("a=b", DecodeOptions(kind_decoder=upper_values)) == {"a": "B"}
    assert seen == [("a", DecodeKind.KEY), ("b", DecodeKind.VALUE)]


def test_encode_callbacks_contract() -> None:
    """Date serializers, sorters and filter functions plug into EncodeOptions."""

    def stamp(value: date) -> str:
        return value.strftime("%Y%m%d")

    def reverse(left, right) -> int:
        return (left < right) - (left > right)

    def keep(prefix, value):
        return value

    for callback, port in ((stamp, ports.DateSerializer), (reverse, ports.Sorter), (keep, ports.FilterFunction)):
        assert isinstance(callback, port)

    options = EncodeOptions(date_serializer=stamp, sort=reverse, encode=False)
    assert encode({"a": date(2024, 5, 6), "b": "c"}, options) == "b=c&a=20240506"
    assert encode({"a": "b"}, EncodeOptions(filter=FunctionFilter(keep))) == "a=b"
