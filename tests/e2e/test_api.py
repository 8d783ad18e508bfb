"""End-to-end coverage of the public ``decode`` / ``encode`` surface.

Exercises the package root exactly as consumers import it: round trips,
boundary behaviour for depth and list limits, the duplicates policy, the
charset sentinel and the asymmetric treatment of cyclic input.
"""

from __future__ import annotations

import string

import pytest
from hypothesis import given
from hypothesis import strategies as st

import lib_nested_query
from lib_nested_query import (
    Charset,
    CyclicReference,
    DecodeOptions,
    Duplicates,
    EncodeOptions,
    ListFormat,
    QueryStringError,
    decode,
    encode,
)

KEY = st.text(alphabet=string.ascii_letters, min_size=1, max_size=5)
SCALAR = st.text(alphabet=string.ascii_letters + string.digits, min_size=1, max_size=6)
LEAF = st.one_of(SCALAR, st.lists(SCALAR, min_size=1, max_size=2))
INNER = st.dictionaries(KEY, LEAF, min_size=1, max_size=2)
VALUE = st.one_of(LEAF, INNER, st.lists(INNER, min_size=1, max_size=2))
TREE = st.dictionaries(KEY, VALUE, max_size=2)
FLAT_LISTS = st.dictionaries(KEY, st.one_of(SCALAR, st.lists(SCALAR, min_size=2, max_size=4)), max_size=4)
TEXT_KEY = st.text(st.characters(exclude_characters="[].", exclude_categories=("Cs",)), min_size=1, max_size=6)
TEXT_TREE = st.dictionaries(
    TEXT_KEY,
    st.one_of(st.text(max_size=6), st.lists(st.text(max_size=6), min_size=1, max_size=3)),
    max_size=4,
)


def test_public_surface() -> None:
    for name in lib_nested_query.__all__:
        assert hasattr(lib_nested_query, name)


@given(TREE)
def test_round_trip_with_indices(tree) -> None:
    assert decode(encode(tree, EncodeOptions(encode=False))) == tree


@given(FLAT_LISTS)
def test_round_trip_with_brackets(tree) -> None:
    assert decode(encode(tree, EncodeOptions(encode=False, list_format=ListFormat.BRACKETS))) == tree


@given(TEXT_TREE)
def test_round_trip_of_arbitrary_text_when_encoded(tree) -> None:
    assert decode(encode(tree)) == tree


def test_readme_example() -> None:
    query = "filter[status]=active&filter[tags][]=a&filter[tags][]=b&page=2"
    decoded = decode(query)
    assert decoded == {"filter": {"status": "active", "tags": ["a", "b"]}, "page": "2"}
    assert encode(decoded, EncodeOptions(encode=False, list_format=ListFormat.BRACKETS)) == query


def test_depth_boundary() -> None:
    assert decode("a[b][c][d][e][f][g][h]=i") == {"a": {"b": {"c": {"d": {"e": {"f": {"[g][h]": "i"}}}}}}}
    assert decode("a[b][c]=d", DecodeOptions(depth=1)) == {"a": {"b": {"[c]": "d"}}}


def test_list_limit_boundary() -> None:
    assert decode("a[20]=a", DecodeOptions(list_limit=20)) == {"a": ["a"]}
    assert decode("a[21]=a", DecodeOptions(list_limit=20)) == {"a": {"21": "a"}}


def test_duplicates_policy() -> None:
    assert decode("foo=bar&foo=baz") == {"foo": ["bar", "baz"]}
    assert decode("foo=bar&foo=baz", DecodeOptions(duplicates=Duplicates.FIRST)) == {"foo": "bar"}
    assert decode("foo=bar&foo=baz", DecodeOptions(duplicates="last")) == {"foo": "baz"}


def test_cycle_asymmetry() -> None:
    node: dict = {"name": "n"}
    node["self"] = node
    decoded = decode(node)
    assert decoded["name"] == "n"
    assert decoded["self"]["self"] is decoded["self"]
    with pytest.raises(CyclicReference):
        encode(node)


def test_charset_sentinel() -> None:
    assert decode("utf8=%E2%9C%93&a=%C3%B8", DecodeOptions(charset_sentinel=True)) == {"a": "ø"}
    latin1 = DecodeOptions(charset_sentinel=True, charset=Charset.LATIN1)
    assert decode("utf8=%E2%9C%93&%C3%B8=%C3%B8", latin1) == {"ø": "ø"}


def test_charset_sentinel_round_trip() -> None:
    encoded = encode({"a": "ø"}, EncodeOptions(charset_sentinel=True, charset=Charset.LATIN1))
    assert encoded == "utf8=%26%2310003%3B&a=%F8"
    assert decode(encoded, DecodeOptions(charset_sentinel=True)) == {"a": "ø"}


def test_comma_examples() -> None:
    assert encode({"a": ["b", "c"]}, EncodeOptions(list_format=ListFormat.COMMA)) == "a=b%2Cc"
    assert encode({"a": ["b"]}, EncodeOptions(list_format=ListFormat.COMMA, comma_round_trip=True)) == "a%5B%5D=b"


def test_comma_round_trip_preserves_single_element_lists() -> None:
    options = EncodeOptions(list_format=ListFormat.COMMA, comma_round_trip=True, encode=False)
    for value in ({"a": ["b"]}, {"a": ["b", "c"]}):
        assert decode(encode(value, options), DecodeOptions(comma=True)) == value


def test_dot_notation_round_trip() -> None:
    value = {"name.obj": {"first": "John", "last": "Doe"}}
    encoded = encode(value, EncodeOptions(encode_dot_in_keys=True))
    assert decode(encoded, DecodeOptions(decode_dot_in_keys=True)) == value


def test_strict_null_round_trip() -> None:
    value = {"a": None, "b": "", "c": {"d": None}}
    encoded = encode(value, EncodeOptions(strict_null_handling=True))
    assert decode(encoded, DecodeOptions(strict_null_handling=True)) == value


def test_decoded_results_are_independent() -> None:
    first = decode("a[b]=c")
    first["a"]["b"] = "changed"
    assert decode("a[b]=c") == {"a": {"b": "c"}}


def test_all_library_errors_share_a_base() -> None:
    with pytest.raises(QueryStringError):
        decode(42)
    with pytest.raises(QueryStringError):
        DecodeOptions(parameter_limit=0)
