from __future__ import annotations

from collections import OrderedDict

from lib_nested_query import OverflowDict, Undefined
from lib_nested_query.application.normalize import (
    is_container,
    is_mapping,
    is_sequence,
    is_set,
    key_text,
    normalize,
    to_index_dict,
)


def test_type_predicates() -> None:
    assert is_mapping(OrderedDict())
    assert is_sequence((1, 2)) and is_sequence([1])
    assert not is_sequence("ab") and not is_sequence(b"ab")
    assert is_set(frozenset())
    assert is_container({}) and is_container(set()) and not is_container("x")


def test_key_text() -> None:
    assert key_text("a") == "a"
    assert key_text(1) == "1"
    assert key_text(None) == ""
    assert key_text(False) == "false"


def test_normalize_copies_foreign_containers() -> None:
    source = OrderedDict([(1, (2, {None: 3}))])
    result = normalize(source)
    assert result == {"1": [2, {"": 3}]}
    assert type(result) is dict
    assert type(result["1"]) is list


def test_normalize_returns_scalars_unchanged() -> None:
    marker = object()
    assert normalize(marker) is marker
    assert normalize(Undefined) is Undefined


def test_normalize_preserves_shared_references() -> None:
    shared = {"x": 1}
    result = normalize({"a": shared, "b": [shared]})
    assert result["a"] is result["b"][0]
    assert result["a"] is not shared


def test_normalize_preserves_cycles() -> None:
    node: dict = {"name": "root"}
    node["self"] = node
    node["children"] = [node]
    copy = normalize(node)
    assert copy is not node
    assert copy["self"] is copy
    assert copy["children"][0] is copy


def test_normalize_keeps_overflow_marker() -> None:
    result = normalize({"a": OverflowDict({"0": "x"}, next_index=3)})
    assert isinstance(result["a"], OverflowDict)
    assert result["a"].next_index == 3


def test_normalize_copies_sets() -> None:
    source = {"a": {1, 2}}
    result = normalize(source)
    assert result["a"] == {1, 2}
    assert result["a"] is not source["a"]


def test_normalize_handles_deep_nesting_without_recursion() -> None:
    root: dict = {}
    node = root
    for _ in range(5000):
        child: dict = {}
        node["n"] = child
        node = child
    copy = normalize(root)
    depth = 0
    while copy:
        copy = copy["n"]
        depth += 1
    assert depth == 5000


def test_to_index_dict_skips_undefined() -> None:
    assert to_index_dict(["a", Undefined, "c"]) == {"0": "a", "2": "c"}
