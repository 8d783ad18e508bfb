from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from lib_nested_query import DecodeOptions, LimitExceeded, OverflowDict, Undefined
from lib_nested_query.application.merge import combine, combine_with_limit, compact, merge

SCALAR = st.one_of(st.none(), st.booleans(), st.integers(), st.text(max_size=5), st.just(Undefined))
TREE = st.recursive(
    SCALAR,
    lambda children: st.one_of(
        st.lists(children, max_size=4),
        st.dictionaries(st.text(max_size=4), children, max_size=4),
    ),
    max_leaves=15,
)


def _contains_undefined(value) -> bool:
    stack = [value]
    while stack:
        node = stack.pop()
        if node is Undefined:
            return True
        if isinstance(node, dict):
            stack.extend(node.values())
        elif isinstance(node, list):
            stack.extend(node)
    return False


def test_duplicate_scalar_keys_become_lists() -> None:
    assert merge({"a": "b"}, {"a": "c"}) == {"a": ["b", "c"]}


def test_list_concatenation_drops_undefined() -> None:
    assert merge(["a"], ["b", Undefined, "c"]) == ["a", "b", "c"]


def test_scalar_source_becomes_flag_key() -> None:
    assert merge({"a": "b"}, "c") == {"a": "b", "c": True}


def test_null_target_with_scalar_source() -> None:
    assert merge(None, "x") == [None, "x"]


def test_null_target_with_mapping_source_is_normalized() -> None:
    source = {"a": ("b",)}
    result = merge(None, source)
    assert result == {"a": ["b"]}
    assert result is not source


def test_scalar_target_with_mapping_source() -> None:
    assert merge("a", {"b": "c"}) == ["a", {"b": "c"}]


def test_list_and_mapping_merge_into_one_mapping() -> None:
    assert merge(["a", "b"], {"2": "c"}) == {"0": "a", "1": "b", "2": "c"}
    assert merge({"x": "y"}, ["a", Undefined, "c"]) == {"x": "y", "0": "a", "2": "c"}


def test_sparse_target_slots_are_filled_by_position() -> None:
    assert merge([Undefined, "b"], ["a"]) == ["a", "b"]


def test_lists_of_mappings_merge_by_index() -> None:
    assert merge([{"a": "1"}], [{"b": "2"}, {"c": "3"}]) == [{"a": "1", "b": "2"}, {"c": "3"}]


def test_nested_collisions_merge_deeply() -> None:
    target = {"a": {"b": {"c": "1"}}}
    assert merge(target, {"a": {"b": {"d": "2"}}}) == {"a": {"b": {"c": "1", "d": "2"}}}


def test_disabled_list_parsing_drops_undefined_slots() -> None:
    result = merge([Undefined, "b"], "c", DecodeOptions(parse_lists=False))
    assert result == ["b", "c"]


def test_sets_union() -> None:
    assert merge({"a"}, "b") == {"a", "b"}
    assert merge({"a"}, ["b", "a"]) == {"a", "b"}


def test_overflow_target_keeps_appending() -> None:
    target = OverflowDict({"0": "a"}, next_index=1)
    result = merge(target, "b")
    assert result == {"0": "a", "1": "b"}
    assert result.next_index == 2


def test_scalar_target_is_prepended_to_overflow_source() -> None:
    source = OverflowDict({"0": "a", "1": "b", "x": "c"}, next_index=2)
    result = merge("z", source)
    assert isinstance(result, OverflowDict)
    assert result == {"0": "z", "1": "a", "2": "b", "x": "c"}
    assert result.next_index == 3


def test_mapping_merge_keeps_overflow_marker() -> None:
    source = OverflowDict({"0": "a"}, next_index=4)
    result = merge({"k": "v"}, source)
    assert isinstance(result, OverflowDict)
    result.append("b")
    assert result["4"] == "b"


def test_self_referential_merge_terminates() -> None:
    node: dict = {}
    node["a"] = node
    result = merge(node, {"a": node})
    assert result is node
    assert result["a"] is node


def test_combine() -> None:
    assert combine(["a"], "b") == ["a", "b"]
    assert combine("a", ["b", "c"]) == ["a", "b", "c"]
    assert combine(None, "x") == [None, "x"]


def test_combine_appends_to_overflow() -> None:
    overflow = OverflowDict({"0": "a"}, next_index=1)
    assert combine(overflow, ["b", "c"]) is overflow
    assert overflow == {"0": "a", "1": "b", "2": "c"}


def test_combine_with_limit_promotes_to_overflow() -> None:
    assert combine_with_limit(["a"], "b", 5) == ["a", "b"]
    promoted = combine_with_limit(["a"], "b", 1)
    assert isinstance(promoted, OverflowDict)
    assert promoted == {"0": "a", "1": "b"}
    assert promoted.next_index == 2
    again = combine_with_limit(promoted, "c", 1)
    assert again == {"0": "a", "1": "b", "2": "c"}


def test_combine_with_limit_can_raise() -> None:
    with pytest.raises(LimitExceeded, match="Only 1 element allowed"):
        combine_with_limit(["a"], "b", 1, throw_on_limit_exceeded=True)


def test_compact_strips_undefined() -> None:
    assert compact({"a": ["x", Undefined, "y"], "b": Undefined}) == {"a": ["x", "y"]}


def test_compact_sparse_lists_keep_positions() -> None:
    assert compact([Undefined, "x"], allow_sparse_lists=True) == [None, "x"]


def test_compact_turns_overflow_into_plain_dict() -> None:
    result = compact({"a": OverflowDict({"0": "x"})})
    assert type(result["a"]) is dict


def test_compact_preserves_cycles() -> None:
    node: dict = {"x": [Undefined, "y"]}
    node["self"] = node
    result = compact(node)
    assert result is node
    assert result["self"] is result
    assert result["x"] == ["y"]


@given(st.dictionaries(st.text(max_size=4), TREE, max_size=4))
def test_compact_is_idempotent(tree) -> None:
    once = compact(tree)
    assert not _contains_undefined(once)
    assert compact(once) == once
