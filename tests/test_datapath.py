import pytest

from docweave.core.datapath import (
    MISSING,
    collect_values,
    flatten_at,
    flatten_nested,
    get_value,
    has_value,
    parse_path,
    set_value,
)

DATA = {
    "commands": [
        {"name": "init", "options": {"input": ["a", "b"]}},
        {"name": "build", "options": {"input": "c"}},
        {"name": None},
        "not-a-mapping",
    ],
    "meta": {"owner": "ops"},
}


def test_parse_path_segments():
    segs = parse_path("commands[].options.input")
    assert [(s.key, s.expand) for s in segs] == [("commands", True), ("options", False), ("input", False)]


@pytest.mark.parametrize("bad", ["", "a..b", "a[0].b", "[]", "a[b"])
def test_parse_path_rejects_malformed(bad):
    with pytest.raises(ValueError):
        parse_path(bad)


def test_collect_values_expands_and_flattens():
    assert collect_values(DATA, "commands[].name") == ["init", "build"]
    assert collect_values(DATA, "commands[].options.input") == ["a", "b", "c"]
    assert collect_values(DATA, "meta.owner") == ["ops"]
    assert collect_values(DATA, "missing[].x") == []


def test_get_and_has_value():
    assert get_value(DATA, "meta.owner") == "ops"
    assert get_value(DATA, "meta.nope") is MISSING
    assert get_value(DATA, "meta.nope", None) is None
    assert has_value(DATA, "meta")
    assert not has_value(DATA, "meta.owner.deeper")
    with pytest.raises(ValueError):
        get_value(DATA, "commands[].name")


def test_set_value_copies_along_path():
    original = {"a": {"b": 1, "keep": [1]}, "other": {"x": 1}}
    updated = set_value(original, "a.c", 2)
    assert updated == {"a": {"b": 1, "keep": [1], "c": 2}, "other": {"x": 1}}
    assert original == {"a": {"b": 1, "keep": [1]}, "other": {"x": 1}}
    assert updated["other"] is original["other"]


def test_set_value_replaces_non_object_intermediates():
    assert set_value({"a": 3}, "a.b.c", True) == {"a": {"b": {"c": True}}}
    with pytest.raises(ValueError):
        set_value({}, "a[].b", 1)


def test_flatten_nested_keeps_order():
    assert flatten_nested(["a", ["b", "c"], "d", [["e"], "f"], []]) == ["a", "b", "c", "d", "e", "f"]


def test_flatten_at_rewrites_only_the_target():
    data = {"trace": {"reqs": [["R1", "R2"], "R3"]}, "other": [["x"]]}
    out = flatten_at(data, "trace.reqs")
    assert out == {"trace": {"reqs": ["R1", "R2", "R3"]}, "other": [["x"]]}
    assert data["trace"]["reqs"] == [["R1", "R2"], "R3"]


def test_flatten_at_leaves_non_arrays_alone():
    data = {"trace": "R1"}
    assert flatten_at(data, "trace") is data
    assert flatten_at(data, "missing.path") is data
