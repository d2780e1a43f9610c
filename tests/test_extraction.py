from docweave.core.extraction import extract_parts
from docweave.core.schema import Schema

TARGETED = Schema.from_dict({"properties": {"commands": {"type": "array", "x-frontmatter-part": True}}})
UNTARGETED = Schema.from_dict({"properties": {"title": {"type": "string"}}})


def test_without_target_returns_copy():
    data = [{"a": 1}, {"b": 2}]
    out = extract_parts(data, UNTARGETED)
    assert out == data
    assert out is not data


def test_each_document_becomes_one_element():
    out = extract_parts([{"name": "a"}, {"name": "b"}], TARGETED)
    assert out == [{"name": "a"}, {"name": "b"}]


def test_document_holding_target_array_contributes_its_items():
    docs = [
        {"commands": [{"name": "a"}, {"name": "b"}, "junk"]},
        {"name": "c"},
    ]
    assert extract_parts(docs, TARGETED) == [{"name": "a"}, {"name": "b"}, {"name": "c"}]


def test_non_mappings_dropped():
    assert extract_parts([{"name": "a"}, 3, None], TARGETED) == [{"name": "a"}]


def test_nothing_valid_returns_input():
    data = ["x", 1]
    assert extract_parts(data, TARGETED) == ["x", 1]
    assert extract_parts([], TARGETED) == []
