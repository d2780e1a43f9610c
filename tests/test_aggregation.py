import logging

from docweave.core.aggregation import Aggregator, dedupe
from docweave.core.schema import DerivationSpec, Schema


class StubSchema:
    def __init__(self, target=None, derivations=()):
        self.collection_target = target
        self._derivations = list(derivations)

    def derivation_rules(self):
        return self._derivations

    def base_property_rules(self):
        return []

    def validation_rules(self):
        return None


def test_collection_aggregate_with_unique_derivation():
    schema = Schema.from_dict(
        {
            "properties": {
                "commands": {"type": "array", "x-frontmatter-part": True},
                "categories": {"x-derived-from": "commands[].category", "x-derived-unique": True},
                "all": {"x-derived-from": "commands[].category"},
            }
        }
    )
    items = [{"name": "a", "category": "git"}, {"name": "b", "category": "db"}, {"name": "c", "category": "git"}]
    agg = Aggregator(schema).aggregate(items)
    assert agg.data["commands"] == items
    assert agg.data["categories"] == ["git", "db"]
    assert agg.data["all"] == ["git", "db", "git"]
    assert agg.report.elements == 3
    assert agg.report.derived == ["categories", "all"]
    assert agg.report.failed_rules == []


def test_aggregate_without_target_merges_shallow():
    agg = Aggregator(StubSchema()).aggregate([{"a": 1, "b": {"x": 1}}, {"b": {"y": 2}}])
    assert agg.data == {"a": 1, "b": {"y": 2}}


def test_nested_target_path():
    agg = Aggregator(StubSchema(target="tools.list")).aggregate([{"n": 1}])
    assert agg.data == {"tools": {"list": [{"n": 1}]}}


def test_invalid_derivation_skipped_and_reported(caplog):
    schema = StubSchema(
        target="items",
        derivations=[
            DerivationSpec(source_path="", target_field="bad"),
            DerivationSpec(source_path="items[].x", target_field="xs", unique=True),
        ],
    )
    logger = logging.getLogger("tests.aggregation")
    with caplog.at_level("WARNING", logger="tests.aggregation"):
        agg = Aggregator(schema, logger=logger).aggregate([{"x": 1}, {"x": 1}, {"x": 2}])
    assert agg.data["xs"] == [1, 2]
    assert "bad" not in agg.data
    assert len(agg.report.failed_rules) == 1
    assert "Skipping derivation rule" in caplog.text


def test_empty_input_keeps_shape():
    agg = Aggregator(StubSchema(target="items", derivations=[("items[].x", "xs")])).aggregate([])
    assert agg.data == {"items": [], "xs": []}


def test_dedupe_keeps_types_and_order():
    assert dedupe([1, "1", 1, True, {"a": 1}, {"a": 1}, [1], [1]]) == [1, "1", True, {"a": 1}, [1]]
