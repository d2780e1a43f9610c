import json

import pytest

from docweave.core.errors import ConfigurationError, ValidationError
from docweave.core.schema import DerivationRule, DerivationSpec, Schema

COMMANDS_SCHEMA = {
    "x-template": "template.json",
    "definitions": {
        "option": {"type": "object", "properties": {"input": {"type": "string"}}},
    },
    "properties": {
        "version": {"type": "string", "x-base-property": True, "x-default-value": "1.0"},
        "commands": {
            "type": "array",
            "x-frontmatter-part": True,
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string"},
                    "level": {"type": "string", "enum": ["beginner", "advanced"]},
                    "options": {"$ref": "#/definitions/option"},
                },
            },
        },
        "names": {"type": "array", "x-derived-from": "commands[].name", "x-derived-unique": True},
    },
}


def test_collection_target_and_template():
    schema = Schema.from_dict(COMMANDS_SCHEMA)
    assert schema.collection_target == "commands"
    assert schema.template_path == "template.json"
    assert schema.empty_structure() == {"commands": []}


def test_no_collection_target():
    schema = Schema.from_dict({"properties": {"title": {"type": "string"}}})
    assert schema.collection_target is None
    assert schema.empty_structure() == {}
    assert [r.path for r in schema.validation_rules().rules] == ["title"]


def test_nested_collection_target():
    schema = Schema.from_dict(
        {"properties": {"tools": {"type": "object", "properties": {"list": {"type": "array", "x-frontmatter-part": True}}}}}
    )
    assert schema.collection_target == "tools.list"
    assert schema.empty_structure() == {"tools": {"list": []}}


def test_local_refs_resolved():
    schema = Schema.from_dict(COMMANDS_SCHEMA)
    option = schema.property_schema("commands")["items"]["properties"]["options"]
    assert option["properties"]["input"]["type"] == "string"


def test_file_refs_resolved(tmp_path):
    (tmp_path / "defs.json").write_text(json.dumps({"tag": {"type": "string"}}))
    path = tmp_path / "schema.json"
    path.write_text(json.dumps({"properties": {"tag": {"$ref": "defs.json#/tag"}}}))
    schema = Schema.load(path)
    assert schema.property_schema("tag") == {"type": "string"}


def test_yaml_schema(tmp_path):
    path = tmp_path / "schema.yml"
    path.write_text("properties:\n  title:\n    type: string\n")
    assert Schema.load(path).property_schema("title") == {"type": "string"}


def test_circular_ref_rejected():
    with pytest.raises(ConfigurationError, match="circular"):
        Schema.from_dict({"definitions": {"a": {"$ref": "#/definitions/a"}}, "properties": {"x": {"$ref": "#/definitions/a"}}})


def test_unresolvable_ref_rejected():
    with pytest.raises(ConfigurationError):
        Schema.from_dict({"properties": {"x": {"$ref": "#/definitions/nope"}}})


@pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
def test_bad_schema_files(tmp_path, content):
    path = tmp_path / "schema.json"
    path.write_text(content)
    with pytest.raises(ConfigurationError):
        Schema.load(path)


def test_missing_schema_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        Schema.load(tmp_path / "nope.json")


def test_validation_rules_use_item_schema():
    rules = Schema.from_dict(COMMANDS_SCHEMA).validation_rules()
    assert rules.scope == "commands[]"
    paths = [r.path for r in rules.rules]
    assert paths == ["name", "level", "options", "options.input"]

    rules.validate({"name": "init", "level": "beginner", "options": {"input": "a.txt"}})
    rules.validate({"name": "init"})
    with pytest.raises(ValidationError) as excinfo:
        rules.validate({"level": "expert", "options": {"input": 3}}, path="x.md")
    violations = excinfo.value.violations
    assert len(violations) == 3
    assert excinfo.value.path == "x.md"


def test_integer_and_boolean_types():
    schema = Schema.from_dict(
        {"properties": {"n": {"type": "integer"}, "flag": {"type": "boolean"}, "v": {"type": ["string", "null"]}}}
    )
    rules = schema.validation_rules()
    assert rules.violations({"n": 2, "flag": False, "v": None}) == []
    assert rules.violations({"n": 2.0}) == []
    assert len(rules.violations({"n": True})) == 1
    assert len(rules.violations({"n": 2.5, "flag": "yes"})) == 2


def test_derivation_rules_in_schema_order():
    specs = Schema.from_dict(COMMANDS_SCHEMA).derivation_rules()
    assert specs == [DerivationSpec(source_path="commands[].name", target_field="names", unique=True)]


def test_base_property_rules():
    rules = Schema.from_dict(COMMANDS_SCHEMA).base_property_rules()
    assert [(r.path, r.default, r.has_default) for r in rules] == [("version", "1.0", True)]


def test_derivation_rule_create_validates():
    rule = DerivationRule.create(" a[].b ", "out", 1)
    assert rule == DerivationRule(source_path="a[].b", target_field="out", unique=True)
    for bad in [("", "out"), ("a", None), ("a..b", "out"), ("a", "out[]")]:
        with pytest.raises(ConfigurationError):
            DerivationRule.create(*bad)


def test_flatten_paths_found_on_item_and_extension_blocks():
    schema = Schema.from_dict(
        {
            "properties": {
                "reqs": {
                    "type": "array",
                    "x-frontmatter-part": True,
                    "x-flatten-arrays": "traceability",
                    "items": {
                        "type": "object",
                        "properties": {"links": {"type": "array", "extensions": {"x-flatten-arrays": "links"}}},
                    },
                },
                "notes": {"type": "array", "x-flatten-arrays": " traceability "},
            }
        }
    )
    assert schema.flatten_paths() == ["traceability", "links"]


@pytest.mark.parametrize("value", [3, "", "a..b", "items[].name"])
def test_flatten_paths_rejects_bad_declarations(value):
    schema = Schema.from_dict({"properties": {"a": {"type": "array", "x-flatten-arrays": value}}})
    with pytest.raises(ConfigurationError):
        schema.flatten_paths()


def test_flatten_paths_empty_without_directive():
    assert Schema.from_dict({"properties": {"a": {"type": "string"}}}).flatten_paths() == []
