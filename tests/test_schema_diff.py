"""Tests for structural schema diffing."""

from typing import Any

import pytest

from schemagate.models.enums import ChangeKind
from schemagate.services.analyzer import load_tree
from schemagate.services.schema_diff import NodeDelta, diff_trees, enum_difference


def diff(old: Any, new: Any) -> list[NodeDelta]:
    return diff_trees(load_tree(old), load_tree(new))


def kinds(deltas: list[NodeDelta]) -> list[tuple[str, ChangeKind]]:
    return [(d.field, d.kind) for d in deltas]


def obj(properties: dict[str, Any], required: list[str] | None = None, **extra: Any) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties, **extra}
    if required is not None:
        schema["required"] = required
    return schema


class TestIdentity:
    """Identical inputs produce no deltas."""

    @pytest.mark.parametrize(
        "schema",
        [
            True,
            False,
            {},
            {"type": "string", "maxLength": 3, "pattern": "^a"},
            obj({"a": {"type": "integer"}}, required=["a"], additionalProperties=False),
            {"oneOf": [{"type": "string"}, {"type": "null"}]},
            {"type": "array", "prefixItems": [{"type": "string"}], "items": {"type": "integer"}},
            {"if": {"type": "string"}, "then": {"minLength": 1}, "else": {"type": "integer"}},
        ],
    )
    def test_same_schema(self, schema: Any) -> None:
        assert diff(schema, schema) == []

    def test_any_versus_empty(self) -> None:
        assert diff(True, {}) == []

    def test_property_order_irrelevant(self) -> None:
        old = obj({"a": {"type": "string"}, "b": {"type": "integer"}})
        new = obj({"b": {"type": "integer"}, "a": {"type": "string"}})
        assert diff(old, new) == []

    def test_required_order_irrelevant(self) -> None:
        props = {"a": {"type": "string"}, "b": {"type": "string"}}
        assert diff(obj(props, ["a", "b"]), obj(props, ["b", "a"])) == []


class TestTypeChanges:
    """Tests for TypeChanged detection."""

    def test_property_type_changed(self) -> None:
        deltas = diff(obj({"a": {"type": "string"}}), obj({"a": {"type": "integer"}}))
        assert len(deltas) == 1
        delta = deltas[0]
        assert delta.kind == ChangeKind.TYPE_CHANGED
        assert delta.path == ("properties", "a")
        assert delta.old_value == "string"
        assert delta.new_value == "integer"

    def test_no_descent_under_type_change(self) -> None:
        old = obj({"a": {"type": "string", "minLength": 1}})
        new = obj({"a": {"type": "integer", "minimum": 1}})
        assert kinds(diff(old, new)) == [("properties.a", ChangeKind.TYPE_CHANGED)]

    def test_root_type_change_uses_dollar_path(self) -> None:
        deltas = diff({"type": "string"}, {"type": "number"})
        assert deltas[0].field == "$"
        assert deltas[0].path == ()

    def test_type_list_label(self) -> None:
        deltas = diff({"type": ["string", "null"]}, {"type": "string"})
        assert len(deltas) == 1
        assert deltas[0].old_value == ["null", "string"]
        assert deltas[0].new_value == "string"

    def test_any_versus_never(self) -> None:
        deltas = diff(True, False)
        assert kinds(deltas) == [("$", ChangeKind.TYPE_CHANGED)]
        assert (deltas[0].old_value, deltas[0].new_value) == ("any", "never")


class TestProperties:
    """Tests for property and required-set changes."""

    def test_fields_in_sorted_order(self) -> None:
        old = obj({"m": {"type": "string"}})
        new = obj({"zeta": {"type": "string"}, "m": {"type": "string"}, "alpha": {"type": "string"}})
        assert kinds(diff(old, new)) == [
            ("properties.alpha", ChangeKind.FIELD_ADDED),
            ("properties.zeta", ChangeKind.FIELD_ADDED),
        ]

    def test_field_added_carries_required_and_default(self) -> None:
        old = obj({})
        new = obj({"a": {"type": "string", "default": "x"}}, required=["a"])
        (delta,) = diff(old, new)
        assert delta.kind == ChangeKind.FIELD_ADDED
        assert delta.required is True
        assert delta.has_default is True
        assert delta.new_value == {"type": "string", "default": "x"}

    def test_field_removed_carries_required(self) -> None:
        (delta,) = diff(obj({"a": {"type": "string"}}, ["a"]), obj({}))
        assert delta.kind == ChangeKind.FIELD_REMOVED
        assert delta.required is True
        assert delta.old_value == {"type": "string"}

    def test_required_added_on_unchanged_property(self) -> None:
        props = {"a": {"type": "string"}}
        assert kinds(diff(obj(props), obj(props, ["a"]))) == [
            ("properties.a", ChangeKind.REQUIRED_ADDED)
        ]

    def test_required_removed(self) -> None:
        props = {"a": {"type": "string"}}
        assert kinds(diff(obj(props, ["a"]), obj(props))) == [
            ("properties.a", ChangeKind.REQUIRED_REMOVED)
        ]

    def test_required_without_declared_property(self) -> None:
        assert kinds(diff(obj({}), obj({}, ["ghost"]))) == [
            ("properties.ghost", ChangeKind.REQUIRED_ADDED)
        ]

    def test_nested_objects(self) -> None:
        old = obj({"user": obj({"email": {"type": "string"}})})
        new = obj({"user": obj({"email": {"type": "string", "format": "email"}})})
        assert kinds(diff(old, new)) == [
            ("properties.user.properties.email.format", ChangeKind.CONSTRAINT_ADDED)
        ]


class TestConstraints:
    """Tests for scalar constraint changes."""

    @pytest.mark.parametrize(
        "keyword,old,new,expected",
        [
            ("minLength", 1, 5, ChangeKind.CONSTRAINT_TIGHTENED),
            ("minLength", 5, 1, ChangeKind.CONSTRAINT_LOOSENED),
            ("maxLength", 10, 5, ChangeKind.CONSTRAINT_TIGHTENED),
            ("maxLength", 5, 10, ChangeKind.CONSTRAINT_LOOSENED),
        ],
    )
    def test_string_bounds(self, keyword: str, old: int, new: int, expected: ChangeKind) -> None:
        deltas = diff({"type": "string", keyword: old}, {"type": "string", keyword: new})
        assert kinds(deltas) == [(keyword, expected)]
        assert (deltas[0].old_value, deltas[0].new_value) == (old, new)

    def test_maximum_raised_is_loosened(self) -> None:
        deltas = diff({"type": "number", "maximum": 10}, {"type": "number", "maximum": 20})
        assert kinds(deltas) == [("maximum", ChangeKind.CONSTRAINT_LOOSENED)]

    def test_constraint_added_and_removed(self) -> None:
        assert kinds(diff({"type": "integer"}, {"type": "integer", "minimum": 0})) == [
            ("minimum", ChangeKind.CONSTRAINT_ADDED)
        ]
        assert kinds(diff({"type": "integer", "minimum": 0}, {"type": "integer"})) == [
            ("minimum", ChangeKind.CONSTRAINT_REMOVED)
        ]

    def test_constraints_in_sorted_order(self) -> None:
        old = {"type": "string", "minLength": 1, "maxLength": 10}
        new = {"type": "string", "minLength": 2, "maxLength": 5}
        assert [d.field for d in diff(old, new)] == ["maxLength", "minLength"]

    def test_multiple_of(self) -> None:
        def multiple_of(old: float, new: float) -> list[ChangeKind]:
            deltas = diff({"type": "number", "multipleOf": old}, {"type": "number", "multipleOf": new})
            return [d.kind for d in deltas]

        assert multiple_of(2, 4) == [ChangeKind.CONSTRAINT_TIGHTENED]
        assert multiple_of(4, 2) == [ChangeKind.CONSTRAINT_LOOSENED]
        assert multiple_of(0.1, 0.5) == [ChangeKind.CONSTRAINT_TIGHTENED]
        assert multiple_of(2, 3) == [ChangeKind.CONSTRAINT_TIGHTENED, ChangeKind.CONSTRAINT_LOOSENED]

    def test_pattern_change_is_both(self) -> None:
        deltas = diff({"type": "string", "pattern": "^a"}, {"type": "string", "pattern": "^b"})
        assert [d.kind for d in deltas] == [
            ChangeKind.CONSTRAINT_TIGHTENED,
            ChangeKind.CONSTRAINT_LOOSENED,
        ]

    def test_unique_items(self) -> None:
        assert kinds(diff({"type": "array"}, {"type": "array", "uniqueItems": True})) == [
            ("uniqueItems", ChangeKind.CONSTRAINT_ADDED)
        ]

    def test_owner_path(self) -> None:
        old = obj({"age": {"type": "integer", "minimum": 0}})
        new = obj({"age": {"type": "integer", "minimum": 18}})
        (delta,) = diff(old, new)
        assert delta.path == ("properties", "age", "minimum")
        assert delta.owner_path == ("properties", "age")


class TestEnums:
    """Tests for enum and const changes."""

    def test_narrowed(self) -> None:
        (delta,) = diff({"enum": ["A", "B", "C"]}, {"enum": ["A", "B"]})
        assert delta.kind == ChangeKind.ENUM_NARROWED
        assert delta.field == "enum"
        assert delta.detail == ["C"]

    def test_widened(self) -> None:
        (delta,) = diff({"enum": ["A", "B"]}, {"enum": ["A", "B", "C"]})
        assert delta.kind == ChangeKind.ENUM_WIDENED
        assert delta.detail == ["C"]

    def test_partial_overlap_emits_both(self) -> None:
        deltas = diff({"enum": ["A", "B", "C"]}, {"enum": ["A", "D"]})
        assert [(d.kind, d.detail) for d in deltas] == [
            (ChangeKind.ENUM_NARROWED, ["B", "C"]),
            (ChangeKind.ENUM_WIDENED, ["D"]),
        ]

    def test_reordered_enum_is_unchanged(self) -> None:
        assert diff({"enum": ["A", "B"]}, {"enum": ["B", "A"]}) == []

    def test_enum_added(self) -> None:
        assert kinds(diff({"type": "string"}, {"type": "string", "enum": ["a"]})) == [
            ("enum", ChangeKind.CONSTRAINT_ADDED)
        ]

    def test_const_changed(self) -> None:
        deltas = diff({"const": 1}, {"const": 2})
        assert [d.kind for d in deltas] == [ChangeKind.ENUM_NARROWED, ChangeKind.ENUM_WIDENED]

    def test_enum_values_compare_structurally(self) -> None:
        assert enum_difference([{"a": 1, "b": 2}, 1], [{"b": 2, "a": 1}]) == [1]
        assert enum_difference([1], [True]) == [1]


class TestAdditionalProperties:
    """Tests for additionalProperties changes."""

    def test_true_to_false(self) -> None:
        (delta,) = diff({"type": "object"}, {"type": "object", "additionalProperties": False})
        assert delta.kind == ChangeKind.ADDITIONAL_PROPERTIES_CHANGED
        assert delta.field == "additionalProperties"
        assert (delta.old_value, delta.new_value) == (True, False)

    def test_bool_to_schema(self) -> None:
        (delta,) = diff(
            {"type": "object", "additionalProperties": False},
            {"type": "object", "additionalProperties": {"type": "string"}},
        )
        assert delta.kind == ChangeKind.ADDITIONAL_PROPERTIES_CHANGED
        assert delta.new_value == {"type": "string"}

    def test_schema_to_schema_recurses(self) -> None:
        deltas = diff(
            {"type": "object", "additionalProperties": {"type": "string"}},
            {"type": "object", "additionalProperties": {"type": "integer"}},
        )
        assert kinds(deltas) == [("*", ChangeKind.TYPE_CHANGED)]


class TestComposition:
    """Tests for allOf/anyOf/oneOf and conditional diffing."""

    def test_reordered_variants(self) -> None:
        deltas = diff(
            {"oneOf": [{"type": "string"}, {"type": "integer"}]},
            {"oneOf": [{"type": "integer"}, {"type": "string"}]},
        )
        assert kinds(deltas) == [
            ("oneOf", ChangeKind.COMPOSITION_CHANGED),
            ("oneOf.0", ChangeKind.TYPE_CHANGED),
            ("oneOf.1", ChangeKind.TYPE_CHANGED),
        ]
        assert deltas[0].detail == "reordered"

    def test_variant_added(self) -> None:
        deltas = diff(
            {"anyOf": [{"type": "string"}]},
            {"anyOf": [{"type": "string"}, {"type": "null"}]},
        )
        assert kinds(deltas) == [("anyOf", ChangeKind.COMPOSITION_CHANGED)]
        assert (deltas[0].old_value, deltas[0].new_value) == (1, 2)

    def test_aligned_variants_recurse(self) -> None:
        deltas = diff(
            {"allOf": [{"type": "string", "maxLength": 10}]},
            {"allOf": [{"type": "string", "maxLength": 5}]},
        )
        assert kinds(deltas) == [("allOf.0.maxLength", ChangeKind.CONSTRAINT_TIGHTENED)]

    def test_keyword_added(self) -> None:
        deltas = diff({"type": "object"}, {"type": "object", "oneOf": [{"required": ["a"]}]})
        assert kinds(deltas) == [("oneOf", ChangeKind.COMPOSITION_CHANGED)]
        assert deltas[0].detail == "added"

    def test_conditional_branch_added(self) -> None:
        deltas = diff(
            {"type": "object", "if": {"required": ["a"]}},
            {"type": "object", "if": {"required": ["a"]}, "then": {"required": ["b"]}},
        )
        assert kinds(deltas) == [("then", ChangeKind.COMPOSITION_CHANGED)]


class TestArrays:
    """Tests for array items and tuples."""

    def test_items_recurse(self) -> None:
        deltas = diff(
            {"type": "array", "items": {"type": "string"}},
            {"type": "array", "items": {"type": "integer"}},
        )
        assert kinds(deltas) == [("items", ChangeKind.TYPE_CHANGED)]

    def test_items_added_compares_against_any(self) -> None:
        deltas = diff({"type": "array"}, {"type": "array", "items": {"type": "string"}})
        assert kinds(deltas) == [("items", ChangeKind.TYPE_CHANGED)]
        assert deltas[0].old_value == "any"

    def test_tuple_grows(self) -> None:
        deltas = diff(
            {"type": "array", "prefixItems": [{"type": "string"}]},
            {"type": "array", "prefixItems": [{"type": "string"}, {"type": "integer"}]},
        )
        assert kinds(deltas) == [("prefixItems.1", ChangeKind.FIELD_ADDED)]

    def test_tuple_shrinks(self) -> None:
        deltas = diff(
            {"type": "array", "prefixItems": [{"type": "string"}, {"type": "integer"}]},
            {"type": "array", "prefixItems": [{"type": "string"}]},
        )
        assert kinds(deltas) == [("prefixItems.1", ChangeKind.FIELD_REMOVED)]


class TestRecursiveSchemas:
    """Tests for diffs over cycle sentinels."""

    TREE = {
        "definitions": {
            "Node": {
                "type": "object",
                "properties": {"children": {"type": "array", "items": {"$ref": "#/definitions/Node"}}},
            }
        },
        "$ref": "#/definitions/Node",
    }

    def test_self_diff_is_empty(self) -> None:
        assert diff(self.TREE, self.TREE) == []

    def test_change_inside_recursive_schema(self) -> None:
        new = {
            "definitions": {
                "Node": {
                    "type": "object",
                    "properties": {
                        "children": {"type": "array", "items": {"$ref": "#/definitions/Node"}},
                        "label": {"type": "string"},
                    },
                }
            },
            "$ref": "#/definitions/Node",
        }
        assert kinds(diff(self.TREE, new)) == [("properties.label", ChangeKind.FIELD_ADDED)]


class TestDraftNormalization:
    """Equivalent schemas across drafts diff cleanly."""

    def test_exclusive_minimum_draft04_vs_draft06(self) -> None:
        old = {
            "$schema": "http://json-schema.org/draft-04/schema#",
            "type": "number",
            "minimum": 0,
            "exclusiveMinimum": True,
        }
        new = {"$schema": "http://json-schema.org/draft-06/schema#", "type": "number", "exclusiveMinimum": 0}
        assert diff(old, new) == []


class TestDeterminism:
    """The differ is a pure function."""

    def test_repeated_diff_identical(self) -> None:
        old = obj({"b": {"type": "string"}, "a": {"enum": [1, 2, 3]}, "c": {"type": "integer"}}, ["a"])
        new = obj({"a": {"enum": [3, 4]}, "d": {"type": "string"}, "c": {"type": "number"}}, ["a", "d"])
        first = diff(old, new)
        second = diff(old, new)
        assert first == second
        assert [d.field for d in first] == [
            "properties.a.enum",
            "properties.a.enum",
            "properties.b",
            "properties.c",
            "properties.d",
        ]
