"""Normalized in-memory representation of JSON Schema documents.

Raw JSON Schema fragments are parsed into ``SchemaNode`` trees so the differ
never needs to know which draft a document was written in:

- ``true`` / ``{}`` become kind ``any``, ``false`` becomes kind ``never``
- a list ``type`` becomes an ``anyOf`` node with one variant per type
- draft-04 boolean ``exclusiveMinimum``/``exclusiveMaximum`` are converted to
  their numeric (draft-06+) form
- array-form ``items`` + ``additionalItems`` and 2020-12 ``prefixItems`` +
  ``items`` both end up as ``prefix_items`` + trailing ``items``
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from schemagate.errors import InvalidSchemaError
from schemagate.models.enums import JsonSchemaDraft, SchemaKind

logger = logging.getLogger(__name__)

TYPE_NAMES: dict[str, SchemaKind] = {
    "null": SchemaKind.NULL,
    "boolean": SchemaKind.BOOLEAN,
    "integer": SchemaKind.INTEGER,
    "number": SchemaKind.NUMBER,
    "string": SchemaKind.STRING,
    "array": SchemaKind.ARRAY,
    "object": SchemaKind.OBJECT,
}

# Canonical order for multi-type unions, so ["null", "string"] == ["string", "null"]
TYPE_ORDER = list(TYPE_NAMES.values())

COMPOSITION_KEYWORDS = ("allOf", "anyOf", "oneOf")
CONDITIONAL_KEYWORDS = ("if", "then", "else")

NUMERIC_CONSTRAINTS = ("minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum", "multipleOf")

CONSTRAINT_KEYWORDS: dict[SchemaKind, tuple[str, ...]] = {
    SchemaKind.STRING: ("minLength", "maxLength", "pattern", "format"),
    SchemaKind.NUMBER: NUMERIC_CONSTRAINTS,
    SchemaKind.INTEGER: NUMERIC_CONSTRAINTS,
    SchemaKind.ARRAY: ("minItems", "maxItems", "uniqueItems"),
    SchemaKind.OBJECT: ("minProperties", "maxProperties"),
}

STRING_VALUED = {"pattern", "format"}
BOOLEAN_VALUED = {"uniqueItems"}

# Keywords that hint at a kind when "type" is omitted, checked in this order
KIND_HINTS: tuple[tuple[SchemaKind, frozenset[str]], ...] = (
    (
        SchemaKind.OBJECT,
        frozenset(
            {
                "properties",
                "required",
                "additionalProperties",
                "patternProperties",
                "propertyNames",
                "minProperties",
                "maxProperties",
            }
        ),
    ),
    (
        SchemaKind.ARRAY,
        frozenset(
            {"items", "prefixItems", "additionalItems", "contains", "minItems", "maxItems", "uniqueItems"}
        ),
    ),
    (SchemaKind.STRING, frozenset({"minLength", "maxLength", "pattern", "format"})),
    (SchemaKind.NUMBER, frozenset(NUMERIC_CONSTRAINTS)),
)

# Keywords that never change what a fragment accepts
ANNOTATION_KEYWORDS = frozenset(
    {
        "$schema",
        "$id",
        "id",
        "$comment",
        "$anchor",
        "title",
        "description",
        "default",
        "examples",
        "deprecated",
        "readOnly",
        "writeOnly",
        "definitions",
        "$defs",
    }
)

_DRAFT_MARKERS = (
    ("draft-04", JsonSchemaDraft.DRAFT_04),
    ("draft-06", JsonSchemaDraft.DRAFT_06),
    ("draft-07", JsonSchemaDraft.DRAFT_07),
    ("2019-09", JsonSchemaDraft.DRAFT_2019_09),
    ("2020-12", JsonSchemaDraft.DRAFT_2020_12),
)

# Drafts in which $ref siblings are applied rather than ignored
_REF_SIBLING_DRAFTS = {JsonSchemaDraft.DRAFT_2019_09, JsonSchemaDraft.DRAFT_2020_12}

# Documents without a recognizable $schema are read as the latest draft
DEFAULT_DRAFT = JsonSchemaDraft.DRAFT_2020_12


@dataclass
class SchemaNode:
    """A single parsed JSON Schema fragment."""

    kind: SchemaKind
    constraints: dict[str, Any] = field(default_factory=dict)
    properties: dict[str, "SchemaNode"] = field(default_factory=dict)
    required: frozenset[str] = frozenset()
    items: "SchemaNode | None" = None
    prefix_items: "tuple[SchemaNode, ...] | None" = None
    additional_properties: "bool | SchemaNode" = True
    enum_values: tuple[Any, ...] | None = None
    const_value: bool = False  # enum_values came from "const"
    composition: dict[str, tuple["SchemaNode", ...]] = field(default_factory=dict)
    conditional: dict[str, "SchemaNode"] = field(default_factory=dict)
    has_default: bool = False
    default: Any = None
    ref: str | None = None  # pointer for "ref" and "recursive" nodes
    source: Any = field(default=None, repr=False, compare=False)

    def to_canonical(self) -> dict[str, Any]:
        """Return an order-independent, JSON-serializable view of this node."""
        if self.kind in (SchemaKind.REF, SchemaKind.RECURSIVE):
            return {"kind": str(self.kind), "ref": self.ref}

        result: dict[str, Any] = {"kind": str(self.kind)}
        if self.constraints:
            result["constraints"] = self.constraints
        if self.properties:
            result["properties"] = {k: v.to_canonical() for k, v in self.properties.items()}
        if self.required:
            result["required"] = sorted(self.required)
        if self.items is not None:
            result["items"] = self.items.to_canonical()
        if self.prefix_items is not None:
            result["prefixItems"] = [n.to_canonical() for n in self.prefix_items]
        if self.additional_properties is not True:
            ap = self.additional_properties
            result["additionalProperties"] = ap if isinstance(ap, bool) else ap.to_canonical()
        if self.enum_values is not None:
            result["enum"] = sorted(canonical_value(v) for v in self.enum_values)
        if self.composition:
            result["composition"] = {
                k: [n.to_canonical() for n in v] for k, v in self.composition.items()
            }
        if self.conditional:
            result["conditional"] = {k: v.to_canonical() for k, v in self.conditional.items()}
        return result

    def fingerprint(self) -> str:
        """Stable string identifying this node's structure."""
        return json.dumps(self.to_canonical(), sort_keys=True, default=str)


def canonical_value(value: Any) -> str:
    """Canonical JSON text for an instance value (enum/const comparisons)."""
    return json.dumps(value, sort_keys=True, default=str)


def escape_pointer_token(token: str) -> str:
    """Escape a JSON pointer reference token (RFC 6901)."""
    return token.replace("~", "~0").replace("/", "~1")


def detect_draft(document: Any) -> JsonSchemaDraft | None:
    """Detect the JSON Schema draft from a document's $schema URI."""
    if not isinstance(document, dict):
        return None
    uri = document.get("$schema")
    if not isinstance(uri, str):
        return None
    for marker, draft in _DRAFT_MARKERS:
        if marker in uri:
            return draft
    return None


class SchemaParser:
    """Parses raw JSON Schema fragments into SchemaNode trees."""

    def __init__(self, draft: JsonSchemaDraft | None = None):
        self.draft = draft or DEFAULT_DRAFT

    def parse(self, fragment: Any, pointer: str = "#") -> SchemaNode:
        """Parse a fragment; ``pointer`` locates it for error messages."""
        if fragment is True:
            return SchemaNode(kind=SchemaKind.ANY, source=fragment)
        if fragment is False:
            return SchemaNode(kind=SchemaKind.NEVER, source=fragment)
        if not isinstance(fragment, dict):
            raise InvalidSchemaError(
                f"Schema at '{pointer}' must be an object or a boolean, "
                f"got {type(fragment).__name__}",
                path=pointer,
            )

        if "$ref" in fragment:
            return self._parse_ref(fragment, pointer)

        declared = fragment.get("type")
        if declared is None:
            kind = self._infer_kind(fragment)
        elif isinstance(declared, list):
            kinds = sorted(
                {self._type_kind(t, pointer) for t in declared},
                key=TYPE_ORDER.index,
            )
            if not kinds:
                raise InvalidSchemaError(f"Empty type list at '{pointer}'", path=pointer)
            if len(kinds) > 1:
                return self._parse_type_union(fragment, kinds, pointer)
            kind = kinds[0]
        else:
            kind = self._type_kind(declared, pointer)

        return self._build(fragment, kind, pointer)

    def _type_kind(self, name: Any, pointer: str) -> SchemaKind:
        if not isinstance(name, str) or name not in TYPE_NAMES:
            raise InvalidSchemaError(f"Unknown type {name!r} at '{pointer}'", path=pointer)
        return TYPE_NAMES[name]

    def _infer_kind(self, fragment: dict[str, Any]) -> SchemaKind:
        keys = fragment.keys()
        for kind, hints in KIND_HINTS:
            if hints & keys:
                return kind
        for keyword in COMPOSITION_KEYWORDS:
            if keyword in fragment:
                return SchemaKind(keyword)
        return SchemaKind.ANY

    def _parse_type_union(
        self, fragment: dict[str, Any], kinds: list[SchemaKind], pointer: str
    ) -> SchemaNode:
        # Value sets and defaults live on the union node only
        shared = {k: v for k, v in fragment.items() if k not in ("enum", "const", "default")}
        variants = tuple(self._build(shared, kind, f"{pointer}/type/{kind}") for kind in kinds)
        enum_values, const_value = self._parse_enum(fragment, pointer)
        return SchemaNode(
            kind=SchemaKind.ANY_OF,
            composition={"anyOf": variants},
            enum_values=enum_values,
            const_value=const_value,
            has_default="default" in fragment,
            default=fragment.get("default"),
            source=fragment,
        )

    def _parse_ref(self, fragment: dict[str, Any], pointer: str) -> SchemaNode:
        ref = fragment["$ref"]
        if not isinstance(ref, str):
            raise InvalidSchemaError(f"$ref at '{pointer}' must be a string", path=pointer)

        node = SchemaNode(
            kind=SchemaKind.REF,
            ref=ref,
            has_default="default" in fragment,
            default=fragment.get("default"),
            source=fragment,
        )
        siblings = {
            k: v for k, v in fragment.items() if k != "$ref" and k not in ANNOTATION_KEYWORDS
        }
        if not siblings:
            return node
        if self.draft not in _REF_SIBLING_DRAFTS:
            logger.debug("Ignoring $ref siblings %s at %s", sorted(siblings), pointer)
            return node
        rest = self.parse(siblings, pointer)
        return SchemaNode(
            kind=SchemaKind.ALL_OF,
            composition={"allOf": (node, rest)},
            has_default=node.has_default,
            default=node.default,
            source=fragment,
        )

    def _build(self, fragment: dict[str, Any], kind: SchemaKind, pointer: str) -> SchemaNode:
        node = SchemaNode(kind=kind, source=fragment)
        node.constraints = self._parse_constraints(fragment, kind, pointer)
        if kind is SchemaKind.OBJECT:
            self._parse_object(fragment, node, pointer)
        elif kind is SchemaKind.ARRAY:
            self._parse_array(fragment, node, pointer)
        node.enum_values, node.const_value = self._parse_enum(fragment, pointer)
        node.composition = {
            keyword: self._parse_list(fragment[keyword], f"{pointer}/{keyword}")
            for keyword in COMPOSITION_KEYWORDS
            if keyword in fragment
        }
        node.conditional = {
            keyword: self.parse(fragment[keyword], f"{pointer}/{keyword}")
            for keyword in CONDITIONAL_KEYWORDS
            if keyword in fragment
        }
        node.has_default = "default" in fragment
        node.default = fragment.get("default")
        return node

    def _parse_constraints(
        self, fragment: dict[str, Any], kind: SchemaKind, pointer: str
    ) -> dict[str, Any]:
        constraints: dict[str, Any] = {}
        for keyword in CONSTRAINT_KEYWORDS.get(kind, ()):
            if keyword not in fragment:
                continue
            value = fragment[keyword]
            if keyword in ("exclusiveMinimum", "exclusiveMaximum") and isinstance(value, bool):
                continue  # draft-04 flag, folded in below
            self._check_constraint_value(keyword, value, pointer)
            constraints[keyword] = value

        if kind in (SchemaKind.NUMBER, SchemaKind.INTEGER):
            for flag, bound in (("exclusiveMinimum", "minimum"), ("exclusiveMaximum", "maximum")):
                if fragment.get(flag) is True and bound in constraints:
                    constraints[flag] = constraints.pop(bound)

        if constraints.get("uniqueItems") is False:
            del constraints["uniqueItems"]
        return constraints

    def _check_constraint_value(self, keyword: str, value: Any, pointer: str) -> None:
        if keyword in STRING_VALUED:
            valid = isinstance(value, str)
            expected = "a string"
        elif keyword in BOOLEAN_VALUED:
            valid = isinstance(value, bool)
            expected = "a boolean"
        else:
            valid = isinstance(value, int | float) and not isinstance(value, bool)
            expected = "a number"
        if not valid:
            raise InvalidSchemaError(
                f"'{keyword}' at '{pointer}' must be {expected}, got {value!r}",
                path=f"{pointer}/{keyword}",
            )

    def _parse_object(self, fragment: dict[str, Any], node: SchemaNode, pointer: str) -> None:
        properties = fragment.get("properties", {})
        if not isinstance(properties, dict):
            raise InvalidSchemaError(f"'properties' at '{pointer}' must be an object", path=pointer)
        node.properties = {
            name: self.parse(sub, f"{pointer}/properties/{escape_pointer_token(name)}")
            for name, sub in properties.items()
        }

        required = fragment.get("required", [])
        if not isinstance(required, list) or not all(isinstance(r, str) for r in required):
            raise InvalidSchemaError(
                f"'required' at '{pointer}' must be a list of property names", path=pointer
            )
        node.required = frozenset(required)

        additional = fragment.get("additionalProperties", True)
        if isinstance(additional, bool):
            node.additional_properties = additional
        elif additional == {}:
            node.additional_properties = True
        else:
            node.additional_properties = self.parse(additional, f"{pointer}/additionalProperties")

    def _parse_array(self, fragment: dict[str, Any], node: SchemaNode, pointer: str) -> None:
        items = fragment.get("items")
        modern = self.draft is JsonSchemaDraft.DRAFT_2020_12

        if modern and "prefixItems" in fragment:
            node.prefix_items = self._parse_list(fragment["prefixItems"], f"{pointer}/prefixItems")
            if items is not None:
                node.items = self.parse(items, f"{pointer}/items")
        elif isinstance(items, list):
            node.prefix_items = self._parse_list(items, f"{pointer}/items")
            if not modern and "additionalItems" in fragment:
                node.items = self.parse(fragment["additionalItems"], f"{pointer}/additionalItems")
        elif items is not None:
            node.items = self.parse(items, f"{pointer}/items")

    def _parse_enum(self, fragment: dict[str, Any], pointer: str) -> tuple[tuple[Any, ...] | None, bool]:
        if "const" in fragment:
            return (fragment["const"],), True
        if "enum" in fragment:
            values = fragment["enum"]
            if not isinstance(values, list):
                raise InvalidSchemaError(f"'enum' at '{pointer}' must be a list", path=pointer)
            return tuple(values), False
        return None, False

    def _parse_list(self, value: Any, pointer: str) -> tuple[SchemaNode, ...]:
        if not isinstance(value, list):
            raise InvalidSchemaError(f"'{pointer}' must be a list of schemas", path=pointer)
        return tuple(self.parse(sub, f"{pointer}/{i}") for i, sub in enumerate(value))


def parse_schema(document: Any, draft: JsonSchemaDraft | None = None) -> SchemaNode:
    """Parse a whole JSON Schema document (refs are left unresolved)."""
    parser = SchemaParser(draft or detect_draft(document))
    return parser.parse(document)
