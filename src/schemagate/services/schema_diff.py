"""Structural diffing of resolved schema trees.

Walks two trees in lock-step and records raw ``NodeDelta`` records. No
compatibility judgment happens here; see ``classifier`` for that.
"""

import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import Any

from schemagate.models.enums import ChangeKind, SchemaKind
from schemagate.services.schema_tree import (
    COMPOSITION_KEYWORDS,
    CONDITIONAL_KEYWORDS,
    TYPE_NAMES,
    SchemaNode,
    canonical_value,
)

logger = logging.getLogger(__name__)

# Deltas whose path names the affected field itself; all other kinds sit one
# segment below the node they belong to (".minimum", ".enum", ".oneOf", ...)
FIELD_LEVEL_KINDS = {
    ChangeKind.FIELD_ADDED,
    ChangeKind.FIELD_REMOVED,
    ChangeKind.REQUIRED_ADDED,
    ChangeKind.REQUIRED_REMOVED,
    ChangeKind.TYPE_CHANGED,
}

_ANY = SchemaNode(kind=SchemaKind.ANY, source=True)


@dataclass(frozen=True)
class NodeDelta:
    """A raw divergence between two schema trees at one path."""

    path: tuple[str, ...]
    kind: ChangeKind
    old_value: Any = None
    new_value: Any = None
    required: bool = False  # FieldAdded/FieldRemoved: field is required on its side
    has_default: bool = False  # FieldAdded/RequiredAdded: field declares a default
    detail: Any = None  # enum values gained/lost, composition change note

    @property
    def field(self) -> str:
        """Dotted path ('$' for the root)."""
        return format_path(self.path)

    @property
    def owner_path(self) -> tuple[str, ...]:
        """Path of the node this delta belongs to."""
        if self.kind in FIELD_LEVEL_KINDS:
            return self.path
        return self.path[:-1]


def format_path(path: tuple[str, ...]) -> str:
    return ".".join(path) or "$"


def enum_difference(values: list[Any], other: list[Any]) -> list[Any]:
    """Values of ``values`` missing from ``other``, in their listed order."""
    other_keys = {canonical_value(v) for v in other}
    return [v for v in values if canonical_value(v) not in other_keys]


def type_label(node: SchemaNode) -> Any:
    """Type description used in TypeChanged payloads."""
    if node.kind is SchemaKind.RECURSIVE:
        return f"recursive({node.ref})"
    if node.kind is SchemaKind.ANY_OF and isinstance(node.source, dict):
        declared = node.source.get("type")
        if isinstance(declared, list) and all(t in TYPE_NAMES for t in declared):
            return sorted(set(declared))
    return str(node.kind)


class SchemaDiff:
    """Compares two resolved schema trees and identifies raw deltas."""

    # Raising a lower bound or lowering an upper bound makes a schema stricter
    LOWER_BOUNDS = {"minLength", "minItems", "minProperties", "minimum", "exclusiveMinimum"}
    UPPER_BOUNDS = {"maxLength", "maxItems", "maxProperties", "maximum", "exclusiveMaximum"}

    def __init__(self, old_tree: SchemaNode, new_tree: SchemaNode):
        self.old = old_tree
        self.new = new_tree
        self.deltas: list[NodeDelta] = []

    def diff(self) -> list[NodeDelta]:
        """Perform the diff and return deltas in detection order."""
        self.deltas = []
        self._diff_node(self.old, self.new, ())
        logger.debug("Detected %d raw deltas", len(self.deltas))
        return self.deltas

    def _emit(self, path: tuple[str, ...], kind: ChangeKind, **values: Any) -> None:
        self.deltas.append(NodeDelta(path=path, kind=kind, **values))

    def _diff_node(self, old: SchemaNode, new: SchemaNode, path: tuple[str, ...]) -> None:
        """Diff two nodes recursively."""
        if old.kind != new.kind or (
            old.kind is SchemaKind.RECURSIVE and old.ref != new.ref
        ):
            # A type change invalidates every nested comparison
            self._emit(
                path,
                ChangeKind.TYPE_CHANGED,
                old_value=type_label(old),
                new_value=type_label(new),
            )
            return
        if old.kind in (SchemaKind.RECURSIVE, SchemaKind.NEVER):
            return

        self._diff_constraints(old, new, path)
        self._diff_enum(old, new, path)

        if old.kind is SchemaKind.OBJECT:
            self._diff_properties(old, new, path)
            self._diff_additional_properties(old, new, path)
        elif old.kind is SchemaKind.ARRAY:
            self._diff_items(old, new, path)

        self._diff_composition(old, new, path)
        self._diff_conditional(old, new, path)

    def _diff_properties(self, old: SchemaNode, new: SchemaNode, path: tuple[str, ...]) -> None:
        """Compare properties and required-ness, in sorted name order."""
        names = sorted(
            set(old.properties) | set(new.properties) | old.required | new.required
        )
        for name in names:
            field_path = (*path, "properties", name)
            old_prop = old.properties.get(name)
            new_prop = new.properties.get(name)

            if old_prop is not None and new_prop is None:
                self._emit(
                    field_path,
                    ChangeKind.FIELD_REMOVED,
                    old_value=old_prop.source,
                    required=name in old.required,
                    has_default=old_prop.has_default,
                )
                continue
            if new_prop is not None and old_prop is None:
                self._emit(
                    field_path,
                    ChangeKind.FIELD_ADDED,
                    new_value=new_prop.source,
                    required=name in new.required,
                    has_default=new_prop.has_default,
                )
                continue

            # Required-ness is diffed independently of the property itself
            was_required = name in old.required
            is_required = name in new.required
            if is_required and not was_required:
                self._emit(
                    field_path,
                    ChangeKind.REQUIRED_ADDED,
                    old_value=False,
                    new_value=True,
                    has_default=new_prop is not None and new_prop.has_default,
                )
            elif was_required and not is_required:
                self._emit(
                    field_path,
                    ChangeKind.REQUIRED_REMOVED,
                    old_value=True,
                    new_value=False,
                )

            if old_prop is not None and new_prop is not None:
                self._diff_node(old_prop, new_prop, field_path)

    def _diff_additional_properties(
        self, old: SchemaNode, new: SchemaNode, path: tuple[str, ...]
    ) -> None:
        old_ap = old.additional_properties
        new_ap = new.additional_properties

        if isinstance(old_ap, SchemaNode) and isinstance(new_ap, SchemaNode):
            self._diff_node(old_ap, new_ap, (*path, "*"))
            return
        if isinstance(old_ap, bool) and isinstance(new_ap, bool) and old_ap == new_ap:
            return

        self._emit(
            (*path, "additionalProperties"),
            ChangeKind.ADDITIONAL_PROPERTIES_CHANGED,
            old_value=old_ap if isinstance(old_ap, bool) else old_ap.source,
            new_value=new_ap if isinstance(new_ap, bool) else new_ap.source,
        )

    def _diff_items(self, old: SchemaNode, new: SchemaNode, path: tuple[str, ...]) -> None:
        if old.prefix_items is not None or new.prefix_items is not None:
            old_prefix = old.prefix_items or ()
            new_prefix = new.prefix_items or ()
            for i in range(max(len(old_prefix), len(new_prefix))):
                item_path = (*path, "prefixItems", str(i))
                if i >= len(new_prefix):
                    self._emit(item_path, ChangeKind.FIELD_REMOVED, old_value=old_prefix[i].source)
                elif i >= len(old_prefix):
                    self._emit(item_path, ChangeKind.FIELD_ADDED, new_value=new_prefix[i].source)
                else:
                    self._diff_node(old_prefix[i], new_prefix[i], item_path)

        if old.items is None and new.items is None:
            return
        # Missing "items" accepts anything
        self._diff_node(old.items or _ANY, new.items or _ANY, (*path, "items"))

    def _diff_constraints(self, old: SchemaNode, new: SchemaNode, path: tuple[str, ...]) -> None:
        """Compare constraints like minLength, maximum, pattern, multipleOf."""
        for keyword in sorted(set(old.constraints) | set(new.constraints)):
            constraint_path = (*path, keyword)
            old_val = old.constraints.get(keyword)
            new_val = new.constraints.get(keyword)

            if keyword not in old.constraints:
                self._emit(constraint_path, ChangeKind.CONSTRAINT_ADDED, new_value=new_val)
            elif keyword not in new.constraints:
                self._emit(constraint_path, ChangeKind.CONSTRAINT_REMOVED, old_value=old_val)
            elif old_val != new_val:
                for kind in self._compare_constraint(keyword, old_val, new_val):
                    self._emit(constraint_path, kind, old_value=old_val, new_value=new_val)

    def _compare_constraint(self, keyword: str, old_val: Any, new_val: Any) -> tuple[ChangeKind, ...]:
        tightened = ChangeKind.CONSTRAINT_TIGHTENED
        loosened = ChangeKind.CONSTRAINT_LOOSENED

        if keyword in self.LOWER_BOUNDS:
            return (tightened,) if new_val > old_val else (loosened,)
        if keyword in self.UPPER_BOUNDS:
            return (tightened,) if new_val < old_val else (loosened,)
        if keyword == "uniqueItems":
            return (tightened,) if new_val else (loosened,)
        if keyword == "multipleOf":
            if _is_multiple(new_val, old_val):
                return (tightened,)
            if _is_multiple(old_val, new_val):
                return (loosened,)
        # Not orderable (pattern, format, unrelated multipleOf): some values
        # are lost and others gained
        return (tightened, loosened)

    def _diff_enum(self, old: SchemaNode, new: SchemaNode, path: tuple[str, ...]) -> None:
        """Compare enum/const value sets."""
        if old.enum_values is None and new.enum_values is None:
            return

        enum_path = (*path, "enum")
        if old.enum_values is None:
            self._emit(enum_path, ChangeKind.CONSTRAINT_ADDED, new_value=list(new.enum_values or ()))
            return
        if new.enum_values is None:
            self._emit(enum_path, ChangeKind.CONSTRAINT_REMOVED, old_value=list(old.enum_values))
            return

        old_values = list(old.enum_values)
        new_values = list(new.enum_values)
        removed = enum_difference(old_values, new_values)
        added = enum_difference(new_values, old_values)

        if removed:
            self._emit(
                enum_path,
                ChangeKind.ENUM_NARROWED,
                old_value=old_values,
                new_value=new_values,
                detail=removed,
            )
        if added:
            self._emit(
                enum_path,
                ChangeKind.ENUM_WIDENED,
                old_value=old_values,
                new_value=new_values,
                detail=added,
            )

    def _diff_composition(self, old: SchemaNode, new: SchemaNode, path: tuple[str, ...]) -> None:
        """Compare allOf/anyOf/oneOf variant lists by position."""
        for keyword in COMPOSITION_KEYWORDS:
            old_variants = old.composition.get(keyword)
            new_variants = new.composition.get(keyword)
            if old_variants is None and new_variants is None:
                continue

            keyword_path = (*path, keyword)
            if old_variants is None or new_variants is None:
                self._emit(
                    keyword_path,
                    ChangeKind.COMPOSITION_CHANGED,
                    old_value=len(old_variants) if old_variants is not None else None,
                    new_value=len(new_variants) if new_variants is not None else None,
                    detail="added" if old_variants is None else "removed",
                )
                continue

            if len(old_variants) != len(new_variants):
                self._emit(
                    keyword_path,
                    ChangeKind.COMPOSITION_CHANGED,
                    old_value=len(old_variants),
                    new_value=len(new_variants),
                    detail="resized",
                )
            else:
                old_prints = [v.fingerprint() for v in old_variants]
                new_prints = [v.fingerprint() for v in new_variants]
                if old_prints != new_prints and sorted(old_prints) == sorted(new_prints):
                    self._emit(
                        keyword_path,
                        ChangeKind.COMPOSITION_CHANGED,
                        old_value=len(old_variants),
                        new_value=len(new_variants),
                        detail="reordered",
                    )

            for i, (old_variant, new_variant) in enumerate(zip(old_variants, new_variants)):
                self._diff_node(old_variant, new_variant, (*keyword_path, str(i)))

    def _diff_conditional(self, old: SchemaNode, new: SchemaNode, path: tuple[str, ...]) -> None:
        """Compare if/then/else branches."""
        for keyword in CONDITIONAL_KEYWORDS:
            old_branch = old.conditional.get(keyword)
            new_branch = new.conditional.get(keyword)
            if old_branch is None and new_branch is None:
                continue

            branch_path = (*path, keyword)
            if old_branch is None or new_branch is None:
                self._emit(
                    branch_path,
                    ChangeKind.COMPOSITION_CHANGED,
                    old_value=old_branch.source if old_branch is not None else None,
                    new_value=new_branch.source if new_branch is not None else None,
                    detail="added" if old_branch is None else "removed",
                )
                continue
            self._diff_node(old_branch, new_branch, branch_path)


def _is_multiple(value: Any, base: Any) -> bool:
    """True if ``value`` is an integer multiple of ``base``."""
    if not base:
        return False
    ratio = Fraction(str(value)) / Fraction(str(base))
    return ratio.denominator == 1


def diff_trees(old_tree: SchemaNode, new_tree: SchemaNode) -> list[NodeDelta]:
    """Convenience function to diff two resolved trees."""
    differ = SchemaDiff(old_tree, new_tree)
    return differ.diff()
