"""Migration path planning for breaking schema changes."""

import json
from dataclasses import dataclass, field
from typing import Any

from schemagate.models.analysis import MigrationStep, SchemaChange
from schemagate.models.enums import ChangeKind
from schemagate.services.schema_diff import FIELD_LEVEL_KINDS, enum_difference
from schemagate.services.schema_tree import TYPE_NAMES

# Step categories, in the order they must be carried out for one field
STRUCTURAL = 0
CONSTRAINT = 1
COSMETIC = 2

CONSTRAINT_KINDS = {
    ChangeKind.CONSTRAINT_TIGHTENED,
    ChangeKind.CONSTRAINT_LOOSENED,
    ChangeKind.CONSTRAINT_ADDED,
    ChangeKind.CONSTRAINT_REMOVED,
}

COSMETIC_KEYWORDS = {"enum", "format"}


@dataclass
class _Advice:
    action: str
    description: str
    code: dict[str, Any] | None = None
    automated: bool = False


@dataclass
class _Group:
    owner: str
    first_seen: int
    changes: list[SchemaChange] = field(default_factory=list)

    @property
    def max_rank(self) -> int:
        return max(c.impact.rank for c in self.changes)


def owner_of(change: SchemaChange) -> str:
    """Dotted path of the field a change belongs to."""
    if change.type in FIELD_LEVEL_KINDS or change.field == "$":
        return change.field
    head, _, _ = change.field.rpartition(".")
    return head or "$"


def keyword_of(change: SchemaChange) -> str:
    return change.field.rpartition(".")[2]


def category_of(change: SchemaChange) -> int:
    if change.type in (ChangeKind.ENUM_NARROWED, ChangeKind.ENUM_WIDENED):
        return COSMETIC
    if change.type in CONSTRAINT_KINDS:
        return COSMETIC if keyword_of(change) in COSMETIC_KEYWORDS else CONSTRAINT
    return STRUCTURAL


def _union_code(old: Any, new: Any) -> dict[str, Any] | None:
    """anyOf snippet accepting both types, when both are plain type names."""
    types: list[str] = []
    for value in (old, new):
        names = value if isinstance(value, list) else [value]
        for name in names:
            if not isinstance(name, str) or name not in TYPE_NAMES:
                return None
            if name not in types:
                types.append(name)
    return {"anyOf": [{"type": t} for t in types]}


def _advise(change: SchemaChange, owner: str) -> _Advice:
    """Guidance for a single breaking change."""
    kind = change.type
    name = keyword_of(change)
    old, new = change.old_value, change.new_value

    if kind is ChangeKind.TYPE_CHANGED:
        return _Advice(
            action="Introduce transitional union type",
            description=(
                f"Accept both {old} and {new} at '{owner}' while producers and consumers "
                f"migrate, then drop {old} in a later version."
            ),
            code=_union_code(old, new),
        )
    if kind is ChangeKind.FIELD_REMOVED:
        return _Advice(
            action="Deprecate before removing",
            description=(
                f"Phase 1: mark '{name}' as deprecated and optional so consumers stop relying on it. "
                f"Phase 2: remove it once no consumer reads it."
            ),
            code={name: {**old, "deprecated": True}} if isinstance(old, dict) else None,
        )
    if kind is ChangeKind.FIELD_ADDED:
        return _Advice(
            action="Add field as optional first",
            description=(
                f"Phase 1: add '{name}' as optional or with a default so existing data stays valid. "
                f"Phase 2: make it required once every producer populates it."
            ),
        )
    if kind is ChangeKind.REQUIRED_ADDED:
        return _Advice(
            action="Make field required in two phases",
            description=(
                f"Phase 1: backfill '{name}' in existing data and update producers to always send it. "
                f"Phase 2: add it to 'required'."
            ),
        )
    if kind in (ChangeKind.CONSTRAINT_TIGHTENED, ChangeKind.CONSTRAINT_ADDED):
        return _Advice(
            action="Validate existing data",
            description=f"Check existing data at '{owner}' against {name}={new!r} before enforcing it.",
            code={name: new},
            automated=True,
        )
    if kind in (ChangeKind.CONSTRAINT_LOOSENED, ChangeKind.CONSTRAINT_REMOVED):
        return _Advice(
            action="Update consumers for relaxed constraint",
            description=(
                f"Consumers of '{owner}' that rely on {name}={old!r} must handle values "
                f"the old constraint rejected."
            ),
        )
    if kind is ChangeKind.ENUM_NARROWED:
        removed = enum_difference(list(old or []), list(new or []))
        return _Advice(
            action="Migrate removed enum values",
            description=f"Rewrite stored values at '{owner}' that are no longer allowed: {removed}.",
            code={"enum": new},
        )
    if kind is ChangeKind.ENUM_WIDENED:
        added = enum_difference(list(new or []), list(old or []))
        return _Advice(
            action="Teach consumers new enum values",
            description=(
                f"Update consumers of '{owner}' to handle the new values {added} "
                f"before producers emit them."
            ),
        )
    if kind is ChangeKind.ADDITIONAL_PROPERTIES_CHANGED:
        return _Advice(
            action="Audit undeclared properties",
            description=(
                f"Find existing data at '{owner}' that carries undeclared properties and "
                f"declare or strip them before restricting additionalProperties."
            ),
            code={"additionalProperties": new} if isinstance(new, bool) else None,
        )
    if kind is ChangeKind.COMPOSITION_CHANGED:
        return _Advice(
            action="Review composition variants",
            description=(
                f"Variants of '{name}' at '{owner}' are compared by position; verify existing "
                f"data still matches the intended variant."
            ),
        )
    return _Advice(action="Review change", description=change.description)


def _merge(owner: str, changes: list[SchemaChange]) -> MigrationStep:
    """Merge one category of a field's changes into a single step."""
    ordered = sorted(changes, key=lambda c: -c.impact.rank)
    advice = [_advise(c, owner) for c in ordered]

    descriptions: list[str] = []
    for item in advice:
        if item.description not in descriptions:
            descriptions.append(item.description)

    fragments = [item.code for item in advice if item.code is not None]
    code = None
    if fragments:
        merged: dict[str, Any] = {}
        for fragment in fragments:
            merged.update(fragment)
        code = json.dumps(merged, indent=2)

    return MigrationStep(
        action=advice[0].action,
        field=owner,
        description=" ".join(descriptions),
        code=code,
        impact=ordered[0].impact,
        automated=all(item.automated for item in advice),
    )


def build_migration_path(changes: list[SchemaChange]) -> list[MigrationStep]:
    """Build an ordered migration path from classified changes.

    Only breaking changes produce steps. Steps are grouped by field, fields
    with the highest impact come first, and within a field structural steps
    precede constraint steps, which precede enum/format steps.
    """
    groups: dict[str, _Group] = {}
    for index, change in enumerate(changes):
        if not change.breaking:
            continue
        owner = owner_of(change)
        if owner not in groups:
            groups[owner] = _Group(owner=owner, first_seen=index)
        groups[owner].changes.append(change)

    steps: list[MigrationStep] = []
    for group in sorted(groups.values(), key=lambda g: (-g.max_rank, g.first_seen)):
        by_category: dict[int, list[SchemaChange]] = {}
        for change in group.changes:
            by_category.setdefault(category_of(change), []).append(change)
        for category in sorted(by_category):
            steps.append(_merge(group.owner, by_category[category]))
    return steps

