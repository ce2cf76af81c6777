"""Compatibility classification of raw schema deltas.

Compatibility modes follow the schema registry vocabulary:

- BACKWARD: the new schema must accept data written under the old one, so
  anything that makes the new schema more restrictive breaks.
- FORWARD: the old schema must accept data written under the new one, so
  anything that makes the new schema more permissive breaks.
- FULL: both directions.
- NONE: nothing breaks, changes are only reported.
"""

from typing import Any

from schemagate.models.analysis import SchemaChange
from schemagate.models.enums import ChangeKind, CompatibilityMode, Impact
from schemagate.services.schema_diff import NodeDelta

# Which deltas are breaking under each direction. FieldAdded and
# AdditionalPropertiesChanged depend on their payload and are handled
# separately in _breaks_backward().
BACKWARD_BREAKING = {
    ChangeKind.TYPE_CHANGED,
    ChangeKind.REQUIRED_ADDED,
    ChangeKind.CONSTRAINT_TIGHTENED,
    ChangeKind.CONSTRAINT_ADDED,
    ChangeKind.ENUM_NARROWED,
    ChangeKind.COMPOSITION_CHANGED,  # Conservative: variants are not matched structurally
}

FORWARD_BREAKING = {
    ChangeKind.FIELD_REMOVED,
    ChangeKind.TYPE_CHANGED,
    ChangeKind.CONSTRAINT_LOOSENED,
    ChangeKind.CONSTRAINT_REMOVED,
    ChangeKind.ENUM_WIDENED,
    ChangeKind.COMPOSITION_CHANGED,
}

HIGH_IMPACT = {
    ChangeKind.REQUIRED_ADDED,
    ChangeKind.CONSTRAINT_TIGHTENED,
    ChangeKind.ENUM_NARROWED,
}

MEDIUM_IMPACT = {
    ChangeKind.CONSTRAINT_LOOSENED,
    ChangeKind.ENUM_WIDENED,
    ChangeKind.COMPOSITION_CHANGED,
}


def _openness(value: Any) -> int:
    """Rank an additionalProperties value from most to least permissive."""
    if value is True:
        return 2
    if value is False:
        return 0
    return 1  # A schema admits some extra properties


def _breaks_backward(delta: NodeDelta) -> bool:
    if delta.kind is ChangeKind.FIELD_ADDED:
        # Old data never carried the field
        return delta.required and not delta.has_default
    if delta.kind is ChangeKind.ADDITIONAL_PROPERTIES_CHANGED:
        return _openness(delta.new_value) < _openness(delta.old_value)
    return delta.kind in BACKWARD_BREAKING


def _breaks_forward(delta: NodeDelta) -> bool:
    return delta.kind in FORWARD_BREAKING


def is_breaking(delta: NodeDelta, mode: CompatibilityMode) -> bool:
    """Check whether a delta violates the given compatibility mode."""
    if mode == CompatibilityMode.BACKWARD:
        return _breaks_backward(delta)
    if mode == CompatibilityMode.FORWARD:
        return _breaks_forward(delta)
    if mode == CompatibilityMode.FULL:
        return _breaks_backward(delta) or _breaks_forward(delta)
    return False


def impact_of(delta: NodeDelta, mode: CompatibilityMode) -> Impact:
    """Impact level of a delta under the active mode."""
    if delta.kind is ChangeKind.TYPE_CHANGED:
        return Impact.CRITICAL
    if delta.kind is ChangeKind.FIELD_REMOVED and delta.required:
        return Impact.CRITICAL
    if delta.kind in HIGH_IMPACT:
        return Impact.HIGH
    # Safe here, but a stricter mode would reject it
    if (
        delta.kind in MEDIUM_IMPACT
        and not is_breaking(delta, mode)
        and is_breaking(delta, CompatibilityMode.FULL)
    ):
        return Impact.MEDIUM
    return Impact.LOW


def _name(delta: NodeDelta) -> str:
    return delta.path[-1] if delta.path else "$"


def _owner(delta: NodeDelta) -> str:
    return ".".join(delta.owner_path) or "the root schema"


def describe(delta: NodeDelta) -> str:
    """Human-readable sentence for a delta."""
    kind = delta.kind
    name = _name(delta)
    owner = _owner(delta)
    old, new = delta.old_value, delta.new_value

    if kind is ChangeKind.FIELD_ADDED:
        if delta.required:
            suffix = " with a default" if delta.has_default else " without a default"
            return f"Required field '{name}' was added{suffix}"
        return f"Optional field '{name}' was added"
    if kind is ChangeKind.FIELD_REMOVED:
        qualifier = "Required field" if delta.required else "Field"
        return f"{qualifier} '{name}' was removed"
    if kind is ChangeKind.TYPE_CHANGED:
        return f"Type of '{delta.field}' changed from {old} to {new}"
    if kind is ChangeKind.REQUIRED_ADDED:
        return f"Field '{name}' is now required"
    if kind is ChangeKind.REQUIRED_REMOVED:
        return f"Field '{name}' is no longer required"
    if kind is ChangeKind.CONSTRAINT_TIGHTENED:
        return f"Constraint '{name}' on {owner} tightened from {old!r} to {new!r}"
    if kind is ChangeKind.CONSTRAINT_LOOSENED:
        return f"Constraint '{name}' on {owner} relaxed from {old!r} to {new!r}"
    if kind is ChangeKind.CONSTRAINT_ADDED:
        return f"Constraint '{name}' was added to {owner} with value {new!r}"
    if kind is ChangeKind.CONSTRAINT_REMOVED:
        return f"Constraint '{name}' was removed from {owner} (was {old!r})"
    if kind is ChangeKind.ENUM_NARROWED:
        return f"Enum values removed from {owner}: {delta.detail}"
    if kind is ChangeKind.ENUM_WIDENED:
        return f"Enum values added to {owner}: {delta.detail}"
    if kind is ChangeKind.ADDITIONAL_PROPERTIES_CHANGED:
        return (
            f"additionalProperties of {owner} changed from "
            f"{_ap_label(old)} to {_ap_label(new)}"
        )
    # CompositionChanged
    if delta.detail in ("added", "removed"):
        return f"'{name}' was {delta.detail} on {owner}"
    if delta.detail == "reordered":
        return f"Variants of '{name}' on {owner} were reordered"
    return f"Number of '{name}' variants on {owner} changed from {old} to {new}"


def _ap_label(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return "a schema"


def classify(delta: NodeDelta, mode: CompatibilityMode) -> SchemaChange:
    """Turn one raw delta into a classified change."""
    return SchemaChange(
        type=delta.kind,
        field=delta.field,
        description=describe(delta),
        breaking=is_breaking(delta, mode),
        impact=impact_of(delta, mode),
        old_value=delta.old_value,
        new_value=delta.new_value,
    )


def classify_all(deltas: list[NodeDelta], mode: CompatibilityMode) -> list[SchemaChange]:
    """Classify deltas, keeping detection order."""
    return [classify(delta, mode) for delta in deltas]
