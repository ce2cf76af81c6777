"""Enumerations for schemagate."""

from enum import StrEnum


class CompatibilityMode(StrEnum):
    """Schema compatibility modes, matching schema registry vocabulary."""

    BACKWARD = "BACKWARD"  # New schema can read old data (safe for producers)
    FORWARD = "FORWARD"  # Old schema can read new data (safe for consumers)
    FULL = "FULL"  # Both directions (strictest)
    NONE = "NONE"  # No compatibility checks, just report


class ChangeKind(StrEnum):
    """Types of schema changes."""

    FIELD_ADDED = "FieldAdded"
    FIELD_REMOVED = "FieldRemoved"
    TYPE_CHANGED = "TypeChanged"
    REQUIRED_ADDED = "RequiredAdded"
    REQUIRED_REMOVED = "RequiredRemoved"
    CONSTRAINT_TIGHTENED = "ConstraintTightened"  # e.g., maxLength decreased
    CONSTRAINT_LOOSENED = "ConstraintLoosened"  # e.g., maxLength increased
    CONSTRAINT_ADDED = "ConstraintAdded"
    CONSTRAINT_REMOVED = "ConstraintRemoved"
    ENUM_NARROWED = "EnumNarrowed"
    ENUM_WIDENED = "EnumWidened"
    ADDITIONAL_PROPERTIES_CHANGED = "AdditionalPropertiesChanged"
    COMPOSITION_CHANGED = "CompositionChanged"


class Impact(StrEnum):
    """Impact level of a single change, also used as an aggregate risk label."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _IMPACT_RANK[self]


_IMPACT_RANK = {
    Impact.LOW: 0,
    Impact.MEDIUM: 1,
    Impact.HIGH: 2,
    Impact.CRITICAL: 3,
}


class ChangeType(StrEnum):
    """Semantic versioning change classification."""

    PATCH = "patch"  # No schema changes
    MINOR = "minor"  # Compatible changes
    MAJOR = "major"  # Breaking changes


class MigrationComplexity(StrEnum):
    """How much coordination a migration needs."""

    SIMPLE = "SIMPLE"  # Nothing breaks, a handful of changes
    MODERATE = "MODERATE"
    COMPLEX = "COMPLEX"
    CRITICAL = "CRITICAL"  # Too many breaking changes or steps for one release


class AdviceSeverity(StrEnum):
    """Severity of an evolution best-practice finding."""

    INFO = "info"  # Versioning hints, never blocking
    WARNING = "warning"  # Risky practice, review before release


class SchemaKind(StrEnum):
    """Kind of a parsed schema fragment."""

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    NULL = "null"
    ANY = "any"  # `true` or `{}`
    NEVER = "never"  # `false`
    ONE_OF = "oneOf"
    ANY_OF = "anyOf"
    ALL_OF = "allOf"
    REF = "ref"  # Only present before resolution
    RECURSIVE = "recursive"  # Cycle sentinel left by the resolver


class JsonSchemaDraft(StrEnum):
    """JSON Schema dialects understood by the parser."""

    DRAFT_04 = "draft-04"
    DRAFT_06 = "draft-06"
    DRAFT_07 = "draft-07"
    DRAFT_2019_09 = "2019-09"
    DRAFT_2020_12 = "2020-12"
