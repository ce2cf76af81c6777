"""Schema evolution analysis facade.

Parses both documents, resolves their references, then runs the differ,
classifier and planner in sequence. Every call allocates its own working
state, so ``analyze`` is safe to call from several threads at once.
"""

import logging
from typing import Any

from schemagate.config import settings
from schemagate.errors import ErrorCode, InvalidSchemaError
from schemagate.models.analysis import EvolutionAnalysis, SchemaChange
from schemagate.models.enums import CompatibilityMode, JsonSchemaDraft
from schemagate.services.classifier import classify_all
from schemagate.services.planner import build_migration_path
from schemagate.services.resolver import DocumentDefinitions, resolve
from schemagate.services.schema_diff import diff_trees
from schemagate.services.schema_tree import SchemaNode

logger = logging.getLogger(__name__)


def coerce_mode(mode: CompatibilityMode | str | None) -> CompatibilityMode:
    """Accept a mode enum or its literal in any case; None means the configured default."""
    if mode is None:
        return settings.default_mode
    if isinstance(mode, CompatibilityMode):
        return mode
    try:
        return CompatibilityMode(str(mode).strip().upper())
    except ValueError:
        valid = ", ".join(m.value for m in CompatibilityMode)
        raise InvalidSchemaError(
            f"Unknown compatibility mode {mode!r}, expected one of: {valid}",
            code=ErrorCode.INVALID_MODE,
        ) from None


def load_tree(document: Any, draft: JsonSchemaDraft | None = None) -> SchemaNode:
    """Parse a schema document and resolve its local references."""
    definitions = DocumentDefinitions(document, draft)
    tree = definitions["#"]
    resolved = resolve(tree, definitions, root_pointer="#")
    logger.debug("Resolved schema tree of kind %s (draft %s)", resolved.kind, definitions.parser.draft)
    return resolved


def analyze(
    old_schema: Any,
    new_schema: Any,
    mode: CompatibilityMode | str | None = None,
) -> EvolutionAnalysis:
    """Analyze the transition from ``old_schema`` to ``new_schema``.

    Args:
        old_schema: Parsed JSON Schema document (dict or bool) currently in use
        new_schema: Parsed JSON Schema document being proposed
        mode: Compatibility mode; defaults to ``settings.default_mode``

    Returns:
        EvolutionAnalysis with classified changes and a migration path

    Raises:
        SchemaResolutionError: if either document has a dangling $ref
        InvalidSchemaError: if either document is malformed or the mode is unknown
    """
    compat_mode = coerce_mode(mode)
    old_tree = load_tree(old_schema)
    new_tree = load_tree(new_schema)

    deltas = diff_trees(old_tree, new_tree)
    changes = classify_all(deltas, compat_mode)
    migration_path = build_migration_path(changes)
    is_compatible = not any(c.breaking for c in changes)

    logger.info(
        "Analyzed schema transition under %s: %d changes, %d breaking, compatible=%s",
        compat_mode,
        len(changes),
        sum(1 for c in changes if c.breaking),
        is_compatible,
    )
    return EvolutionAnalysis(
        mode=compat_mode,
        is_compatible=is_compatible,
        changes=changes,
        migration_path=migration_path,
    )


def check_compatibility(
    old_schema: Any,
    new_schema: Any,
    mode: CompatibilityMode | str | None = None,
) -> tuple[bool, list[SchemaChange]]:
    """Check if a schema change is compatible.

    Returns:
        Tuple of (is_compatible, list of breaking changes)
    """
    analysis = analyze(old_schema, new_schema, mode)
    return analysis.is_compatible, analysis.breaking_changes
