"""Schema evolution analysis services."""

from schemagate.services.analyzer import analyze, check_compatibility, load_tree
from schemagate.services.classifier import classify, classify_all, is_breaking
from schemagate.services.history import analyze_history
from schemagate.services.planner import build_migration_path
from schemagate.services.resolver import (
    DocumentDefinitions,
    ReferenceResolver,
    collect_definitions,
    resolve,
)
from schemagate.services.risk import (
    assess_migration_complexity,
    assess_risk,
    check_best_practices,
    check_semantic_versioning,
    estimate_migration_effort,
    suggest_version_bump,
)
from schemagate.services.schema_diff import NodeDelta, SchemaDiff, diff_trees
from schemagate.services.schema_tree import SchemaNode, SchemaParser, parse_schema

__all__ = [
    # Schema trees
    "SchemaNode",
    "SchemaParser",
    "parse_schema",
    # Reference resolution
    "DocumentDefinitions",
    "ReferenceResolver",
    "collect_definitions",
    "resolve",
    # Diffing and classification
    "NodeDelta",
    "SchemaDiff",
    "diff_trees",
    "classify",
    "classify_all",
    "is_breaking",
    # Planning and analysis
    "build_migration_path",
    "analyze",
    "check_compatibility",
    "load_tree",
    # Risk, effort and history
    "assess_risk",
    "assess_migration_complexity",
    "estimate_migration_effort",
    "check_best_practices",
    "check_semantic_versioning",
    "suggest_version_bump",
    "analyze_history",
]
