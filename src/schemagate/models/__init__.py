"""Pydantic models and enumerations for schemagate."""

from schemagate.models.analysis import (
    EvolutionAdvice,
    EvolutionAnalysis,
    HistoryEntry,
    MigrationEstimate,
    MigrationStep,
    RiskAssessment,
    SchemaChange,
)
from schemagate.models.enums import (
    AdviceSeverity,
    ChangeKind,
    ChangeType,
    CompatibilityMode,
    Impact,
    JsonSchemaDraft,
    MigrationComplexity,
    SchemaKind,
)

__all__ = [
    "AdviceSeverity",
    "ChangeKind",
    "ChangeType",
    "CompatibilityMode",
    "EvolutionAdvice",
    "EvolutionAnalysis",
    "HistoryEntry",
    "Impact",
    "JsonSchemaDraft",
    "MigrationComplexity",
    "MigrationEstimate",
    "MigrationStep",
    "RiskAssessment",
    "SchemaChange",
    "SchemaKind",
]
