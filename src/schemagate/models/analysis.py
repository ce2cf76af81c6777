"""Evolution analysis result models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from schemagate.models.enums import AdviceSeverity, ChangeKind, CompatibilityMode, Impact


class _ResultModel(BaseModel):
    """Immutable result model serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return self.model_dump(mode="json", by_alias=True)


class SchemaChange(_ResultModel):
    """A single classified difference between two schema versions."""

    type: ChangeKind
    field: str = Field(..., description="Dotted path of the affected element ('$' for the root)")
    description: str
    breaking: bool
    impact: Impact
    old_value: Any = None
    new_value: Any = None


class MigrationStep(_ResultModel):
    """One actionable step of a migration path."""

    action: str
    field: str
    description: str
    code: str | None = None
    impact: Impact = Impact.LOW
    automated: bool = False


class EvolutionAnalysis(_ResultModel):
    """Result of analyzing one schema transition under a compatibility mode."""

    mode: CompatibilityMode
    is_compatible: bool
    changes: list[SchemaChange] = Field(default_factory=list)
    migration_path: list[MigrationStep] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return len(self.changes) > 0

    @property
    def breaking_changes(self) -> list[SchemaChange]:
        """Return only the changes that break the requested mode."""
        return [c for c in self.changes if c.breaking]

    @property
    def max_impact(self) -> Impact | None:
        if not self.changes:
            return None
        return max((c.impact for c in self.changes), key=lambda i: i.rank)


class RiskAssessment(_ResultModel):
    """Aggregate risk derived from an analysis."""

    overall_risk: Impact
    breaking_changes: int
    recommended_actions: list[str] = Field(default_factory=list)
    rollback_plan: list[str] = Field(default_factory=list)


class MigrationEstimate(_ResultModel):
    """Rough effort estimate for carrying out a migration path."""

    estimated_time_hours: float
    confidence: float = Field(..., ge=0.0, le=1.0)
    dependencies: list[str] = Field(default_factory=list)
    blockers: list[str] = Field(default_factory=list)


class EvolutionAdvice(_ResultModel):
    """A best-practice or semantic versioning finding about a transition."""

    path: str = "$"
    message: str
    severity: AdviceSeverity
    suggestion: str | None = None


class HistoryEntry(_ResultModel):
    """Outcome of comparing one pair of versions in a schema history."""

    from_version: str
    to_version: str
    analysis: EvolutionAnalysis | None = None
    error: str | None = None

    @property
    def is_compatible(self) -> bool:
        return self.error is None and self.analysis is not None and self.analysis.is_compatible

