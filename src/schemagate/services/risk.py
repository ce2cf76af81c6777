"""Risk, effort and versioning advice derived from an analysis."""

from schemagate.models.analysis import (
    EvolutionAdvice,
    EvolutionAnalysis,
    MigrationEstimate,
    RiskAssessment,
    SchemaChange,
)
from schemagate.models.enums import (
    AdviceSeverity,
    ChangeKind,
    ChangeType,
    Impact,
    MigrationComplexity,
)

# Effort model, in hours
BASE_SETUP_HOURS = 2.0
HOURS_PER_CHANGE = 0.5
HOURS_PER_BREAKING_CHANGE = 2.0
HOURS_PER_STEP = 1.0

MAX_BREAKING_PER_RELEASE = 3

_ACTIONS_BY_RISK: dict[Impact, list[str]] = {
    Impact.CRITICAL: [
        "Consider breaking this change into multiple smaller changes",
        "Implement feature flags for gradual rollout",
        "Plan comprehensive rollback strategy",
    ],
    Impact.HIGH: [
        "Thorough testing recommended",
        "Stakeholder approval required",
    ],
    Impact.MEDIUM: [
        "Standard testing procedures",
        "Monitor deployment closely",
    ],
    Impact.LOW: [],
}

_ACTIONS_BY_KIND: dict[ChangeKind, list[str]] = {
    ChangeKind.FIELD_ADDED: [
        "Provide default values for new required fields",
        "Update all existing consumers before deploying",
    ],
    ChangeKind.REQUIRED_ADDED: [
        "Backfill existing data for newly required fields",
    ],
    ChangeKind.FIELD_REMOVED: [
        "Implement gradual deprecation",
        "Use API versioning",
    ],
    ChangeKind.TYPE_CHANGED: [
        "Implement data migration scripts",
        "Test type conversions thoroughly",
    ],
    ChangeKind.CONSTRAINT_TIGHTENED: [
        "Validate existing data first",
        "Implement data cleanup procedures",
    ],
    ChangeKind.CONSTRAINT_ADDED: [
        "Validate existing data first",
        "Implement data cleanup procedures",
    ],
    ChangeKind.ENUM_NARROWED: [
        "Migrate stored values that are no longer allowed",
    ],
}

_BREAKING_ACTIONS = [
    "Coordinate with all schema consumers",
    "Plan deployment sequence carefully",
    "Monitor error rates after deployment",
]


def assess_risk(analysis: EvolutionAnalysis) -> RiskAssessment:
    """Derive an aggregate risk label and operational advice from an analysis.

    The overall risk is the highest impact among the breaking changes, or
    LOW when nothing breaks under the analyzed mode.
    """
    breaking = analysis.breaking_changes
    overall = max((c.impact for c in breaking), key=lambda i: i.rank, default=Impact.LOW)

    actions: list[str] = list(_ACTIONS_BY_RISK[overall])
    for change in breaking:
        for action in _ACTIONS_BY_KIND.get(change.type, []):
            if action not in actions:
                actions.append(action)
    if breaking:
        actions.extend(a for a in _BREAKING_ACTIONS if a not in actions)

    rollback_plan = [
        "Keep previous schema version available in registry",
        "Implement schema version fallback in consumers",
    ]
    if any(c.type is ChangeKind.TYPE_CHANGED for c in analysis.changes):
        rollback_plan.append("Maintain data migration reversal scripts")
    if breaking:
        rollback_plan.append("Test rollback procedure in staging environment")
        rollback_plan.append("Prepare communication plan for rollback")

    return RiskAssessment(
        overall_risk=overall,
        breaking_changes=len(breaking),
        recommended_actions=actions,
        rollback_plan=rollback_plan,
    )


def assess_migration_complexity(analysis: EvolutionAnalysis) -> MigrationComplexity:
    """Bucket a migration by its breaking changes and migration steps."""
    breaking = len(analysis.breaking_changes)
    steps = len(analysis.migration_path)

    if breaking == 0 and len(analysis.changes) <= 3:
        return MigrationComplexity.SIMPLE
    if breaking <= 2 and steps <= 5:
        return MigrationComplexity.MODERATE
    if breaking <= 5 and steps <= 10:
        return MigrationComplexity.COMPLEX
    return MigrationComplexity.CRITICAL


def _dependencies(changes: list[SchemaChange]) -> list[str]:
    dependencies: list[str] = []
    for change in changes:
        values = (change.old_value, change.new_value)
        if any(isinstance(v, str) and v.startswith("recursive(") for v in values):
            dependencies.append(f"Schema reference: {change.field}")
        if change.type is ChangeKind.TYPE_CHANGED:
            dependencies.append(f"Type system changes for: {change.field}")
    return list(dict.fromkeys(dependencies))


def estimate_migration_effort(analysis: EvolutionAnalysis) -> MigrationEstimate:
    """Estimate the hours needed to roll out a transition.

    The estimate starts from a fixed setup cost and adds time per change, per
    breaking change and per migration step. Confidence drops as the migration
    grows. Breaking changes of HIGH impact or above are reported as blockers.
    """
    total = len(analysis.changes)
    breaking = analysis.breaking_changes
    steps = len(analysis.migration_path)

    hours = (
        BASE_SETUP_HOURS
        + total * HOURS_PER_CHANGE
        + len(breaking) * HOURS_PER_BREAKING_CHANGE
        + steps * HOURS_PER_STEP
    )

    confidence = 0.9
    if len(breaking) > MAX_BREAKING_PER_RELEASE:
        confidence -= 0.3
    if total > 10:
        confidence -= 0.2
    if steps > 5:
        confidence -= 0.1

    blockers = [c.description for c in breaking if c.impact.rank >= Impact.HIGH.rank]

    return MigrationEstimate(
        estimated_time_hours=round(hours, 1),
        confidence=round(max(0.1, confidence), 2),
        dependencies=_dependencies(analysis.changes),
        blockers=blockers,
    )


def suggest_version_bump(analysis: EvolutionAnalysis) -> ChangeType:
    """Suggest a semantic version bump for the analyzed transition."""
    if analysis.breaking_changes:
        return ChangeType.MAJOR
    if analysis.has_changes:
        return ChangeType.MINOR
    return ChangeType.PATCH


def check_semantic_versioning(analysis: EvolutionAnalysis) -> list[EvolutionAdvice]:
    """Explain which version bump the transition calls for."""
    bump = suggest_version_bump(analysis)
    if bump is ChangeType.MAJOR:
        return [
            EvolutionAdvice(
                message="Breaking changes require major version bump",
                severity=AdviceSeverity.INFO,
                suggestion="Increment the major version for breaking changes",
            )
        ]
    if bump is ChangeType.MINOR:
        return [
            EvolutionAdvice(
                message="Non-breaking changes suggest minor version bump",
                severity=AdviceSeverity.INFO,
                suggestion="Increment the minor version for compatible changes",
            )
        ]
    return []


def _was_deprecated(change: SchemaChange) -> bool:
    return isinstance(change.old_value, dict) and change.old_value.get("deprecated") is True


def check_best_practices(analysis: EvolutionAnalysis) -> list[EvolutionAdvice]:
    """Flag evolution habits that make a release harder to roll out."""
    advice: list[EvolutionAdvice] = []

    if len(analysis.breaking_changes) > MAX_BREAKING_PER_RELEASE:
        advice.append(
            EvolutionAdvice(
                message="Too many breaking changes in a single evolution",
                severity=AdviceSeverity.WARNING,
                suggestion="Consider splitting changes across multiple releases",
            )
        )

    for change in analysis.changes:
        if change.type is ChangeKind.FIELD_REMOVED and not _was_deprecated(change):
            advice.append(
                EvolutionAdvice(
                    path=change.field,
                    message="Field removed without a prior deprecation",
                    severity=AdviceSeverity.WARNING,
                    suggestion="Mark the field deprecated in one release and remove it in a later one",
                )
            )

    if not analysis.has_changes:
        advice.append(
            EvolutionAdvice(
                message="No changes detected between schema versions",
                severity=AdviceSeverity.INFO,
                suggestion="Consider if a version bump is necessary",
            )
        )
    elif not analysis.breaking_changes:
        advice.append(
            EvolutionAdvice(
                message="All changes are compatible under the analyzed mode",
                severity=AdviceSeverity.INFO,
                suggestion="A minor version bump is enough",
            )
        )

    return advice
