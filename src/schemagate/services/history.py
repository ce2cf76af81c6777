"""Compatibility analysis across a sequence of schema versions."""

import logging
from collections.abc import Sequence
from typing import Any

from schemagate.errors import SchemaEvolutionError
from schemagate.models.analysis import HistoryEntry
from schemagate.models.enums import CompatibilityMode
from schemagate.services.analyzer import analyze, coerce_mode

logger = logging.getLogger(__name__)


def _pairs(count: int, transitive: bool) -> list[tuple[int, int]]:
    if transitive:
        # Latest version against every earlier one, oldest first
        return [(i, count - 1) for i in range(count - 1)]
    return [(i - 1, i) for i in range(1, count)]


def analyze_history(
    versions: Sequence[tuple[str, Any]],
    mode: CompatibilityMode | str | None = None,
    transitive: bool = False,
) -> list[HistoryEntry]:
    """Analyze an ordered list of ``(label, schema)`` versions.

    Without ``transitive`` each version is checked against its predecessor;
    with it, the latest version is checked against every earlier one
    (registry ``*_TRANSITIVE`` levels). A schema error on one pair is
    recorded on that entry and the remaining pairs are still analyzed.
    """
    compat_mode = coerce_mode(mode)
    entries: list[HistoryEntry] = []

    for old_index, new_index in _pairs(len(versions), transitive):
        old_label, old_schema = versions[old_index]
        new_label, new_schema = versions[new_index]
        try:
            analysis = analyze(old_schema, new_schema, compat_mode)
        except SchemaEvolutionError as e:
            logger.warning("Skipping %s -> %s: %s", old_label, new_label, e.message)
            entries.append(
                HistoryEntry(
                    from_version=old_label,
                    to_version=new_label,
                    error=f"{e.code}: {e.message}",
                )
            )
            continue
        entries.append(HistoryEntry(from_version=old_label, to_version=new_label, analysis=analysis))

    return entries
