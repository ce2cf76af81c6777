"""Tests for compatibility analysis across schema versions."""

import pytest

from schemagate.errors import InvalidSchemaError
from schemagate.models.enums import ChangeKind, CompatibilityMode
from schemagate.services.history import analyze_history

V1 = {"type": "object", "properties": {"name": {"type": "string"}}}
V2 = {"type": "object", "properties": {"name": {"type": "string"}, "age": {"type": "integer"}}}
V3 = {**V2, "required": ["age"]}
BROKEN = {"type": "object", "properties": {"name": {"$ref": "#/definitions/Missing"}}}


class TestAnalyzeHistory:
    """Tests for analyze_history()."""

    def test_consecutive_pairs(self) -> None:
        entries = analyze_history([("v1", V1), ("v2", V2), ("v3", V3)], CompatibilityMode.BACKWARD)
        assert [(e.from_version, e.to_version) for e in entries] == [("v1", "v2"), ("v2", "v3")]
        assert [e.is_compatible for e in entries] == [True, False]
        assert [c.type for c in entries[1].analysis.changes] == [ChangeKind.REQUIRED_ADDED]

    def test_transitive_checks_latest_against_all(self) -> None:
        entries = analyze_history(
            [("v1", V1), ("v2", V2), ("v3", V3)],
            CompatibilityMode.BACKWARD,
            transitive=True,
        )
        assert [(e.from_version, e.to_version) for e in entries] == [("v1", "v3"), ("v2", "v3")]
        assert [c.type for c in entries[0].analysis.changes] == [ChangeKind.FIELD_ADDED]
        assert all(not e.is_compatible for e in entries)

    def test_error_recorded_and_batch_continues(self) -> None:
        entries = analyze_history(
            [("v1", V1), ("broken", BROKEN), ("v3", V3)],
            CompatibilityMode.FORWARD,
            transitive=True,
        )
        assert entries[0].error is None
        assert entries[0].analysis is not None
        assert entries[1].analysis is None
        assert entries[1].error.startswith("UNRESOLVED_REFERENCE")
        assert entries[1].is_compatible is False

    def test_single_version_has_no_pairs(self) -> None:
        assert analyze_history([("v1", V1)]) == []

    def test_mode_string(self) -> None:
        entries = analyze_history([("v1", V1), ("v2", V2)], "full")
        assert entries[0].analysis.mode == CompatibilityMode.FULL

    def test_unknown_mode_raises(self) -> None:
        with pytest.raises(InvalidSchemaError):
            analyze_history([("v1", V1), ("v2", V2)], "LATEST")

    def test_entries_serialize(self) -> None:
        (entry,) = analyze_history([("v1", V1), ("v2", V2)], CompatibilityMode.BACKWARD)
        payload = entry.to_dict()
        assert payload["fromVersion"] == "v1"
        assert payload["toVersion"] == "v2"
        assert payload["analysis"]["isCompatible"] is True
        assert payload["error"] is None
