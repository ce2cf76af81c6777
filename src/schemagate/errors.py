"""Error types raised by the analysis engine."""

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standard error codes for analysis failures."""

    UNRESOLVED_REFERENCE = "UNRESOLVED_REFERENCE"
    INVALID_DEFINITIONS = "INVALID_DEFINITIONS"
    INVALID_SCHEMA = "INVALID_SCHEMA"
    INVALID_MODE = "INVALID_MODE"
    SCHEMA_TOO_LARGE = "SCHEMA_TOO_LARGE"


class SchemaEvolutionError(Exception):
    """Base error for schema evolution analysis.

    Carries a machine-readable code, a human message and optional details,
    mirroring the shape of the registry's API errors.
    """

    default_code = ErrorCode.INVALID_SCHEMA

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.path = path
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {"code": str(self.code), "message": self.message}
        if self.path is not None:
            result["path"] = self.path
        if self.details:
            result["details"] = self.details
        return result


class SchemaResolutionError(SchemaEvolutionError):
    """A `$ref` could not be resolved or the definitions map is malformed."""

    default_code = ErrorCode.UNRESOLVED_REFERENCE


class UnresolvedReferenceError(SchemaResolutionError):
    """A `$ref` points at a target that does not exist."""

    def __init__(self, ref: str, path: str | None = None):
        super().__init__(
            f"Unresolved reference '{ref}'",
            code=ErrorCode.UNRESOLVED_REFERENCE,
            path=path,
            details={"ref": ref},
        )
        self.ref = ref


class InvalidSchemaError(SchemaEvolutionError):
    """A schema fragment has no recognizable kind or is malformed."""

    default_code = ErrorCode.INVALID_SCHEMA
