"""
JSON Schema for the comparison report output.

Defines the structure of comparisons.json written by `compare-batch` and
by `compare --json`.
"""

from __future__ import annotations

from typing import Any

from jsonschema import Draft7Validator

from .models import ComparisonResult, Verdict
from .report import verdict_tally

_ARTIFACT_SET_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["ref", "system", "file_count", "checksums", "error"],
    "additionalProperties": False,
    "properties": {
        "ref": {
            "type": "string",
            "description": "Build/run reference within its CI system",
        },
        "system": {
            "type": "string",
            "description": "CI system the artifacts came from",
        },
        "file_count": {
            "type": "integer",
            "minimum": 0,
        },
        "checksums": {
            "oneOf": [
                {"type": "array", "items": {"type": "string", "pattern": "^[0-9a-f]{64}$"}},
                {"type": "null"},
            ],
            "description": "Sorted SHA-256 digests, when checksum comparison was requested",
        },
        "error": {
            "type": ["string", "null"],
            "description": "Why the artifacts could not be retrieved",
        },
    },
}

COMPARISON_REPORT_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Migration Validation Report",
    "description": "Artifact comparisons between Jenkins builds and GitHub Actions runs",
    "type": "object",
    "required": ["generated_at", "stats", "comparisons"],
    "additionalProperties": False,
    "properties": {
        "generated_at": {
            "type": "string",
            "format": "date-time",
        },
        "stats": {
            "type": "object",
            "required": ["total"] + [v.value for v in Verdict],
            "additionalProperties": False,
            "properties": {
                "total": {"type": "integer", "minimum": 0},
                **{v.value: {"type": "integer", "minimum": 0} for v in Verdict},
            },
        },
        "comparisons": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["repo", "legacy", "candidate", "counts_match", "checksums_match", "verdict"],
                "additionalProperties": False,
                "properties": {
                    "repo": {"type": "string", "pattern": "^[^/]+/[^/]+$"},
                    "legacy": _ARTIFACT_SET_SCHEMA,
                    "candidate": _ARTIFACT_SET_SCHEMA,
                    "counts_match": {"type": "boolean"},
                    "checksums_match": {"type": ["boolean", "null"]},
                    "verdict": {"enum": [v.value for v in Verdict]},
                },
            },
        },
    },
}


def build_comparison_report(results: list[ComparisonResult], generated_at: str) -> dict[str, Any]:
    """Build the comparisons.json document."""
    stats: dict[str, int] = {"total": len(results)}
    stats.update(verdict_tally(results))
    return {
        "generated_at": generated_at,
        "stats": stats,
        "comparisons": [r.to_dict() for r in results],
    }


def validate_comparison_report(data: dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate a comparison report against the schema.

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    validator = Draft7Validator(COMPARISON_REPORT_SCHEMA)
    errors = list(validator.iter_errors(data))

    if not errors:
        return True, []

    error_messages = []
    for error in errors:
        path = ".".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
        error_messages.append(f"{path}: {error.message}")

    return False, error_messages
