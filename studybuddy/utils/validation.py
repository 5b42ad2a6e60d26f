"""
Schema validation for persisted progression state.

Provides JSON Schema validation with clear error messages plus the
integrity checks a schema cannot express (unique achievement ids and
subject names, streak ratchet).
"""

import json
from pathlib import Path
from typing import Any, Optional

from jsonschema import Draft7Validator, FormatChecker, ValidationError

from ..config import config


class ValidationResult:
    """
    Result of a validation attempt.

    Attributes:
        valid: Whether data passed validation
        errors: List of error messages
        data: The validated data
    """

    def __init__(self, valid: bool, errors: list[str], data: Any = None):
        self.valid = valid
        self.errors = errors
        self.data = data

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.valid

    def __str__(self) -> str:
        """Human-readable representation."""
        if self.valid:
            return "✓ Validation passed"
        return f"✗ Validation failed with {len(self.errors)} error(s):\n" + "\n".join(
            f"  - {error}" for error in self.errors
        )


class SchemaValidator:
    """
    JSON Schema validator.

    Usage:
        validator = SchemaValidator("path/to/schema.json")
        result = validator.validate(data)
        if not result:
            print(result.errors)
    """

    def __init__(self, schema_path: Path | str):
        """
        Initialize validator with a schema file.

        Args:
            schema_path: Path to JSON Schema file
        """
        self.schema_path = Path(schema_path)
        with open(self.schema_path, "r", encoding="utf-8") as f:
            self.schema = json.load(f)
        # Use FormatChecker to validate date-time and date strings
        self.validator = Draft7Validator(self.schema, format_checker=FormatChecker())

    def validate(self, data: dict) -> ValidationResult:
        """
        Validate data against schema.

        Args:
            data: Data to validate

        Returns:
            ValidationResult with validation status and any errors
        """
        errors = [self._format_error(error) for error in self.validator.iter_errors(data)]
        errors.extend(self._semantic_errors(data) if not errors else [])
        return ValidationResult(valid=not errors, errors=errors, data=data)

    def _semantic_errors(self, data: dict) -> list[str]:
        """Checks beyond the schema; subclasses override."""
        return []

    def _format_error(self, error: ValidationError) -> str:
        """
        Convert ValidationError to human-readable message with details.

        Args:
            error: jsonschema ValidationError

        Returns:
            Formatted error message with validator and schema path
        """
        path = " -> ".join(str(p) for p in error.path) if error.path else "root"
        schema_path = "/".join(str(p) for p in error.schema_path)
        return f"At '{path}': {error.message} [validator={error.validator}, schema_path=/{schema_path}]"


class ProgressionStateValidator(SchemaValidator):
    """Validator for the persisted ProgressionState dictionary."""

    def __init__(self, schema_path: Optional[Path | str] = None):
        super().__init__(schema_path or config.paths.progression_schema)

    def _semantic_errors(self, data: dict) -> list[str]:
        errors = []

        achievement_ids = [a["id"] for a in data.get("achievements", [])]
        duplicates = sorted({i for i in achievement_ids if achievement_ids.count(i) > 1})
        if duplicates:
            errors.append(f"Duplicate achievement ids: {duplicates}")

        subjects = [s["subject"] for s in data.get("subjects", [])]
        duplicates = sorted({s for s in subjects if subjects.count(s) > 1})
        if duplicates:
            errors.append(f"Duplicate subjects: {duplicates}")

        ledger = data.get("ledger", {})
        if ledger.get("longest_streak_days", 0) < ledger.get("current_streak_days", 0):
            errors.append("longest_streak_days must be >= current_streak_days")

        return errors


def validate_progression_state(data: dict) -> ValidationResult:
    """Convenience function to validate a persisted progression dictionary."""
    return ProgressionStateValidator().validate(data)
