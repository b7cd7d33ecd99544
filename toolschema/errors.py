"""
Error types for toolschema.

This module defines all exception types raised by the package:
- ToolSchemaError: Base exception
- DefinitionError: Malformed field or type declaration
- CompatibilityError: Rule applied to a field it cannot constrain
- ValidationError: Input value failed an already-compiled schema
- RegistryFrozenError: Registration attempted after freeze

Invariants:
    - All errors inherit from ToolSchemaError
    - Definition and compatibility errors are raised while compiling, never
      while parsing
    - ValidationError always carries every violation found, not just the first
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

PathElement = Union[str, int]


class ToolSchemaError(Exception):
    """Base exception for all toolschema errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "TOOLSCHEMA_ERROR"
        self.details = details or {}


class DefinitionError(ToolSchemaError):
    """A declaration cannot be compiled.

    Raised when:
    - Enum values are empty or mix strings and numbers
    - An array field has no item type
    - A field type cannot be resolved (missing, ``Any``, or undeclared)
    - A rule has malformed parameters
    - Nested types reference each other in a cycle
    """

    def __init__(
        self,
        message: str,
        type_name: Optional[str] = None,
        field_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="DEFINITION_ERROR",
            details={"type_name": type_name, "field_name": field_name},
        )
        self.type_name = type_name
        self.field_name = field_name


class CompatibilityError(ToolSchemaError):
    """A rule was declared on a field whose category it cannot constrain.

    Attributes:
        rule: Rule kind value (e.g. "email")
        category: Category of the validator the rule was applied to
        field_name: Offending field, when known
    """

    def __init__(
        self,
        rule: str,
        category: str,
        field_name: Optional[str] = None,
    ) -> None:
        where = f" on field '{field_name}'" if field_name else ""
        super().__init__(
            f"Rule '{rule}' cannot be applied to a {category} value{where}",
            code="COMPATIBILITY_ERROR",
            details={"rule": rule, "category": category, "field_name": field_name},
        )
        self.rule = rule
        self.category = category
        self.field_name = field_name


def format_path(path: Sequence[PathElement]) -> str:
    """Render a path as ``address.zip_code`` / ``tags[2].name``."""
    rendered = ""
    for element in path:
        if isinstance(element, int):
            rendered += f"[{element}]"
        elif rendered:
            rendered += f".{element}"
        else:
            rendered = element
    return rendered


@dataclass(frozen=True)
class Violation:
    """A single constraint failure at a location in the input.

    Attributes:
        path: Location of the failing value, as keys and indexes
        message: Human-readable reason
        code: Short machine-readable reason (e.g. "too_small")
    """

    path: tuple[PathElement, ...]
    message: str
    code: str = "invalid"

    @property
    def location(self) -> str:
        """Dotted path string (empty for the root value)."""
        return format_path(self.path)

    def __str__(self) -> str:
        if not self.path:
            return self.message
        return f"{self.location}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {"path": self.location, "message": self.message, "code": self.code}


class ValidationError(ToolSchemaError):
    """A value failed one or more constraints of a compiled schema.

    Raised by ``CompiledSchema.parse``. Callers are expected to recover from
    it (for example by reporting it back to the model).
    """

    def __init__(
        self,
        violations: List[Violation],
        schema_name: Optional[str] = None,
    ) -> None:
        target = f" for {schema_name}" if schema_name else ""
        super().__init__(
            f"Validation failed{target}: " + "; ".join(str(v) for v in violations),
            code="VALIDATION_ERROR",
            details={"errors": [v.to_dict() for v in violations]},
        )
        self.violations = violations
        self.schema_name = schema_name

    @property
    def errors(self) -> List[str]:
        """Violations rendered as strings."""
        return [str(v) for v in self.violations]

    def to_model_message(self) -> str:
        """Render the violations as feedback for a language model."""
        lines = ["Your tool arguments were invalid:"]
        lines.extend(f"- {error}" for error in self.errors)
        return "\n".join(lines)


class RegistryFrozenError(ToolSchemaError):
    """Registry is frozen and cannot be modified."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="REGISTRY_FROZEN")
