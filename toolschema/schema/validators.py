"""
Validator tree for compiled schemas.

Validators are immutable: refining one with a check returns a new validator,
so a compiled schema can be shared by any number of concurrent callers.

Every validator:
- Has a category, used by the rule pipeline's compatibility table
- Checks the runtime type of a value, then runs its checks in order
- Appends Violations to a caller-supplied list instead of raising, so a
  single parse reports every failure
- Renders itself as a JSON-Schema fragment for tool-calling payloads

Invariants:
    - validate() never raises for bad input; it records violations
    - Checks only run on values that passed the type check
    - Object violations carry the full key/index path of the failing value
"""

from __future__ import annotations

import dataclasses
import datetime
import enum
import math
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from difflib import get_close_matches
from types import MappingProxyType
from typing import Any, Callable, ClassVar, Dict, Hashable, List, Optional, Tuple

from ..errors import PathElement, Violation

Path = Tuple[PathElement, ...]


class Category(enum.Enum):
    """Runtime category of a validator, as seen by the rule pipeline."""

    STRING = "string"
    ENUM_STRING = "string enum"
    ENUM_NUMBER = "number enum"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ARRAY = "array"
    OBJECT = "object"
    ANY = "any"


class UnknownKeys(enum.Enum):
    """What an object validator does with keys it does not declare."""

    STRIP = "strip"
    REJECT = "reject"
    PASSTHROUGH = "passthrough"


def type_label(value: Any) -> str:
    """JSON-flavoured type name of a value, for messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, float) and not math.isfinite(value):
        return "non-finite number"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def is_number(value: Any) -> bool:
    """Whether value is a finite real number (booleans, NaN and infinities excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    # ints are exact at any size; only floats can be non-finite
    return not isinstance(value, float) or math.isfinite(value)


def canonical(value: Any) -> Hashable:
    """Hashable form of a JSON-like value where equal JSON values compare equal.

    Whole floats equal their integers and object keys compare as strings.
    Booleans stay distinct from numbers.
    """
    if value is None or isinstance(value, (bool, str)):
        return (type(value).__name__, value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return ("number", value)
    if isinstance(value, Mapping):
        return ("object", frozenset((str(k), canonical(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return ("array", tuple(canonical(v) for v in value))
    return ("other", repr(value))


@dataclass(frozen=True, eq=False)
class Check:
    """One refinement attached to a validator.

    Attributes:
        rule: Rule kind value that produced the check
        test: Predicate over the (type-checked) value
        message: Violation message when the predicate fails
        code: Violation code
        schema: JSON-Schema keywords summarizing the constraint
    """

    rule: str
    test: Callable[[Any], bool]
    message: str
    code: str = "invalid"
    schema: Mapping[str, Any] = dataclass_field(default_factory=dict)


@dataclass(frozen=True)
class Validator:
    """Base validator. Subclasses implement ``_coerce`` and ``_base_schema``."""

    category: ClassVar[Category] = Category.ANY

    checks: Tuple[Check, ...] = ()
    description: Optional[str] = None
    example: Any = None

    def refine(self, check: Check) -> Validator:
        """Return a copy with one more check."""
        return dataclasses.replace(self, checks=self.checks + (check,))

    def describe(self, description: Optional[str], example: Any = None) -> Validator:
        """Return a copy carrying a description (and example)."""
        return dataclasses.replace(self, description=description, example=example)

    def has_check(self, rule: str) -> bool:
        """Whether a check produced by the given rule kind is attached."""
        return any(c.rule == rule for c in self.checks)

    def validate(self, value: Any, path: Path, issues: List[Violation]) -> Any:
        """Validate value, appending violations to issues.

        Returns:
            The validated (possibly converted) value
        """
        ok, output = self._coerce(value, path, issues)
        if not ok:
            return value
        for check in self.checks:
            if not check.test(output):
                issues.append(Violation(path, check.message, check.code))
        return output

    def _coerce(self, value: Any, path: Path, issues: List[Violation]) -> Tuple[bool, Any]:
        return True, value

    def _base_schema(self) -> Dict[str, Any]:
        return {}

    def to_json_schema(self) -> Dict[str, Any]:
        """Render as a JSON-Schema fragment."""
        schema = self._base_schema()
        for check in self.checks:
            schema.update(check.schema)
        if self.description:
            schema["description"] = self.description
        if self.example is not None:
            schema["examples"] = [self.example]
        return schema


def _type_issue(expected: str, value: Any, path: Path, issues: List[Violation]) -> Tuple[bool, Any]:
    issues.append(
        Violation(path, f"Expected {expected}, received {type_label(value)}", "invalid_type")
    )
    return False, value


@dataclass(frozen=True)
class StringValidator(Validator):
    category: ClassVar[Category] = Category.STRING

    def _coerce(self, value, path, issues):
        if not isinstance(value, str):
            return _type_issue("string", value, path, issues)
        return True, value

    def _base_schema(self):
        return {"type": "string"}


@dataclass(frozen=True)
class NumberValidator(Validator):
    category: ClassVar[Category] = Category.NUMBER

    def _coerce(self, value, path, issues):
        if not is_number(value):
            return _type_issue("number", value, path, issues)
        return True, value

    def _base_schema(self):
        return {"type": "number"}


@dataclass(frozen=True)
class BooleanValidator(Validator):
    category: ClassVar[Category] = Category.BOOLEAN

    def _coerce(self, value, path, issues):
        if not isinstance(value, bool):
            return _type_issue("boolean", value, path, issues)
        return True, value

    def _base_schema(self):
        return {"type": "boolean"}


def parse_iso_datetime(value: str) -> Optional[datetime.datetime]:
    """Parse an ISO-8601 date or date-time string; None when malformed."""
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.datetime.fromisoformat(text)
    except ValueError:
        return None


@dataclass(frozen=True)
class DateValidator(Validator):
    """Accepts date/datetime objects and ISO-8601 strings (returned as datetime)."""

    category: ClassVar[Category] = Category.DATE

    def _coerce(self, value, path, issues):
        if isinstance(value, (datetime.datetime, datetime.date)):
            return True, value
        if isinstance(value, str):
            parsed = parse_iso_datetime(value)
            if parsed is not None:
                return True, parsed
            issues.append(Violation(path, "Invalid date", "invalid_date"))
            return False, value
        return _type_issue("date", value, path, issues)

    def _base_schema(self):
        return {"type": "string", "format": "date-time"}


def literal_key(value: Any) -> str:
    """String form of an enum literal (``1.0`` renders as ``"1"``)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class EnumValidator(Validator):
    """Closed-set membership check.

    String enums return the matching string. Numeric enums accept the string
    form of each literal (and the literal itself) and always return the
    numeric value.
    """

    values: Tuple[Any, ...] = ()
    numeric: bool = False

    @property
    def category(self) -> Category:  # type: ignore[override]
        return Category.ENUM_NUMBER if self.numeric else Category.ENUM_STRING

    def _lookup(self) -> Dict[str, Any]:
        return {literal_key(v): v for v in self.values}

    def _coerce(self, value, path, issues):
        if self.numeric:
            if is_number(value) and value in self.values:
                return True, self._lookup()[literal_key(value)]
            if isinstance(value, str) and value in self._lookup():
                return True, self._lookup()[value]
        elif isinstance(value, str) and value in self.values:
            return True, value
        options = " | ".join(repr(literal_key(v)) for v in self.values)
        issues.append(
            Violation(path, f"Invalid enum value. Expected {options}, received {value!r}", "invalid_enum_value")
        )
        return False, value

    def _base_schema(self):
        return {"type": "string", "enum": [literal_key(v) for v in self.values]}


@dataclass(frozen=True)
class LiteralValidator(Validator):
    """Closed set of arbitrary JSON literals (booleans, null, mixed kinds).

    Membership is decided on canonical forms, so ``True`` never matches ``1``.
    """

    values: Tuple[Any, ...] = ()

    def _coerce(self, value, path, issues):
        if canonical(value) in {canonical(v) for v in self.values}:
            return True, value
        options = " | ".join(repr(v) for v in self.values)
        issues.append(
            Violation(path, f"Invalid literal value. Expected {options}, received {value!r}", "invalid_literal")
        )
        return False, value

    def _base_schema(self):
        return {"enum": list(self.values)}


@dataclass(frozen=True)
class ArrayValidator(Validator):
    category: ClassVar[Category] = Category.ARRAY

    item: Validator = dataclass_field(default_factory=Validator)

    def _coerce(self, value, path, issues):
        if not isinstance(value, (list, tuple)):
            return _type_issue("array", value, path, issues)
        return True, [self.item.validate(v, path + (i,), issues) for i, v in enumerate(value)]

    def _base_schema(self):
        return {"type": "array", "items": self.item.to_json_schema()}


@dataclass(frozen=True)
class OptionalValidator(Validator):
    """Marks a field as omittable; a present value is fully validated.

    ``None`` counts as omitted.
    """

    inner: Validator = dataclass_field(default_factory=Validator)

    @property
    def category(self) -> Category:  # type: ignore[override]
        return self.inner.category

    def validate(self, value, path, issues):
        if value is None:
            return None
        return self.inner.validate(value, path, issues)

    def to_json_schema(self):
        return self.inner.to_json_schema()


@dataclass(frozen=True)
class NullableValidator(Validator):
    """Accepts null in addition to what the inner validator accepts."""

    inner: Validator = dataclass_field(default_factory=Validator)

    @property
    def category(self) -> Category:  # type: ignore[override]
        return self.inner.category

    def validate(self, value, path, issues):
        if value is None:
            return None
        return self.inner.validate(value, path, issues)

    def to_json_schema(self):
        schema: Dict[str, Any] = {"anyOf": [self.inner.to_json_schema(), {"type": "null"}]}
        if self.description:
            schema["description"] = self.description
        return schema


@dataclass(frozen=True)
class ObjectValidator(Validator):
    """Structural validator over a fixed set of named fields.

    Attributes:
        shape: Field validators by name, in declaration order
        unknown_keys: Policy for undeclared keys
        max_suggestions: "Did you mean" suggestions per rejected key
    """

    category: ClassVar[Category] = Category.OBJECT

    shape: Mapping[str, Validator] = dataclass_field(default_factory=dict)
    unknown_keys: UnknownKeys = UnknownKeys.STRIP
    max_suggestions: int = 3

    def __post_init__(self) -> None:
        object.__setattr__(self, "shape", MappingProxyType(dict(self.shape)))

    def _coerce(self, value, path, issues):
        if not isinstance(value, Mapping):
            return _type_issue("object", value, path, issues)

        output: Dict[str, Any] = {}
        for name, validator in self.shape.items():
            if name not in value:
                if not isinstance(validator, OptionalValidator):
                    issues.append(Violation(path + (name,), "Required", "required"))
                continue
            output[name] = validator.validate(value[name], path + (name,), issues)

        unknown = [k for k in value if k not in self.shape]
        if self.unknown_keys is UnknownKeys.PASSTHROUGH:
            for key in unknown:
                output[key] = value[key]
        elif self.unknown_keys is UnknownKeys.REJECT:
            known = list(self.shape)
            for key in unknown:
                suggestions = get_close_matches(str(key), known, n=self.max_suggestions)
                message = f"Unrecognized key '{key}'"
                if suggestions:
                    message += f". Did you mean: {', '.join(suggestions)}?"
                issues.append(Violation(path + (key,), message, "unrecognized_key"))
        return True, output

    def _base_schema(self):
        schema: Dict[str, Any] = {
            "type": "object",
            "properties": {name: v.to_json_schema() for name, v in self.shape.items()},
        }
        required = [n for n, v in self.shape.items() if not isinstance(v, OptionalValidator)]
        if required:
            schema["required"] = required
        schema["additionalProperties"] = self.unknown_keys is UnknownKeys.PASSTHROUGH
        return schema
