"""
Core type definitions for the toolschema declaration system.

This module defines the records the registry stores and the compiler reads:
- Primitive / EnumOf / ArrayOf / NestedRef: declared base types
- RuleKind / Rule: named, parameterized constraints
- FieldDeclaration: one named member of a definition
- SchemaDefinition: the registry's view of a type identity

Invariants:
    - A field has exactly one base type; enum values decide it when present
    - Rules are ordered; each refines the validator built by the previous one
    - Records are frozen; the registry replaces them instead of mutating

Example:
    >>> from toolschema.schema.types import FieldDeclaration, Rule, RuleKind, type_ref
    >>> age = FieldDeclaration(
    ...     name="age",
    ...     type=type_ref(int),
    ...     rules=(Rule(RuleKind.MINIMUM, (0,)),),
    ... )
"""

from __future__ import annotations

import datetime
import enum
import typing
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import Any, Hashable, Optional, Union


class Primitive(enum.Enum):
    """Built-in scalar types a field can be declared with."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"

    @classmethod
    def from_str(cls, value: str) -> Primitive:
        """Convert string representation to Primitive.

        Raises:
            ValueError: If value is not a primitive name
        """
        key = value.lower()
        if key in _PRIMITIVE_ALIASES:
            return _PRIMITIVE_ALIASES[key]
        valid = sorted(_PRIMITIVE_ALIASES)
        raise ValueError(f"Invalid primitive '{value}'. Valid primitives: {valid}")


_PRIMITIVE_ALIASES = {
    "string": Primitive.STRING,
    "str": Primitive.STRING,
    "number": Primitive.NUMBER,
    "float": Primitive.NUMBER,
    "int": Primitive.NUMBER,
    "integer": Primitive.NUMBER,
    "boolean": Primitive.BOOLEAN,
    "bool": Primitive.BOOLEAN,
    "date": Primitive.DATE,
    "datetime": Primitive.DATE,
}

_PYTHON_PRIMITIVES = {
    str: Primitive.STRING,
    int: Primitive.NUMBER,
    float: Primitive.NUMBER,
    bool: Primitive.BOOLEAN,
    datetime.datetime: Primitive.DATE,
    datetime.date: Primitive.DATE,
}


@dataclass(frozen=True)
class EnumOf:
    """Closed set of literal values (all strings or all numbers)."""

    values: tuple[Any, ...]


@dataclass(frozen=True)
class ArrayOf:
    """Array whose elements share one declared type.

    ``item`` is None when the declaration did not say what the array holds;
    the resolver rejects that at compile time.
    """

    item: Optional[TypeRef] = None


@dataclass(frozen=True)
class NestedRef:
    """Reference to another registered definition."""

    type_id: Hashable


TypeRef = Union[Primitive, EnumOf, ArrayOf, NestedRef]


class _Unresolvable:
    """Marker for declared types that can never be resolved (``Any``)."""

    def __repr__(self) -> str:
        return "Any"


ANY = _Unresolvable()


def enum_values_of(values: Any) -> tuple[Any, ...]:
    """Normalize an enum value list, accepting Python ``Enum`` classes."""
    if isinstance(values, type) and issubclass(values, enum.Enum):
        return tuple(member.value for member in values)
    if isinstance(values, (str, bytes)):
        return (values,)
    return tuple(values)


def type_ref(declared: Any) -> Any:
    """Convert a caller-supplied type descriptor to a TypeRef.

    Accepts TypeRef instances, primitive names ("str", "number", ...),
    the Python types ``str``/``int``/``float``/``bool``/``datetime``,
    ``list`` or "array" (an array without item type), Enum classes, and any
    other hashable, which becomes a reference to a registered definition.
    ``typing.Any`` and ``object`` map to an unresolvable marker so the
    resolver can name the field in its error.

    Returns None when nothing was declared.
    """
    if declared is None:
        return None
    if isinstance(declared, (Primitive, EnumOf, ArrayOf, NestedRef)):
        return declared
    if declared is typing.Any or declared is object:
        return ANY
    if isinstance(declared, str):
        if declared.lower() in ("array", "list"):
            return ArrayOf()
        if declared.lower() == "any":
            return ANY
        if declared.lower() in _PRIMITIVE_ALIASES:
            return Primitive.from_str(declared)
        return NestedRef(declared)
    if declared in (list, tuple):
        return ArrayOf()
    if isinstance(declared, type) and issubclass(declared, enum.Enum):
        return EnumOf(enum_values_of(declared))
    if isinstance(declared, type) and declared in _PYTHON_PRIMITIVES:
        return _PYTHON_PRIMITIVES[declared]
    return NestedRef(declared)


def describe_type(ref: Any) -> str:
    """Short human-readable name of a declared type, for error messages."""
    if ref is None:
        return "undeclared"
    if isinstance(ref, Primitive):
        return ref.value
    if isinstance(ref, EnumOf):
        return f"enum{list(ref.values)}"
    if isinstance(ref, ArrayOf):
        return f"array of {describe_type(ref.item)}" if ref.item is not None else "array"
    if isinstance(ref, NestedRef):
        return type_name(ref.type_id)
    return repr(ref)


def type_name(type_id: Hashable) -> str:
    """Display name of a type identity (class name or the identity itself)."""
    return getattr(type_id, "__name__", None) or str(type_id)


class RuleKind(enum.Enum):
    """Closed vocabulary of constraints a field can carry.

    ``MIN`` and ``MAX`` are polymorphic: string length, array size or
    inclusive numeric bound depending on the validator they refine.
    """

    # String rules
    EMAIL = "email"
    URL = "url"
    PATTERN = "pattern"
    UUID = "uuid"
    CUID = "cuid"
    DATETIME = "datetime"
    IP = "ip"
    MIN_LENGTH = "minLength"
    MAX_LENGTH = "maxLength"

    # Polymorphic bounds
    MIN = "min"
    MAX = "max"

    # Number rules
    MINIMUM = "minimum"
    MAXIMUM = "maximum"
    EXCLUSIVE_MINIMUM = "exclusiveMinimum"
    EXCLUSIVE_MAXIMUM = "exclusiveMaximum"
    MULTIPLE_OF = "multipleOf"
    INTEGER = "integer"

    # Array rules
    MIN_ITEMS = "minItems"
    MAX_ITEMS = "maxItems"
    UNIQUE_ITEMS = "uniqueItems"

    # Handled by the resolver; a no-op in the pipeline
    ENUM = "enum"

    @classmethod
    def from_str(cls, value: str) -> RuleKind:
        """Convert string representation to RuleKind.

        Raises:
            ValueError: If value is not a known rule kind
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid rule kind '{value}'. Valid kinds: {valid}")


@dataclass(frozen=True)
class Rule:
    """A named constraint with positional parameters.

    Example:
        >>> Rule(RuleKind.MIN_LENGTH, (3,))
        >>> Rule(RuleKind.EMAIL)
    """

    kind: RuleKind
    params: tuple[Any, ...] = ()

    def __str__(self) -> str:
        if not self.params:
            return self.kind.value
        return f"{self.kind.value}({', '.join(repr(p) for p in self.params)})"


@dataclass(frozen=True)
class FieldDeclaration:
    """Declaration of a single field within a definition.

    Attributes:
        name: Field name, unique within the owning definition
        type: Declared base type (see ``type_ref``); None until declared
        description: Human-readable description, included in descriptions
        optional: Whether the field may be omitted
        items: Item type for array fields
        enum_values: Closed value set; decides the base type when present
        rules: Ordered constraints
        example: Example value, included in descriptions

    Invariants:
        - name cannot be empty
        - enum_values and an array/nested type are mutually exclusive
          (checked by the resolver at compile time, not here)
    """

    name: str
    type: Any = None
    description: Optional[str] = None
    optional: bool = False
    items: Any = None
    enum_values: Optional[tuple[Any, ...]] = None
    rules: tuple[Rule, ...] = ()
    example: Any = None

    def __post_init__(self) -> None:
        """Validate field declaration."""
        if not self.name:
            raise ValueError("Field name cannot be empty")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for display."""
        result: dict[str, Any] = {
            "name": self.name,
            "type": describe_type(type_ref(self.type)),
        }
        if self.optional:
            result["optional"] = True
        if self.items is not None:
            result["items"] = describe_type(type_ref(self.items))
        if self.enum_values is not None:
            result["enum_values"] = list(self.enum_values)
        if self.rules:
            result["rules"] = [str(r) for r in self.rules]
        if self.description:
            result["description"] = self.description
        return result


@dataclass
class SchemaDefinition:
    """The registry's view of a type identity.

    Fields are kept in registration order; the registry replaces a field's
    record when it is registered again, so names stay unique.

    Attributes:
        type_id: Identity the definition is registered under (class or name)
        name: Display name, used for lookup by name and in messages
        fields: Field declarations keyed by name, in registration order
        description: Definition-level description
        example: Example value for the whole shape
        deprecated: Whether the shape is deprecated
    """

    type_id: Hashable
    name: str
    fields: dict[str, FieldDeclaration] = dataclass_field(default_factory=dict)
    description: Optional[str] = None
    example: Any = None
    deprecated: bool = False

    def field_list(self) -> list[FieldDeclaration]:
        """Fields in registration order."""
        return list(self.fields.values())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for display."""
        result: dict[str, Any] = {
            "name": self.name,
            "fields": [f.to_dict() for f in self.fields.values()],
        }
        if self.description:
            result["description"] = self.description
        if self.deprecated:
            result["deprecated"] = True
        return result
