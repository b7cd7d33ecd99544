"""
Declaration helpers for toolschema.

Three equivalent ways to declare a shape:
- ``@schema`` class decorator collecting ``field()`` attributes
- ``define(type_id, {...})`` for shapes without a class
- Direct ``SchemaRegistry.register_field`` / ``register_rule`` calls

Type hints are never inspected; every field states its type explicitly.

Example:
    >>> from toolschema.schema import declare as ts
    >>>
    >>> @ts.schema("A postal address")
    ... class Address:
    ...     street = ts.field(str, description="Street and number")
    ...     zip_code = ts.field(str, rules=[ts.pattern(r"^\\d{5}$")])
    >>>
    >>> @ts.schema("A customer")
    ... class Customer:
    ...     email = ts.field(str, rules=[ts.email()])
    ...     age = ts.field(int, optional=True, rules=[ts.minimum(0), ts.maximum(150)])
    ...     address = ts.field(Address)
    ...     tags = ts.field(list, items=str, rules=[ts.min_items(1), ts.unique_items()])
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Iterable, Mapping, Optional, Union

from .registry import SchemaRegistry, get_registry
from .types import Rule, RuleKind, type_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldSpec:
    """A field as written in a declaration, before it reaches the registry.

    Attributes:
        type: Declared type (see ``types.type_ref``)
        description: Human-readable description
        optional: Whether the field may be omitted
        items: Item type for array fields
        enum: Closed value set (list or Enum class)
        rules: Ordered constraints
        example: Example value
    """

    type: Any = None
    description: Optional[str] = None
    optional: bool = False
    items: Any = None
    enum: Any = None
    rules: tuple[Rule, ...] = ()
    example: Any = None

    def register(self, registry: SchemaRegistry, type_id: Hashable, name: str) -> None:
        """Write this field into registry under (type_id, name)."""
        attrs: dict[str, Any] = {"optional": self.optional}
        if self.type is not None:
            attrs["type"] = self.type
        if self.description is not None:
            attrs["description"] = self.description
        if self.items is not None:
            attrs["items"] = self.items
        if self.enum is not None:
            attrs["enum_values"] = self.enum
        if self.example is not None:
            attrs["example"] = self.example
        registry.register_field(type_id, name, **attrs)
        for rule in self.rules:
            registry.register_rule(type_id, name, rule)


def field(
    type: Any = None,
    *,
    description: Optional[str] = None,
    optional: bool = False,
    items: Any = None,
    enum: Any = None,
    rules: Iterable[Rule] = (),
    example: Any = None,
) -> FieldSpec:
    """Declare a field.

    Example:
        >>> role = field(enum=["admin", "user"], description="Access role")
        >>> scores = field(list, items=float, rules=[max_items(10)])
    """
    return FieldSpec(
        type=type,
        description=description,
        optional=optional,
        items=items,
        enum=enum,
        rules=tuple(rules),
        example=example,
    )


def schema(
    description: Union[str, type, None] = None,
    *,
    name: Optional[str] = None,
    example: Any = None,
    deprecated: Optional[bool] = None,
    registry: Optional[SchemaRegistry] = None,
) -> Any:
    """Class decorator registering a class and its ``field()`` attributes.

    Fields are registered in class-body order. Usable bare (``@schema``) or
    with arguments (``@schema("A customer")``).
    """
    if isinstance(description, type):
        return schema()(description)

    def decorator(cls: type) -> type:
        target = registry if registry is not None else get_registry()
        target.define(cls, name=name, description=description, example=example, deprecated=deprecated)
        for attr, value in vars(cls).items():
            if isinstance(value, FieldSpec):
                value.register(target, cls, attr)
        logger.debug(f"Declared schema {type_name(cls)}")
        return cls

    return decorator


def define(
    type_id: Hashable,
    fields: Optional[Mapping[str, Union[FieldSpec, Mapping[str, Any]]]] = None,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    example: Any = None,
    registry: Optional[SchemaRegistry] = None,
) -> Hashable:
    """Declare a shape without a class.

    Args:
        type_id: Identity to register under (commonly a string)
        fields: FieldSpec (or keyword dict for ``field()``) per field name,
            in order
        name: Display name
        description: Description of the whole shape
        example: Example value of the whole shape
        registry: Target registry (default: the global registry)

    Returns:
        type_id, for passing straight to the compiler
    """
    target = registry if registry is not None else get_registry()
    target.define(type_id, name=name, description=description, example=example)
    for field_name, spec in (fields or {}).items():
        if not isinstance(spec, FieldSpec):
            spec = field(**spec)
        spec.register(target, type_id, field_name)
    return type_id


# =============================================================================
# Rule constructors
# =============================================================================


def rule(kind: Union[RuleKind, str], *params: Any) -> Rule:
    """Build a rule from its kind name (``rule("minLength", 3)``)."""
    if isinstance(kind, str):
        kind = RuleKind.from_str(kind)
    return Rule(kind, params)


def _simple(kind: RuleKind) -> Callable[[], Rule]:
    def build() -> Rule:
        return Rule(kind)

    build.__name__ = kind.name.lower()
    build.__doc__ = f"``{kind.value}`` rule."
    return build


email = _simple(RuleKind.EMAIL)
url = _simple(RuleKind.URL)
uuid = _simple(RuleKind.UUID)
cuid = _simple(RuleKind.CUID)
iso_datetime = _simple(RuleKind.DATETIME)
ip_address = _simple(RuleKind.IP)
integer = _simple(RuleKind.INTEGER)
unique_items = _simple(RuleKind.UNIQUE_ITEMS)


def pattern(regex: Any) -> Rule:
    """String must match regex (``re.search`` semantics)."""
    return Rule(RuleKind.PATTERN, (regex,))


def min_length(n: int) -> Rule:
    return Rule(RuleKind.MIN_LENGTH, (n,))


def max_length(n: int) -> Rule:
    return Rule(RuleKind.MAX_LENGTH, (n,))


def min_size(n: float) -> Rule:
    """Lower bound on length, element count or value, by field category."""
    return Rule(RuleKind.MIN, (n,))


def max_size(n: float) -> Rule:
    """Upper bound on length, element count or value, by field category."""
    return Rule(RuleKind.MAX, (n,))


def minimum(n: float) -> Rule:
    return Rule(RuleKind.MINIMUM, (n,))


def maximum(n: float) -> Rule:
    return Rule(RuleKind.MAXIMUM, (n,))


def exclusive_minimum(n: float) -> Rule:
    return Rule(RuleKind.EXCLUSIVE_MINIMUM, (n,))


def exclusive_maximum(n: float) -> Rule:
    return Rule(RuleKind.EXCLUSIVE_MAXIMUM, (n,))


def multiple_of(n: float) -> Rule:
    return Rule(RuleKind.MULTIPLE_OF, (n,))


def min_items(n: int) -> Rule:
    return Rule(RuleKind.MIN_ITEMS, (n,))


def max_items(n: int) -> Rule:
    return Rule(RuleKind.MAX_ITEMS, (n,))


def enum_values(values: Any) -> Rule:
    """Closed value set expressed as a rule; decides the field's base type."""
    return Rule(RuleKind.ENUM, (values,))
