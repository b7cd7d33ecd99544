"""
Base-type resolution for toolschema.

Turns one field declaration into its base validator (before rules):
- Enum values -> EnumValidator (string or numeric)
- Array -> ArrayValidator over the resolved item type
- Nested reference -> the compiled object validator of that definition
- Primitive -> String/Number/Boolean/Date validator

Invariants:
    - Enum lists are non-empty and single-kind; violations raise
      DefinitionError while resolving
    - An array without an item type raises DefinitionError
    - Nothing falls back to an "accept anything" validator; an unresolvable
      type raises DefinitionError naming the field
    - Nested definitions are compiled through the compiler, reusing its cache
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Hashable, Optional

from ..errors import DefinitionError
from .registry import SchemaRegistry
from .types import (
    ANY,
    ArrayOf,
    EnumOf,
    FieldDeclaration,
    NestedRef,
    Primitive,
    RuleKind,
    describe_type,
    enum_values_of,
    type_name,
    type_ref,
)
from .validators import (
    ArrayValidator,
    BooleanValidator,
    DateValidator,
    EnumValidator,
    NumberValidator,
    StringValidator,
    Validator,
    is_number,
)

logger = logging.getLogger(__name__)

NestedCompiler = Callable[[Hashable], Validator]

_PRIMITIVE_VALIDATORS = {
    Primitive.STRING: StringValidator,
    Primitive.NUMBER: NumberValidator,
    Primitive.BOOLEAN: BooleanValidator,
    Primitive.DATE: DateValidator,
}


def enum_validator(values: Any, field_name: Optional[str] = None, type_label: Optional[str] = None) -> EnumValidator:
    """Build the validator for a closed value set.

    Raises:
        DefinitionError: If values is empty or mixes strings and numbers
    """
    normalized = enum_values_of(values) if values is not None else ()
    if not normalized:
        raise DefinitionError(
            f"Enum values for {field_name} must be a non-empty list",
            type_name=type_label,
            field_name=field_name,
        )
    if all(isinstance(v, str) for v in normalized):
        return EnumValidator(values=normalized)
    if all(is_number(v) for v in normalized):
        return EnumValidator(values=normalized, numeric=True)
    raise DefinitionError(
        f"Enum values for {field_name} must be all strings or all numbers",
        type_name=type_label,
        field_name=field_name,
    )


class BaseTypeResolver:
    """Resolves declared field types against a registry.

    Args:
        registry: Registry used to recognise nested definitions
        compile_nested: Callback returning the object validator of a
            registered definition (the compiler's cached entry point)
    """

    def __init__(self, registry: SchemaRegistry, compile_nested: NestedCompiler) -> None:
        self._registry = registry
        self._compile_nested = compile_nested

    def resolve(self, declaration: FieldDeclaration, owner: Optional[str] = None) -> Validator:
        """Resolve the base validator of a field.

        Args:
            declaration: Field to resolve
            owner: Display name of the owning definition, for messages

        Raises:
            DefinitionError: If the declaration is malformed or unresolvable
        """
        name = declaration.name
        declared = type_ref(declaration.type)
        values = self._enum_values(declaration)

        if values is not None:
            validator = enum_validator(values, name, owner)
            self._check_enum_conflict(declared, validator, name, owner)
            return validator

        if isinstance(declared, ArrayOf):
            item = declared.item if declared.item is not None else type_ref(declaration.items)
            if item is None:
                raise DefinitionError(
                    f"Array property {name} must declare an item type",
                    type_name=owner,
                    field_name=name,
                )
            return ArrayValidator(item=self.resolve_type(item, name, owner))

        if declared is None and declaration.items is not None:
            return ArrayValidator(item=self.resolve_type(type_ref(declaration.items), name, owner))

        if declared is None:
            raise DefinitionError(
                f"Type for property {name} cannot be undefined",
                type_name=owner,
                field_name=name,
            )
        return self.resolve_type(declared, name, owner)

    def resolve_type(self, ref: Any, field_name: str, owner: Optional[str] = None) -> Validator:
        """Resolve a type reference (field type or array item type)."""
        if ref is ANY:
            raise DefinitionError(
                f"Type 'any' is not allowed for property {field_name}. Please specify a concrete type",
                type_name=owner,
                field_name=field_name,
            )
        if isinstance(ref, Primitive):
            return _PRIMITIVE_VALIDATORS[ref]()
        if isinstance(ref, EnumOf):
            return enum_validator(ref.values, field_name, owner)
        if isinstance(ref, ArrayOf):
            if ref.item is None:
                raise DefinitionError(
                    f"Array items of property {field_name} must declare an item type",
                    type_name=owner,
                    field_name=field_name,
                )
            return ArrayValidator(item=self.resolve_type(type_ref(ref.item), field_name, owner))
        if isinstance(ref, NestedRef):
            return self._resolve_nested(ref.type_id, field_name, owner)
        raise DefinitionError(
            f"Unsupported type {ref!r} for property {field_name}",
            type_name=owner,
            field_name=field_name,
        )

    def _resolve_nested(self, type_id: Hashable, field_name: str, owner: Optional[str]) -> Validator:
        if not self._registry.has_definition(type_id):
            raise DefinitionError(
                f"Type {type_name(type_id)} used by property {field_name} must be declared with @schema",
                type_name=owner,
                field_name=field_name,
            )
        try:
            return self._compile_nested(type_id)
        except DefinitionError as exc:
            raise DefinitionError(
                f"Failed to create schema for nested type {type_name(type_id)} "
                f"in {field_name}: {exc.message}",
                type_name=owner,
                field_name=field_name,
            ) from exc

    @staticmethod
    def _enum_values(declaration: FieldDeclaration) -> Optional[tuple]:
        """Enum values from the declaration, or from an ``enum`` rule."""
        if declaration.enum_values is not None:
            return declaration.enum_values
        if isinstance(type_ref(declaration.type), EnumOf):
            return type_ref(declaration.type).values
        for rule in declaration.rules:
            if rule.kind is RuleKind.ENUM:
                return enum_values_of(rule.params[0]) if rule.params else ()
        return None

    @staticmethod
    def _check_enum_conflict(declared: Any, validator: EnumValidator, name: str, owner: Optional[str]) -> None:
        if declared is None or isinstance(declared, EnumOf):
            return
        if declared is Primitive.STRING and not validator.numeric:
            return
        if declared is Primitive.NUMBER and validator.numeric:
            return
        raise DefinitionError(
            f"Enum values for {name} conflict with its declared type {describe_type(declared)}",
            type_name=owner,
            field_name=name,
        )
