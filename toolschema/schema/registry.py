"""
Metadata registry for toolschema.

The registry records what each declared type looks like before anything is
compiled. It provides:
- Incremental, idempotent field registration
- Ordered rule lists per field
- Lookup by type identity or display name
- Freeze mechanism to prevent modifications after startup

Invariants:
    - Fields keep registration order; a name is registered at most once
    - Re-registering a field merges attributes into the same slot
    - No validation happens here; an incomplete declaration is legal until
      it is compiled
    - Unknown type identities have no fields (``get_fields`` returns [])

How to change safely:
    - Register all declarations at import time, before the first compile
    - Redefining a type after it was compiled is unsupported (the compiled
      schema is cached and never invalidated)

Example:
    >>> from toolschema.schema.registry import SchemaRegistry
    >>> from toolschema.schema.types import Rule, RuleKind
    >>> registry = SchemaRegistry()
    >>> registry.register_field("User", "email", type="string")
    >>> registry.register_rule("User", "email", Rule(RuleKind.EMAIL))
    >>> [f.name for f in registry.get_fields("User")]
    ['email']
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Any, Dict, Hashable, Iterator, List, Optional

from ..errors import RegistryFrozenError
from .types import FieldDeclaration, Rule, SchemaDefinition, enum_values_of, type_name

logger = logging.getLogger(__name__)

# Global registry instance
_global_registry: Optional[SchemaRegistry] = None
_registry_lock = threading.Lock()

_FIELD_ATTRIBUTES = frozenset(
    f.name for f in dataclasses.fields(FieldDeclaration) if f.name not in ("name", "rules")
)


class SchemaRegistry:
    """Registry of field declarations keyed by type identity.

    Thread-safety:
        - Registration is thread-safe (uses internal lock)
        - Lookups return copies and never block
        - Freeze is atomic and irreversible

    Example:
        >>> registry = SchemaRegistry()
        >>> registry.define(Address, description="A postal address")
        >>> registry.register_field(Address, "zip_code", type=str)
        >>> registry.freeze()
    """

    def __init__(self) -> None:
        """Initialize an empty, mutable registry."""
        self._definitions: Dict[Hashable, SchemaDefinition] = {}
        self._definitions_by_name: Dict[str, SchemaDefinition] = {}
        self._frozen = False
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        """Whether the registry is frozen."""
        return self._frozen

    def _ensure_definition(self, type_id: Hashable) -> SchemaDefinition:
        """Get or create the definition for type_id. Caller holds the lock."""
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register '{type_name(type_id)}': registry is frozen"
            )
        definition = self._definitions.get(type_id)
        if definition is None:
            definition = SchemaDefinition(type_id=type_id, name=type_name(type_id))
            self._definitions[type_id] = definition
            self._definitions_by_name.setdefault(definition.name, definition)
            logger.debug(f"Registered definition: {definition.name}")
        return definition

    def define(
        self,
        type_id: Hashable,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        example: Any = None,
        deprecated: Optional[bool] = None,
    ) -> SchemaDefinition:
        """Record definition-level metadata for a type identity.

        Creates the definition if needed; attributes that are passed
        overwrite earlier values, attributes left as None are kept.

        Args:
            type_id: Type identity (a class, a string, or any hashable)
            name: Display name (defaults to the class name or str(type_id))
            description: Description of the whole shape
            example: Example value of the whole shape
            deprecated: Whether the shape is deprecated

        Returns:
            The SchemaDefinition for type_id

        Raises:
            RegistryFrozenError: If registry is frozen
        """
        with self._lock:
            definition = self._ensure_definition(type_id)
            if name is not None and name != definition.name:
                if self._definitions_by_name.get(definition.name) is definition:
                    del self._definitions_by_name[definition.name]
                definition.name = name
                self._definitions_by_name[name] = definition
            if description is not None:
                definition.description = description
            if example is not None:
                definition.example = example
            if deprecated is not None:
                definition.deprecated = deprecated
            return definition

    def register_field(self, type_id: Hashable, name: str, **attrs: Any) -> FieldDeclaration:
        """Register a field, merging into an existing slot for the same name.

        Args:
            type_id: Owning type identity
            name: Field name
            **attrs: FieldDeclaration attributes (type, description, optional,
                items, enum_values, example); passing ``rules`` replaces the
                rule list

        Returns:
            The merged FieldDeclaration

        Raises:
            RegistryFrozenError: If registry is frozen
            TypeError: If an attribute name is unknown

        Example:
            >>> registry.register_field(User, "role", enum_values=("admin", "user"))
            >>> registry.register_field(User, "role", description="Access role")
        """
        unknown = set(attrs) - _FIELD_ATTRIBUTES - {"rules"}
        if unknown:
            raise TypeError(f"Unknown field attributes: {sorted(unknown)}")
        if attrs.get("enum_values") is not None:
            attrs["enum_values"] = enum_values_of(attrs["enum_values"])
        if "rules" in attrs:
            attrs["rules"] = tuple(attrs["rules"])

        with self._lock:
            definition = self._ensure_definition(type_id)
            existing = definition.fields.get(name)
            if existing is None:
                declaration = FieldDeclaration(name=name, **attrs)
            else:
                declaration = dataclasses.replace(existing, **attrs)
            definition.fields[name] = declaration
            logger.debug(f"Registered field: {definition.name}.{name}")
            return declaration

    def register_rule(self, type_id: Hashable, name: str, rule: Rule) -> FieldDeclaration:
        """Append a rule to a field's ordered rule list.

        Creates a bare placeholder field when the field is not yet known.

        Raises:
            RegistryFrozenError: If registry is frozen
        """
        with self._lock:
            definition = self._ensure_definition(type_id)
            existing = definition.fields.get(name) or FieldDeclaration(name=name)
            declaration = dataclasses.replace(existing, rules=existing.rules + (rule,))
            definition.fields[name] = declaration
            return declaration

    def get_fields(self, type_id: Hashable) -> List[FieldDeclaration]:
        """Get the ordered field declarations of a type.

        Returns:
            Field declarations in registration order; [] for an unknown type
        """
        definition = self._definitions.get(type_id)
        if definition is None:
            return []
        return definition.field_list()

    def get_definition(self, type_id: Hashable) -> Optional[SchemaDefinition]:
        """Get a definition by type identity."""
        return self._definitions.get(type_id)

    def get_definition_by_name(self, name: str) -> Optional[SchemaDefinition]:
        """Get a definition by display name."""
        return self._definitions_by_name.get(name)

    def has_definition(self, type_id: Hashable) -> bool:
        """Whether anything was declared for type_id."""
        try:
            return type_id in self._definitions
        except TypeError:
            return False

    def definitions(self) -> Iterator[SchemaDefinition]:
        """Iterate over all definitions in registration order."""
        yield from list(self._definitions.values())

    def freeze(self) -> None:
        """Freeze the registry. Further registration raises RegistryFrozenError.

        Raises:
            RegistryFrozenError: If already frozen
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Registry is already frozen")
            self._frozen = True
            logger.info(f"Schema registry frozen with {len(self._definitions)} definitions")

    def to_dict(self) -> dict:
        """Convert registry to dictionary representation, in registration order."""
        return {"definitions": [d.to_dict() for d in self._definitions.values()]}


def get_registry() -> SchemaRegistry:
    """Get the global schema registry.

    Creates a new registry if none exists.
    """
    global _global_registry
    with _registry_lock:
        if _global_registry is None:
            _global_registry = SchemaRegistry()
        return _global_registry


def reset_registry() -> None:
    """Reset the global registry (for testing only).

    Warning: This is intended for test cleanup only.
    Never use in production code.
    """
    global _global_registry
    with _registry_lock:
        _global_registry = None
