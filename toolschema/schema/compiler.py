"""
Schema compiler for toolschema.

The compiler is the only entry point consumers use. It turns a registered
definition into a CompiledSchema and caches it:
- Cache hit: the same instance is returned (referential stability)
- Cache miss: fields are pulled from the registry in registration order,
  each resolved, refined by its rules, described and wrapped as optional,
  then assembled into one object validator

Invariants:
    - A type identity is compiled at most once per compiler, even under
      concurrent first use
    - Compiled schemas are immutable and shared read-only
    - Definition and compatibility errors surface here, never in parse()
    - Failures are not cached; compiling a broken definition raises again
    - Cyclic references between definitions are rejected

Example:
    >>> compiler = get_compiler()
    >>> schema = compiler.compile(User)
    >>> schema.parse({"email": "a@example.com"})
    {'email': 'a@example.com'}
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Hashable, List, Optional

from ..errors import CompatibilityError, DefinitionError, ValidationError, Violation
from .registry import SchemaRegistry, get_registry
from .resolver import BaseTypeResolver
from .rules import apply_rules
from .types import FieldDeclaration, SchemaDefinition, type_name
from .validators import ObjectValidator, OptionalValidator, UnknownKeys, Validator

logger = logging.getLogger(__name__)

# Global compiler instance
_global_compiler: Optional[SchemaCompiler] = None
_compiler_lock = threading.Lock()


@dataclass(frozen=True)
class ParseResult:
    """Outcome of a non-raising parse.

    Attributes:
        success: Whether the value satisfied the schema
        data: The validated value (None on failure)
        error: The ValidationError (None on success)
    """

    success: bool
    data: Any = None
    error: Optional[ValidationError] = None

    @property
    def violations(self) -> List[Violation]:
        return self.error.violations if self.error else []


@dataclass(frozen=True, eq=False)
class CompiledSchema:
    """Immutable, executable schema.

    Attributes:
        name: Display name of the compiled shape
        validator: Root validator
        type_id: Type identity it was compiled from (None when bridged)
    """

    name: str
    validator: Validator
    type_id: Optional[Hashable] = None

    @property
    def description(self) -> Optional[str]:
        return self.validator.description

    @property
    def fields(self) -> List[str]:
        """Declared field names in order ([] for non-object roots)."""
        if isinstance(self.validator, ObjectValidator):
            return list(self.validator.shape)
        return []

    def parse(self, value: Any) -> Any:
        """Validate value and return the validated result.

        Raises:
            ValidationError: With every violation found
        """
        issues: List[Violation] = []
        output = self.validator.validate(value, (), issues)
        if issues:
            raise ValidationError(issues, schema_name=self.name)
        return output

    def safe_parse(self, value: Any) -> ParseResult:
        """Validate value without raising."""
        try:
            return ParseResult(success=True, data=self.parse(value))
        except ValidationError as exc:
            return ParseResult(success=False, error=exc)

    def parse_json(self, text: str) -> Any:
        """Decode JSON text and validate the result.

        Raises:
            ValidationError: If text is not JSON or fails the schema
        """
        try:
            value = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                [Violation((), f"Invalid JSON: {exc}", "invalid_json")], schema_name=self.name
            ) from exc
        return self.parse(value)

    def describe(self) -> Dict[str, Any]:
        """JSON-Schema description: field names, descriptions, constraints."""
        return self.validator.to_json_schema()


class SchemaCompiler:
    """Compiles registered definitions and caches the results.

    Thread-safety:
        - Cache hits are lock-free
        - Misses compile under a re-entrant lock, so nested definitions can
          be compiled from inside a compile and each type compiles once

    Args:
        registry: Registry to compile from (default: the global registry)
        unknown_keys: Policy for undeclared keys in parsed objects
        max_suggestions: "Did you mean" suggestions per rejected key
    """

    def __init__(
        self,
        registry: Optional[SchemaRegistry] = None,
        *,
        unknown_keys: UnknownKeys = UnknownKeys.STRIP,
        max_suggestions: int = 3,
    ) -> None:
        self._registry = registry if registry is not None else get_registry()
        self._unknown_keys = unknown_keys
        self._max_suggestions = max_suggestions
        self._cache: Dict[Hashable, CompiledSchema] = {}
        self._lock = threading.RLock()
        self._in_progress: List[Hashable] = []
        self._resolver = BaseTypeResolver(self._registry, self._compile_nested)

    @property
    def registry(self) -> SchemaRegistry:
        return self._registry

    def is_compiled(self, type_id: Hashable) -> bool:
        """Whether type_id is already in the cache."""
        return type_id in self._cache

    def compile(self, type_id: Hashable) -> CompiledSchema:
        """Get the compiled schema for a type identity.

        Raises:
            DefinitionError: If the type was never declared or is malformed
            CompatibilityError: If a rule does not fit its field
        """
        cached = self._cache.get(type_id)
        if cached is not None:
            return cached

        with self._lock:
            cached = self._cache.get(type_id)
            if cached is not None:
                return cached

            definition = self._registry.get_definition(type_id)
            if definition is None:
                raise DefinitionError(
                    f"No schema found for {type_name(type_id)}. Did you apply @schema?",
                    type_name=type_name(type_id),
                )
            if type_id in self._in_progress:
                cycle = " -> ".join(type_name(t) for t in self._in_progress + [type_id])
                raise DefinitionError(
                    f"Cyclic type reference is not supported: {cycle}",
                    type_name=definition.name,
                )

            self._in_progress.append(type_id)
            try:
                compiled = self._build(definition)
            except (DefinitionError, CompatibilityError) as exc:
                logger.error(f"Failed to compile schema {definition.name}: {exc.message}")
                raise
            finally:
                self._in_progress.pop()

            self._cache[type_id] = compiled
            logger.debug(f"Compiled schema {definition.name} ({len(compiled.fields)} fields)")
            return compiled

    def _compile_nested(self, type_id: Hashable) -> Validator:
        return self.compile(type_id).validator

    def _build(self, definition: SchemaDefinition) -> CompiledSchema:
        shape: Dict[str, Validator] = {}
        for declaration in definition.field_list():
            shape[declaration.name] = self.compile_field(declaration, definition.name)

        root: Validator = ObjectValidator(
            shape=shape,
            unknown_keys=self._unknown_keys,
            max_suggestions=self._max_suggestions,
        )
        if definition.description or definition.example is not None:
            root = root.describe(definition.description, definition.example)
        return CompiledSchema(name=definition.name, validator=root, type_id=definition.type_id)

    def compile_field(self, declaration: FieldDeclaration, owner: Optional[str] = None) -> Validator:
        """Build one field's validator: base type, rules, description, optional.

        Optional wrapping is the outermost step so that omission bypasses
        every rule while a present value is fully checked.
        """
        validator = self._resolver.resolve(declaration, owner)
        validator = apply_rules(validator, declaration.rules, declaration.name)
        if declaration.description or declaration.example is not None:
            validator = validator.describe(declaration.description, declaration.example)
        if declaration.optional:
            validator = OptionalValidator(inner=validator)
        return validator

    def compile_all(self) -> Dict[str, Exception]:
        """Compile every registered definition.

        Returns:
            Errors by definition name (empty when everything compiled)
        """
        errors: Dict[str, Exception] = {}
        for definition in self._registry.definitions():
            try:
                self.compile(definition.type_id)
            except (DefinitionError, CompatibilityError) as exc:
                errors[definition.name] = exc
        return errors

    def clear(self) -> None:
        """Drop all cached schemas (for testing only)."""
        with self._lock:
            self._cache.clear()


def get_compiler() -> SchemaCompiler:
    """Get the global compiler, bound to the global registry.

    The unknown-key policy comes from Settings.strict_objects.
    """
    global _global_compiler
    with _compiler_lock:
        if _global_compiler is None:
            from ..config import get_settings

            settings = get_settings()
            _global_compiler = SchemaCompiler(
                get_registry(),
                unknown_keys=UnknownKeys.REJECT if settings.strict_objects else UnknownKeys.STRIP,
                max_suggestions=settings.max_suggestions,
            )
        return _global_compiler


def compile_schema(type_id: Hashable) -> CompiledSchema:
    """Compile (or fetch from cache) a type with the global compiler."""
    return get_compiler().compile(type_id)


def reset_compiler() -> None:
    """Reset the global compiler and its cache (for testing only)."""
    global _global_compiler
    with _compiler_lock:
        _global_compiler = None
