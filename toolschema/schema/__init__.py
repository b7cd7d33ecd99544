"""
Schema module for toolschema.

This module provides the declaration-to-validator pipeline:
- Type definitions (FieldDeclaration, SchemaDefinition, Rule)
- Metadata registry for declarations
- Base-type resolver and rule pipeline
- Schema compiler with an at-most-once cache

Invariants:
    - A declared type compiles at most once per compiler
    - Malformed declarations fail at compile time, never at parse time
    - Compiled schemas are immutable and shared

How to change safely:
    - Declare every shape at import time, before the first compile
    - Add fields or rules only before a shape is first compiled
    - Use the CLI ``check`` command to compile all declarations in CI
"""

from .compiler import (
    CompiledSchema,
    ParseResult,
    SchemaCompiler,
    compile_schema,
    get_compiler,
    reset_compiler,
)
from .declare import FieldSpec, define, field, schema
from .registry import SchemaRegistry, get_registry, reset_registry
from .rules import RULE_CATEGORIES, apply_rule, apply_rules
from .types import (
    ArrayOf,
    EnumOf,
    FieldDeclaration,
    NestedRef,
    Primitive,
    Rule,
    RuleKind,
    SchemaDefinition,
    type_ref,
)
from .validators import Category, UnknownKeys, Validator

__all__ = [
    # Types
    "Primitive",
    "EnumOf",
    "ArrayOf",
    "NestedRef",
    "Rule",
    "RuleKind",
    "FieldDeclaration",
    "SchemaDefinition",
    "type_ref",
    # Declaration
    "FieldSpec",
    "field",
    "schema",
    "define",
    # Registry
    "SchemaRegistry",
    "get_registry",
    "reset_registry",
    # Pipeline
    "Category",
    "UnknownKeys",
    "Validator",
    "RULE_CATEGORIES",
    "apply_rule",
    "apply_rules",
    # Compiler
    "CompiledSchema",
    "ParseResult",
    "SchemaCompiler",
    "compile_schema",
    "get_compiler",
    "reset_compiler",
]
