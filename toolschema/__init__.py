"""
toolschema - declared data shapes for LLM tool calling.

Declare a shape once and get a compiled, cached, runtime-checking schema:
- Validates tool arguments and structured model output
- Describes itself as JSON Schema for function-calling payloads
- Bridges remote tools' JSON-Schema into the same validators

Example:
    >>> from toolschema import schema, field, compile_schema
    >>> from toolschema.schema import declare as ts
    >>>
    >>> @schema("Search the catalog")
    ... class SearchArgs:
    ...     query = field(str, rules=[ts.min_length(1)])
    ...     limit = field(int, optional=True, rules=[ts.minimum(1), ts.maximum(50)])
    >>>
    >>> compile_schema(SearchArgs).parse({"query": "lamp"})
    {'query': 'lamp'}

Invariants:
    - Declarations are explicit; type hints are never inspected
    - Each declared type compiles at most once per process
    - Definition errors surface on first compile, validation errors per call

Version: 1.0.0
"""

__version__ = "1.0.0"

from .bridge import from_json_schema
from .contracts import Contract, ContractKind, resolve_contract
from .errors import (
    CompatibilityError,
    DefinitionError,
    RegistryFrozenError,
    ToolSchemaError,
    ValidationError,
    Violation,
)
from .schema import (
    CompiledSchema,
    ParseResult,
    SchemaCompiler,
    SchemaRegistry,
    compile_schema,
    define,
    field,
    get_compiler,
    get_registry,
    reset_compiler,
    reset_registry,
    schema,
)
from .tools import ToolSpec

__all__ = [
    # Version
    "__version__",
    # Declaration
    "schema",
    "field",
    "define",
    # Registry
    "SchemaRegistry",
    "get_registry",
    "reset_registry",
    # Compiler
    "CompiledSchema",
    "ParseResult",
    "SchemaCompiler",
    "compile_schema",
    "get_compiler",
    "reset_compiler",
    # Bridge
    "from_json_schema",
    # Tools and contracts
    "ToolSpec",
    "Contract",
    "ContractKind",
    "resolve_contract",
    # Errors
    "ToolSchemaError",
    "DefinitionError",
    "CompatibilityError",
    "ValidationError",
    "RegistryFrozenError",
    "Violation",
]
