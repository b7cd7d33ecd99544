"""
Tool registration for toolschema.

A ToolSpec pairs a tool's name and description with the compiled schema of
its arguments. It renders the function-calling payload sent to a model and
validates the arguments the model sends back.

Invariants:
    - name is non-empty
    - parameters is always an object schema
    - Arguments are validated before a handler ever sees them
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional, Union

from .bridge import from_json_schema
from .errors import DefinitionError, ToolSchemaError
from .schema.compiler import CompiledSchema, SchemaCompiler, get_compiler
from .schema.validators import Category

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ToolSpec:
    """A callable tool as presented to a model.

    Attributes:
        name: Tool name the model calls
        description: What the tool does
        schema: Compiled schema of the tool's arguments
        handler: Function receiving the validated arguments (optional)

    Example:
        >>> search = ToolSpec.from_type(SearchArgs, name="search", handler=run_search)
        >>> search.to_dict()["parameters"]["required"]
        ['query']
        >>> search.invoke('{"query": "lamp"}')
    """

    name: str
    description: str
    schema: CompiledSchema
    handler: Optional[Callable[[Dict[str, Any]], Any]] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise DefinitionError("Tool name cannot be empty")
        if self.schema.validator.category is not Category.OBJECT:
            raise DefinitionError(
                f"Tool {self.name} arguments must be an object schema",
                type_name=self.schema.name,
            )

    @classmethod
    def from_type(
        cls,
        type_id: Hashable,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        handler: Optional[Callable[[Dict[str, Any]], Any]] = None,
        compiler: Optional[SchemaCompiler] = None,
    ) -> ToolSpec:
        """Build a tool whose arguments are a declared shape.

        The description defaults to the shape's description.

        Raises:
            DefinitionError: If the shape is not declared or does not compile
        """
        compiled = (compiler or get_compiler()).compile(type_id)
        return cls(
            name=name or compiled.name,
            description=description or compiled.description or "",
            schema=compiled,
            handler=handler,
        )

    @classmethod
    def from_remote(
        cls,
        name: str,
        description: str,
        input_schema: Mapping[str, Any],
        handler: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ) -> ToolSpec:
        """Wrap a remote tool advertised with a JSON-Schema input schema."""
        logger.debug(f"Bridging remote tool {name}")
        return cls(
            name=name,
            description=description,
            schema=from_json_schema(input_schema, name=name),
            handler=handler,
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        """JSON-Schema of the arguments."""
        return self.schema.describe()

    def to_dict(self) -> Dict[str, Any]:
        """Function-calling payload for a model request."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def parse_arguments(self, arguments: Union[str, Mapping[str, Any]]) -> Dict[str, Any]:
        """Validate model-supplied arguments (a mapping or JSON text).

        Raises:
            ValidationError: If the arguments do not satisfy the schema
        """
        if isinstance(arguments, str):
            return self.schema.parse_json(arguments)
        return self.schema.parse(arguments)

    def invoke(self, arguments: Union[str, Mapping[str, Any]]) -> Any:
        """Validate arguments and call the handler with them.

        Raises:
            ValidationError: If the arguments do not satisfy the schema
            ToolSchemaError: If the tool has no handler
        """
        if self.handler is None:
            raise ToolSchemaError(f"Tool {self.name} has no handler", code="NO_HANDLER")
        return self.handler(self.parse_arguments(arguments))
