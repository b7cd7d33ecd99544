"""
Structured output contracts.

A contract says what a model's final answer must look like:
- TEXT: nothing declared; the raw text is the answer
- PRIMITIVE: ``str``, ``int``, ``float`` or ``bool``
- SCHEMA: a declared shape, returned as a validated mapping

parse_output never raises for a bad answer; it returns a ParseResult whose
violations can be sent back to the model.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Optional

from .errors import ValidationError, Violation
from .schema.compiler import CompiledSchema, ParseResult, SchemaCompiler, get_compiler
from .schema.rules import apply_rule
from .schema.types import Rule, RuleKind, type_name
from .schema.validators import BooleanValidator, NumberValidator, StringValidator

logger = logging.getLogger(__name__)


class ContractKind(enum.Enum):
    """What kind of answer a contract expects."""

    TEXT = "text"
    PRIMITIVE = "primitive"
    SCHEMA = "schema"


_PRIMITIVE_SCHEMAS = {
    str: CompiledSchema(name="str", validator=StringValidator()),
    int: CompiledSchema(name="int", validator=apply_rule(NumberValidator(), Rule(RuleKind.INTEGER))),
    float: CompiledSchema(name="float", validator=NumberValidator()),
    bool: CompiledSchema(name="bool", validator=BooleanValidator()),
}

_TEXT_SCHEMA = CompiledSchema(name="text", validator=StringValidator())


@dataclass(frozen=True)
class Contract:
    """Expected shape of a model's answer.

    Attributes:
        kind: TEXT, PRIMITIVE or SCHEMA
        schema: Schema the decoded answer is checked against
    """

    kind: ContractKind
    schema: CompiledSchema

    @property
    def raw_text(self) -> bool:
        """Whether the answer is used as text without JSON decoding."""
        return self.kind is ContractKind.TEXT or self.schema is _PRIMITIVE_SCHEMAS[str]

    def describe(self) -> Dict[str, Any]:
        """JSON-Schema of the expected answer."""
        return self.schema.describe()

    def parse_output(self, text: str) -> ParseResult:
        """Decode and validate a model's answer.

        Returns:
            ParseResult with the validated answer, or the violations
        """
        if self.raw_text:
            return self.schema.safe_parse(text)
        try:
            value = json.loads(text.strip())
        except ValueError as exc:
            violation = Violation((), f"Invalid JSON: {exc}", "invalid_json")
            return ParseResult(success=False, error=ValidationError([violation], schema_name=self.schema.name))
        return self.schema.safe_parse(value)


def resolve_contract(
    type_id: Optional[Hashable] = None,
    compiler: Optional[SchemaCompiler] = None,
) -> Contract:
    """Pick the contract for an output type.

    Args:
        type_id: Declared output type, a primitive Python type, or None
        compiler: Compiler for declared shapes (default: the global compiler)

    Returns:
        A TEXT contract when nothing usable is declared, a PRIMITIVE contract
        for ``str``/``int``/``float``/``bool``, otherwise a SCHEMA contract

    Raises:
        DefinitionError: If the declared shape does not compile
    """
    if type_id in _PRIMITIVE_SCHEMAS:
        return Contract(ContractKind.PRIMITIVE, _PRIMITIVE_SCHEMAS[type_id])

    compiler = compiler or get_compiler()
    if type_id is None or not compiler.registry.has_definition(type_id):
        if type_id is not None:
            logger.debug(f"No schema declared for {type_name(type_id)}; falling back to text output")
        return Contract(ContractKind.TEXT, _TEXT_SCHEMA)
    return Contract(ContractKind.SCHEMA, compiler.compile(type_id))
