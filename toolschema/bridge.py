"""
JSON-Schema bridge for toolschema.

Converts an external JSON-Schema tree (for example the input schema of a
remote tool) into the same validator representation that declared shapes
compile to, so both kinds of schema parse and describe identically.

Supported keywords:
    type (including nullable type lists such as ["string", "null"]),
    properties, required, additionalProperties, items, enum, description,
    minLength, maxLength, pattern, format, minimum, maximum,
    exclusiveMinimum, exclusiveMaximum, multipleOf, minItems, maxItems,
    uniqueItems

Invariants:
    - Constraints go through the same rule pipeline as declared fields
    - An unrecognized type degrades to an open object and logs a warning
    - A node without any type information accepts any value
    - Enums that are not all strings or all numbers degrade to a literal
      membership check and log a warning
    - Results are not cached; callers keep the CompiledSchema they get back
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Tuple

from .errors import DefinitionError
from .schema.compiler import CompiledSchema
from .schema.resolver import enum_validator
from .schema.rules import apply_rules
from .schema.types import Rule, RuleKind
from .schema.validators import (
    ArrayValidator,
    BooleanValidator,
    LiteralValidator,
    NullableValidator,
    NumberValidator,
    ObjectValidator,
    OptionalValidator,
    StringValidator,
    UnknownKeys,
    Validator,
    is_number,
)

logger = logging.getLogger(__name__)

_FORMAT_RULES = {
    "email": RuleKind.EMAIL,
    "uri": RuleKind.URL,
    "url": RuleKind.URL,
    "uuid": RuleKind.UUID,
    "cuid": RuleKind.CUID,
    "date-time": RuleKind.DATETIME,
    "ipv4": RuleKind.IP,
    "ipv6": RuleKind.IP,
}

_STRING_KEYWORDS = {"minLength": RuleKind.MIN_LENGTH, "maxLength": RuleKind.MAX_LENGTH}
_NUMBER_KEYWORDS = {
    "minimum": RuleKind.MINIMUM,
    "maximum": RuleKind.MAXIMUM,
    "multipleOf": RuleKind.MULTIPLE_OF,
}
_ARRAY_KEYWORDS = {"minItems": RuleKind.MIN_ITEMS, "maxItems": RuleKind.MAX_ITEMS}


def from_json_schema(tree: Mapping[str, Any], name: Optional[str] = None) -> CompiledSchema:
    """Convert a JSON-Schema tree into a CompiledSchema.

    Args:
        tree: JSON-Schema document (a mapping)
        name: Display name (defaults to the tree's ``title``)

    Returns:
        A CompiledSchema with no type identity

    Raises:
        DefinitionError: If the tree or a constraint in it is malformed

    Example:
        >>> weather = from_json_schema({
        ...     "type": "object",
        ...     "properties": {"city": {"type": "string", "minLength": 1}},
        ...     "required": ["city"],
        ... }, name="get_weather")
        >>> weather.parse({"city": "Oslo"})
        {'city': 'Oslo'}
    """
    if not isinstance(tree, Mapping):
        raise DefinitionError(f"JSON Schema must be an object, got {type(tree).__name__}", type_name=name)
    display = name or tree.get("title") or "schema"
    validator = _convert(tree, display)
    return CompiledSchema(name=display, validator=validator)


def _convert(node: Any, where: str) -> Validator:
    if node is True:
        return Validator()
    if not isinstance(node, Mapping):
        raise DefinitionError(f"Schema node at {where} must be an object, got {node!r}", field_name=where)

    declared = node.get("type")
    nullable = False
    if isinstance(declared, list):
        types = [t for t in declared if t != "null"]
        nullable = len(types) < len(declared)
        if len(types) == 1:
            declared = types[0]
        else:
            logger.warning(f"Union type {declared} at {where} is not supported; accepting any value")
            return _describe(Validator(), node)

    if "enum" in node:
        validator, enum_nullable = _convert_enum(node, where)
        nullable = nullable or enum_nullable
    elif declared is None:
        validator = _infer(node, where)
    elif declared == "string":
        validator = _convert_string(node, where)
    elif declared in ("number", "integer"):
        validator = _convert_number(node, where, integer=declared == "integer")
    elif declared == "boolean":
        validator = BooleanValidator()
    elif declared == "array":
        validator = _convert_array(node, where)
    elif declared == "object":
        validator = _convert_object(node, where)
    else:
        logger.warning(f"Unrecognized type {declared!r} at {where}; using an open object")
        validator = ObjectValidator(unknown_keys=UnknownKeys.PASSTHROUGH)

    validator = _describe(validator, node)
    if nullable:
        validator = NullableValidator(inner=validator, description=validator.description)
    return validator


def _describe(validator: Validator, node: Mapping[str, Any]) -> Validator:
    description = node.get("description")
    if description:
        return validator.describe(description, validator.example)
    return validator


def _infer(node: Mapping[str, Any], where: str) -> Validator:
    """Pick a validator for a node that omits ``type``."""
    if "properties" in node:
        return _convert_object(node, where)
    if "items" in node:
        return _convert_array(node, where)
    return Validator()


def _convert_enum(node: Mapping[str, Any], where: str) -> Tuple[Validator, bool]:
    """Validator for an ``enum`` node, and whether null is one of its values.

    Single-kind string or number enums become an EnumValidator. Anything else
    JSON Schema allows (booleans, null, mixed kinds, structured values)
    degrades to a literal membership check with a warning.
    """
    raw = node["enum"]
    if not isinstance(raw, list) or not raw:
        logger.warning(f"Enum at {where} is not a non-empty list; accepting any value")
        return Validator(), False

    values = [v for v in raw if v is not None]
    nullable = len(values) < len(raw)
    if values and (all(isinstance(v, str) for v in values) or all(is_number(v) for v in values)):
        return enum_validator(values, where), nullable
    if values:
        logger.warning(f"Enum at {where} is not all strings or all numbers; checking literal membership only")
    return LiteralValidator(values=tuple(raw)), False


def _keyword_rules(node: Mapping[str, Any], keywords: Dict[str, RuleKind]) -> List[Rule]:
    return [Rule(kind, (node[key],)) for key, kind in keywords.items() if key in node]


def _convert_string(node: Mapping[str, Any], where: str) -> Validator:
    rules = _keyword_rules(node, _STRING_KEYWORDS)
    if "pattern" in node:
        rules.append(Rule(RuleKind.PATTERN, (node["pattern"],)))
    fmt = node.get("format")
    if fmt in _FORMAT_RULES:
        rules.append(Rule(_FORMAT_RULES[fmt]))
    elif fmt is not None:
        logger.debug(f"Ignoring unsupported string format {fmt!r} at {where}")
    return apply_rules(StringValidator(), rules, where)


def _convert_number(node: Mapping[str, Any], where: str, integer: bool) -> Validator:
    rules: List[Rule] = []
    if integer:
        rules.append(Rule(RuleKind.INTEGER))

    exclusive_min = node.get("exclusiveMinimum")
    exclusive_max = node.get("exclusiveMaximum")
    for key, kind in _NUMBER_KEYWORDS.items():
        if key not in node:
            continue
        # Draft 4 spells exclusive bounds as booleans next to minimum/maximum
        if key == "minimum" and exclusive_min is True:
            kind = RuleKind.EXCLUSIVE_MINIMUM
        elif key == "maximum" and exclusive_max is True:
            kind = RuleKind.EXCLUSIVE_MAXIMUM
        rules.append(Rule(kind, (node[key],)))
    if exclusive_min is not None and not isinstance(exclusive_min, bool):
        rules.append(Rule(RuleKind.EXCLUSIVE_MINIMUM, (exclusive_min,)))
    if exclusive_max is not None and not isinstance(exclusive_max, bool):
        rules.append(Rule(RuleKind.EXCLUSIVE_MAXIMUM, (exclusive_max,)))
    return apply_rules(NumberValidator(), rules, where)


def _convert_array(node: Mapping[str, Any], where: str) -> Validator:
    items = node.get("items")
    item = _convert(items, f"{where}[]") if items is not None else Validator()
    rules = _keyword_rules(node, _ARRAY_KEYWORDS)
    if node.get("uniqueItems") is True:
        rules.append(Rule(RuleKind.UNIQUE_ITEMS))
    return apply_rules(ArrayValidator(item=item), rules, where)


def _convert_object(node: Mapping[str, Any], where: str) -> Validator:
    properties = node.get("properties") or {}
    required = set(node.get("required") or ())
    shape: Dict[str, Validator] = {}
    for prop, subtree in properties.items():
        validator = _convert(subtree, f"{where}.{prop}")
        shape[prop] = validator if prop in required else OptionalValidator(inner=validator)

    additional = node.get("additionalProperties", True)
    unknown_keys = UnknownKeys.REJECT if additional is False else UnknownKeys.PASSTHROUGH
    return ObjectValidator(shape=shape, unknown_keys=unknown_keys)
