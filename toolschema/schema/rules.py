"""
Rule pipeline for toolschema.

Folds an ordered rule list onto a base validator. Each rule kind may only be
applied to certain validator categories; the table below is checked against
the category of the *current* validator before each rule is applied, so an
incompatible declaration fails while compiling, never while parsing.

Invariants:
    - Rules apply in declaration order; each refines the previous result
    - Incompatible rule/category pairs raise CompatibilityError
    - Malformed rule parameters raise DefinitionError
    - min/max bound length (strings, string enums), size (arrays) or value
      (numbers, inclusive)

How to change safely:
    - Add a RuleKind, an entry in RULE_CATEGORIES and a builder together
    - Never widen a rule to a category its builder cannot check
"""

from __future__ import annotations

import ipaddress
import re
from fractions import Fraction
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional
from urllib.parse import urlparse

from ..errors import CompatibilityError, DefinitionError
from .types import Rule, RuleKind
from .validators import Category, Check, Validator, canonical, is_number, parse_iso_datetime

_STRINGS = frozenset({Category.STRING})
_LENGTHS = frozenset({Category.STRING, Category.ENUM_STRING})
_NUMBERS = frozenset({Category.NUMBER})
_ARRAYS = frozenset({Category.ARRAY})
_ENUMS = frozenset({Category.ENUM_STRING, Category.ENUM_NUMBER})

RULE_CATEGORIES: Dict[RuleKind, FrozenSet[Category]] = {
    RuleKind.EMAIL: _STRINGS,
    RuleKind.URL: _STRINGS,
    RuleKind.PATTERN: _STRINGS,
    RuleKind.UUID: _STRINGS,
    RuleKind.CUID: _STRINGS,
    RuleKind.DATETIME: _STRINGS,
    RuleKind.IP: _STRINGS,
    RuleKind.MIN_LENGTH: _LENGTHS,
    RuleKind.MAX_LENGTH: _LENGTHS,
    RuleKind.MIN: _LENGTHS | _ARRAYS | _NUMBERS,
    RuleKind.MAX: _LENGTHS | _ARRAYS | _NUMBERS,
    RuleKind.MINIMUM: _NUMBERS,
    RuleKind.MAXIMUM: _NUMBERS,
    RuleKind.EXCLUSIVE_MINIMUM: _NUMBERS,
    RuleKind.EXCLUSIVE_MAXIMUM: _NUMBERS,
    RuleKind.MULTIPLE_OF: _NUMBERS,
    RuleKind.INTEGER: _NUMBERS,
    RuleKind.MIN_ITEMS: _ARRAYS,
    RuleKind.MAX_ITEMS: _ARRAYS,
    RuleKind.UNIQUE_ITEMS: _ARRAYS,
    RuleKind.ENUM: _ENUMS,
}

_EMAIL_RE = re.compile(
    r"^(?!\.)(?!.*\.\.)([A-Z0-9_'+\-\.]*)[A-Z0-9_+\-]@([A-Z0-9][A-Z0-9\-]*\.)+[A-Z]{2,}$",
    re.IGNORECASE,
)
_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
_CUID_RE = re.compile(r"^c[^\s-]{8,}$", re.IGNORECASE)
_DATETIME_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?$", re.IGNORECASE
)


def is_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value))


def is_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


def is_uuid(value: str) -> bool:
    return bool(_UUID_RE.match(value))


def is_cuid(value: str) -> bool:
    return bool(_CUID_RE.match(value))


def is_iso_datetime(value: str) -> bool:
    return bool(_DATETIME_RE.match(value)) and parse_iso_datetime(value) is not None


def is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def _exact(number: float) -> Fraction:
    # repr gives the shortest decimal that round-trips, so 0.1 means 1/10
    return Fraction(number) if isinstance(number, int) else Fraction(repr(number))


def is_multiple(value: float, step: float) -> bool:
    """Exact ``value % step == 0`` over decimal values; safe for integers of any size."""
    if isinstance(value, int) and isinstance(step, int):
        return value % step == 0
    return _exact(value) % _exact(step) == 0


def all_unique(items: list) -> bool:
    return len({canonical(item) for item in items}) == len(items)


def _number_param(rule: Rule, field_name: Optional[str], *, positive: bool = False) -> float:
    if not rule.params or not is_number(rule.params[0]):
        raise DefinitionError(
            f"Rule '{rule.kind.value}' requires a finite numeric parameter, got {list(rule.params)}",
            field_name=field_name,
        )
    value = rule.params[0]
    if positive and value <= 0:
        raise DefinitionError(
            f"Rule '{rule.kind.value}' requires a positive parameter, got {value}",
            field_name=field_name,
        )
    return value


def _count_param(rule: Rule, field_name: Optional[str]) -> int:
    value = _number_param(rule, field_name)
    if value < 0 or int(value) != value:
        raise DefinitionError(
            f"Rule '{rule.kind.value}' requires a non-negative integer, got {value}",
            field_name=field_name,
        )
    return int(value)


def _pattern_param(rule: Rule, field_name: Optional[str]) -> "re.Pattern[str]":
    if not rule.params:
        raise DefinitionError("Rule 'pattern' requires a regular expression", field_name=field_name)
    pattern = rule.params[0]
    if isinstance(pattern, re.Pattern):
        return pattern
    if not isinstance(pattern, str):
        raise DefinitionError(
            f"Rule 'pattern' requires a string or compiled pattern, got {type(pattern).__name__}",
            field_name=field_name,
        )
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise DefinitionError(
            f"Rule 'pattern' has an invalid regular expression: {exc}", field_name=field_name
        ) from exc


def _format_check(rule: str, test: Callable[[str], bool], label: str, schema: Dict[str, Any]) -> Check:
    return Check(rule, test, f"Invalid {label}", "invalid_string", schema)


def _min_length(n: int, rule: str) -> Check:
    return Check(
        rule,
        lambda v: len(v) >= n,
        f"String must contain at least {n} character(s)",
        "too_small",
        {"minLength": n},
    )


def _max_length(n: int, rule: str) -> Check:
    return Check(
        rule,
        lambda v: len(v) <= n,
        f"String must contain at most {n} character(s)",
        "too_big",
        {"maxLength": n},
    )


def _min_items(n: int, rule: str) -> Check:
    return Check(
        rule,
        lambda v: len(v) >= n,
        f"Array must contain at least {n} element(s)",
        "too_small",
        {"minItems": n},
    )


def _max_items(n: int, rule: str) -> Check:
    return Check(
        rule,
        lambda v: len(v) <= n,
        f"Array must contain at most {n} element(s)",
        "too_big",
        {"maxItems": n},
    )


def _gte(n: float, rule: str) -> Check:
    return Check(rule, lambda v: v >= n, f"Number must be greater than or equal to {n}", "too_small", {"minimum": n})


def _lte(n: float, rule: str) -> Check:
    return Check(rule, lambda v: v <= n, f"Number must be less than or equal to {n}", "too_big", {"maximum": n})


def _sized(validator: Validator, rule: Rule, field_name: Optional[str], lower: bool) -> Check:
    """Polymorphic min/max: length, size or value depending on category."""
    category = validator.category
    if category is Category.ARRAY:
        n = _count_param(rule, field_name)
        return _min_items(n, rule.kind.value) if lower else _max_items(n, rule.kind.value)
    if category is Category.NUMBER:
        n = _number_param(rule, field_name)
        return _gte(n, rule.kind.value) if lower else _lte(n, rule.kind.value)
    n = _count_param(rule, field_name)
    return _min_length(n, rule.kind.value) if lower else _max_length(n, rule.kind.value)


def _build_check(validator: Validator, rule: Rule, field_name: Optional[str]) -> Optional[Check]:
    kind = rule.kind
    name = kind.value

    if kind is RuleKind.EMAIL:
        return _format_check(name, is_email, "email", {"format": "email"})
    if kind is RuleKind.URL:
        return _format_check(name, is_url, "url", {"format": "uri"})
    if kind is RuleKind.UUID:
        return _format_check(name, is_uuid, "uuid", {"format": "uuid"})
    if kind is RuleKind.CUID:
        return _format_check(name, is_cuid, "cuid", {"pattern": _CUID_RE.pattern})
    if kind is RuleKind.DATETIME:
        return _format_check(name, is_iso_datetime, "datetime", {"format": "date-time"})
    if kind is RuleKind.IP:
        return _format_check(name, is_ip, "ip", {"anyOf": [{"format": "ipv4"}, {"format": "ipv6"}]})
    if kind is RuleKind.PATTERN:
        regex = _pattern_param(rule, field_name)
        return Check(
            name,
            lambda v: regex.search(v) is not None,
            f"String must match pattern {regex.pattern}",
            "invalid_string",
            {"pattern": regex.pattern},
        )

    if kind is RuleKind.MIN_LENGTH:
        return _min_length(_count_param(rule, field_name), name)
    if kind is RuleKind.MAX_LENGTH:
        return _max_length(_count_param(rule, field_name), name)
    if kind is RuleKind.MIN:
        return _sized(validator, rule, field_name, lower=True)
    if kind is RuleKind.MAX:
        return _sized(validator, rule, field_name, lower=False)

    if kind is RuleKind.MINIMUM:
        return _gte(_number_param(rule, field_name), name)
    if kind is RuleKind.MAXIMUM:
        return _lte(_number_param(rule, field_name), name)
    if kind is RuleKind.EXCLUSIVE_MINIMUM:
        n = _number_param(rule, field_name)
        return Check(name, lambda v: v > n, f"Number must be greater than {n}", "too_small", {"exclusiveMinimum": n})
    if kind is RuleKind.EXCLUSIVE_MAXIMUM:
        n = _number_param(rule, field_name)
        return Check(name, lambda v: v < n, f"Number must be less than {n}", "too_big", {"exclusiveMaximum": n})
    if kind is RuleKind.MULTIPLE_OF:
        step = _number_param(rule, field_name, positive=True)
        return Check(
            name,
            lambda v: is_multiple(v, step),
            f"Number must be a multiple of {step}",
            "not_multiple_of",
            {"multipleOf": step},
        )
    if kind is RuleKind.INTEGER:
        return Check(
            name,
            lambda v: isinstance(v, int) or float(v).is_integer(),
            "Expected integer, received float",
            "invalid_type",
            {"type": "integer"},
        )

    if kind is RuleKind.MIN_ITEMS:
        return _min_items(_count_param(rule, field_name), name)
    if kind is RuleKind.MAX_ITEMS:
        return _max_items(_count_param(rule, field_name), name)
    if kind is RuleKind.UNIQUE_ITEMS:
        return Check(name, all_unique, "All items in array must be unique", "not_unique", {"uniqueItems": True})

    # RuleKind.ENUM: values were consumed by the resolver
    return None


def apply_rule(validator: Validator, rule: Rule, field_name: Optional[str] = None) -> Validator:
    """Apply one rule to a validator.

    Args:
        validator: Current validator (base validator or result of earlier rules)
        rule: Rule to apply
        field_name: Field being compiled, for error messages

    Returns:
        A refined copy of validator

    Raises:
        CompatibilityError: If the rule cannot apply to validator's category
        DefinitionError: If the rule's parameters are malformed
    """
    allowed = RULE_CATEGORIES.get(rule.kind)
    if allowed is None:
        raise DefinitionError(f"Unknown rule kind: {rule.kind!r}", field_name=field_name)
    if validator.category not in allowed:
        raise CompatibilityError(rule.kind.value, validator.category.value, field_name)

    check = _build_check(validator, rule, field_name)
    if check is None:
        return validator
    return validator.refine(check)


def apply_rules(
    validator: Validator,
    rules: Iterable[Rule],
    field_name: Optional[str] = None,
) -> Validator:
    """Fold rules onto validator in order."""
    for rule in rules:
        validator = apply_rule(validator, rule, field_name)
    return validator
