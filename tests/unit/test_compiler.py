"""
Unit tests for the schema compiler.

Tests cover:
- Cache identity and at-most-once compilation
- Per-field pipeline (rules, optional, descriptions)
- Nested shapes and violation paths
- Definition-time failures (not cached, cycles)
- Unknown key policies
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from toolschema.errors import CompatibilityError, DefinitionError, ValidationError
from toolschema.schema import declare as ts
from toolschema.schema.compiler import SchemaCompiler, compile_schema, get_compiler, reset_compiler
from toolschema.schema.registry import SchemaRegistry, get_registry
from toolschema.schema.resolver import BaseTypeResolver
from toolschema.schema.validators import UnknownKeys


@pytest.fixture
def registry():
    return SchemaRegistry()


@pytest.fixture
def compiler(registry):
    return SchemaCompiler(registry)


def declare_profile(registry):
    """{age: number[minimum 0, maximum 150], tags: string[][minItems 1, uniqueItems]}"""
    return ts.define(
        "Profile",
        {
            "age": ts.field(int, rules=[ts.minimum(0), ts.maximum(150)]),
            "tags": ts.field(list, items=str, rules=[ts.min_items(1), ts.unique_items()]),
        },
        registry=registry,
    )


class TestCache:
    """Tests for compile caching."""

    def test_same_instance_twice(self, registry, compiler):
        """Compiling the same type twice yields the identical object."""
        declare_profile(registry)

        assert compiler.compile("Profile") is compiler.compile("Profile")
        assert compiler.is_compiled("Profile")

    def test_concurrent_first_compile(self, registry, compiler, monkeypatch):
        """Many threads compiling at once get one instance; resolution runs once."""
        declare_profile(registry)
        calls = []
        original = BaseTypeResolver.resolve
        barrier = threading.Barrier(16)

        def counting_resolve(self, declaration, owner=None):
            calls.append(declaration.name)
            return original(self, declaration, owner)

        def compile_after_barrier(_):
            barrier.wait()
            return compiler.compile("Profile")

        monkeypatch.setattr(BaseTypeResolver, "resolve", counting_resolve)
        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(compile_after_barrier, range(16)))

        assert len({id(r) for r in results}) == 1
        assert calls == ["age", "tags"]

    def test_failures_are_not_cached(self, registry, compiler):
        """A broken definition raises on every compile."""
        registry.register_field("Broken", "tags", type=list)

        for _ in range(2):
            with pytest.raises(DefinitionError, match="must declare an item type"):
                compiler.compile("Broken")
        assert not compiler.is_compiled("Broken")

    def test_clear(self, registry, compiler):
        """clear() drops cached schemas."""
        declare_profile(registry)
        first = compiler.compile("Profile")
        compiler.clear()

        assert compiler.compile("Profile") is not first


class TestEndToEnd:
    """Declared shape to parse."""

    def test_two_violations(self, registry, compiler):
        """{age: 200, tags: []} fails both constraints."""
        declare_profile(registry)

        with pytest.raises(ValidationError) as exc_info:
            compiler.compile("Profile").parse({"age": 200, "tags": []})

        assert exc_info.value.errors == [
            "age: Number must be less than or equal to 150",
            "tags: Array must contain at least 1 element(s)",
        ]

    def test_valid_value_round_trips(self, registry, compiler):
        """A valid value comes back with the same shape."""
        declare_profile(registry)

        assert compiler.compile("Profile").parse({"age": 30, "tags": ["x"]}) == {"age": 30, "tags": ["x"]}

    def test_safe_parse(self, registry, compiler):
        """safe_parse reports instead of raising."""
        declare_profile(registry)
        schema = compiler.compile("Profile")

        ok = schema.safe_parse({"age": 1, "tags": ["a"]})
        bad = schema.safe_parse({"age": -1, "tags": ["a", "a"]})

        assert ok.success and ok.data == {"age": 1, "tags": ["a"]}
        assert not bad.success and bad.data is None
        assert [v.location for v in bad.violations] == ["age", "tags"]

    def test_missing_required_field(self, registry, compiler):
        """Missing required fields are reported as Required."""
        declare_profile(registry)

        result = compiler.compile("Profile").safe_parse({"age": 3})

        assert result.error.errors == ["tags: Required"]

    def test_parse_json(self, registry, compiler):
        """parse_json decodes and validates."""
        declare_profile(registry)
        schema = compiler.compile("Profile")

        assert schema.parse_json('{"age": 5, "tags": ["t"]}') == {"age": 5, "tags": ["t"]}
        with pytest.raises(ValidationError, match="Invalid JSON"):
            schema.parse_json("{not json")

    def test_non_object_input(self, registry, compiler):
        """The root value must be an object."""
        declare_profile(registry)

        with pytest.raises(ValidationError, match="Expected object, received array"):
            compiler.compile("Profile").parse([1])

    def test_extreme_numbers_are_violations(self, registry, compiler):
        """Huge integers are checked exactly and Infinity is a violation."""
        ts.define("Order", {"qty": ts.field(float, rules=[ts.multiple_of(0.5)])}, registry=registry)
        schema = compiler.compile("Order")

        assert schema.parse({"qty": 10**400 + 1}) == {"qty": 10**400 + 1}
        with pytest.raises(ValidationError) as exc_info:
            schema.parse_json('{"qty": Infinity}')
        assert exc_info.value.errors == ["qty: Expected number, received non-finite number"]


class TestOptional:
    """Optional wrapping."""

    @pytest.fixture
    def schema(self, registry, compiler):
        ts.define(
            "Contact",
            {"email": ts.field(str, optional=True, rules=[ts.email()])},
            registry=registry,
        )
        return compiler.compile("Contact")

    def test_omitted_optional_parses(self, schema):
        """Omission bypasses every rule."""
        assert schema.parse({}) == {}

    def test_none_counts_as_omitted(self, schema):
        """None on an optional field is accepted."""
        assert schema.parse({"email": None}) == {"email": None}

    def test_present_optional_is_checked(self, schema):
        """A present value is fully validated."""
        with pytest.raises(ValidationError, match="email: Invalid email"):
            schema.parse({"email": "nope"})

    def test_optional_not_required_in_description(self, schema):
        """Optional fields are left out of required."""
        assert "required" not in schema.describe()


class TestNested:
    """Nested definitions."""

    @pytest.fixture
    def customer(self, registry):
        @ts.schema("A postal address", registry=registry)
        class Address:
            street = ts.field(str)
            zip_code = ts.field(str, rules=[ts.pattern(r"^\d{5}$")], description="Five digits")

        @ts.schema("A customer", registry=registry)
        class Customer:
            name = ts.field(str)
            address = ts.field(Address)
            previous = ts.field(list, items=Address, optional=True)

        return Customer

    def test_nested_violation_path(self, compiler, customer):
        """Violations inside a nested object carry the full path."""
        result = compiler.compile(customer).safe_parse(
            {"name": "Ada", "address": {"street": "Main", "zip_code": "12"}}
        )

        assert result.error.errors == [r"address.zip_code: String must match pattern ^\d{5}$"]

    def test_array_of_nested_path(self, compiler, customer):
        """Violations inside arrays carry the element index."""
        result = compiler.compile(customer).safe_parse(
            {
                "name": "Ada",
                "address": {"street": "Main", "zip_code": "12345"},
                "previous": [{"street": "Old", "zip_code": "12345"}, {"street": "Older"}],
            }
        )

        assert result.error.errors == ["previous[1].zip_code: Required"]

    def test_nested_schema_is_shared(self, compiler, customer, registry):
        """The nested definition is compiled once and reused."""
        address = registry.get_definition_by_name("Address").type_id
        customer_schema = compiler.compile(customer)

        assert customer_schema.validator.shape["address"] is compiler.compile(address).validator

    def test_describe(self, compiler, customer):
        """describe() includes names, descriptions and constraints."""
        description = compiler.compile(customer).describe()

        assert description["description"] == "A customer"
        assert description["required"] == ["name", "address"]
        zip_code = description["properties"]["address"]["properties"]["zip_code"]
        assert zip_code == {"type": "string", "pattern": r"^\d{5}$", "description": "Five digits"}
        assert description["properties"]["previous"]["type"] == "array"

    def test_cycle_is_rejected(self, registry, compiler):
        """Self-referencing definitions are definition errors."""
        registry.register_field("Node", "child", type="Node")

        with pytest.raises(DefinitionError, match="Cyclic type reference"):
            compiler.compile("Node")


class TestDefinitionErrors:
    """Failures surface at compile time."""

    def test_undeclared_type(self, compiler):
        """Compiling an undeclared type raises."""
        with pytest.raises(DefinitionError, match="No schema found for Ghost"):
            compiler.compile("Ghost")

    def test_incompatible_rule(self, registry, compiler):
        """Incompatible rules raise CompatibilityError naming the field."""
        ts.define("Bad", {"age": ts.field(int, rules=[ts.email()])}, registry=registry)

        with pytest.raises(CompatibilityError, match="field 'age'"):
            compiler.compile("Bad")

    def test_empty_definition_compiles(self, registry, compiler):
        """A definition with no fields compiles to an empty object."""
        registry.define("Empty")

        assert compiler.compile("Empty").parse({"extra": 1}) == {}

    def test_compile_all(self, registry, compiler):
        """compile_all reports errors by definition name."""
        declare_profile(registry)
        registry.register_field("Broken", "x")

        errors = compiler.compile_all()

        assert list(errors) == ["Broken"]
        assert compiler.is_compiled("Profile")


class TestUnknownKeys:
    """Unknown key policies."""

    def test_strip_by_default(self, registry, compiler):
        """Undeclared keys are dropped."""
        declare_profile(registry)

        assert compiler.compile("Profile").parse({"age": 1, "tags": ["a"], "x": 1}) == {"age": 1, "tags": ["a"]}

    def test_reject_with_suggestions(self, registry):
        """A strict compiler reports unknown keys with suggestions."""
        declare_profile(registry)
        strict = SchemaCompiler(registry, unknown_keys=UnknownKeys.REJECT)

        result = strict.compile("Profile").safe_parse({"age": 1, "tags": ["a"], "tagz": 1})

        assert result.error.errors == ["tagz: Unrecognized key 'tagz'. Did you mean: tags?"]

    def test_strict_from_settings(self, monkeypatch):
        """TOOLSCHEMA_STRICT_OBJECTS makes the global compiler strict."""
        monkeypatch.setenv("TOOLSCHEMA_STRICT_OBJECTS", "true")
        from toolschema.config import get_settings

        get_settings.cache_clear()
        reset_compiler()
        declare_profile(get_registry())

        result = compile_schema("Profile").safe_parse({"age": 1, "tags": ["a"], "nope": 1})

        assert not result.success


class TestGlobalCompiler:
    """Process-wide compiler."""

    def test_singleton(self):
        """get_compiler returns one instance until reset."""
        first = get_compiler()
        assert get_compiler() is first
        assert first.registry is get_registry()

        reset_compiler()
        assert get_compiler() is not first
