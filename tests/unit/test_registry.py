"""
Unit tests for the metadata registry.

Tests cover:
- Field registration order and merging
- Rule accumulation
- Definition metadata and lookup by name
- Registry freezing
"""

import pytest

from toolschema.errors import RegistryFrozenError
from toolschema.schema.registry import SchemaRegistry, get_registry, reset_registry
from toolschema.schema.types import FieldDeclaration, Rule, RuleKind


class User:
    pass


class TestFieldRegistration:
    """Tests for register_field and get_fields."""

    def test_fields_keep_registration_order(self):
        """Fields come back in the order they were registered."""
        registry = SchemaRegistry()
        registry.register_field(User, "email", type=str)
        registry.register_field(User, "name", type=str)
        registry.register_field(User, "age", type=int)

        assert [f.name for f in registry.get_fields(User)] == ["email", "name", "age"]

    def test_reregistration_merges_into_same_slot(self):
        """Registering a field again merges attributes, last write wins."""
        registry = SchemaRegistry()
        registry.register_field(User, "role", enum_values=["admin", "user"])
        registry.register_field(User, "other", type=str)
        registry.register_field(User, "role", description="Access role")

        fields = registry.get_fields(User)
        assert [f.name for f in fields] == ["role", "other"]
        assert fields[0].enum_values == ("admin", "user")
        assert fields[0].description == "Access role"

    def test_partial_declaration_is_legal(self):
        """A field without a type can be registered; errors come at compile time."""
        registry = SchemaRegistry()
        declaration = registry.register_field(User, "mystery")

        assert declaration == FieldDeclaration(name="mystery")

    def test_unknown_type_has_no_fields(self):
        """get_fields returns [] for a type that was never declared."""
        assert SchemaRegistry().get_fields(User) == []

    def test_unknown_attribute_raises(self):
        """Misspelled attributes are rejected."""
        registry = SchemaRegistry()

        with pytest.raises(TypeError, match="descripton"):
            registry.register_field(User, "email", descripton="typo")

    def test_empty_field_name_raises(self):
        """Field names cannot be empty."""
        with pytest.raises(ValueError, match="cannot be empty"):
            SchemaRegistry().register_field(User, "")

    def test_string_type_identities(self):
        """Any hashable works as a type identity."""
        registry = SchemaRegistry()
        registry.register_field("Weather", "city", type="string")

        assert registry.has_definition("Weather")
        assert registry.get_fields("Weather")[0].type == "string"


class TestRuleRegistration:
    """Tests for register_rule."""

    def test_rules_accumulate_in_order(self):
        """Rules are appended in registration order."""
        registry = SchemaRegistry()
        registry.register_field(User, "name", type=str)
        registry.register_rule(User, "name", Rule(RuleKind.MIN_LENGTH, (1,)))
        registry.register_rule(User, "name", Rule(RuleKind.MAX_LENGTH, (50,)))

        rules = registry.get_fields(User)[0].rules
        assert [r.kind for r in rules] == [RuleKind.MIN_LENGTH, RuleKind.MAX_LENGTH]

    def test_rule_before_field_creates_placeholder(self):
        """A rule on an unknown field creates a bare placeholder."""
        registry = SchemaRegistry()
        registry.register_rule(User, "email", Rule(RuleKind.EMAIL))
        registry.register_field(User, "email", type=str)

        declaration = registry.get_fields(User)[0]
        assert declaration.type is str
        assert declaration.rules == (Rule(RuleKind.EMAIL),)

    def test_rules_do_not_leak_between_types(self):
        """Each type identity has its own rule lists."""
        registry = SchemaRegistry()
        registry.register_rule(User, "email", Rule(RuleKind.EMAIL))
        registry.register_field("Other", "email", type=str)

        assert registry.get_fields("Other")[0].rules == ()


class TestDefinitions:
    """Tests for definition-level metadata."""

    def test_define_records_metadata(self):
        """define() sets description, example and deprecated flag."""
        registry = SchemaRegistry()
        definition = registry.define(User, description="A user", example={"email": "a@b.co"}, deprecated=True)

        assert definition.name == "User"
        assert definition.description == "A user"
        assert definition.example == {"email": "a@b.co"}
        assert definition.deprecated is True

    def test_lookup_by_display_name(self):
        """Definitions can be found by their display name."""
        registry = SchemaRegistry()
        registry.define(User, name="Customer")

        assert registry.get_definition_by_name("Customer").type_id is User
        assert registry.get_definition_by_name("User") is None

    def test_has_definition_with_unhashable(self):
        """Unhashable values are simply not definitions."""
        assert SchemaRegistry().has_definition({"a": 1}) is False

    def test_to_dict(self):
        """to_dict lists definitions and fields in order."""
        registry = SchemaRegistry()
        registry.register_field(User, "email", type=str, optional=True)
        registry.register_rule(User, "email", Rule(RuleKind.EMAIL))

        assert registry.to_dict() == {
            "definitions": [
                {
                    "name": "User",
                    "fields": [
                        {"name": "email", "type": "string", "optional": True, "rules": ["email"]},
                    ],
                }
            ]
        }


class TestRegistryFreeze:
    """Tests for freezing."""

    def test_register_after_freeze_raises(self):
        """Registration after freeze raises RegistryFrozenError."""
        registry = SchemaRegistry()
        registry.freeze()

        with pytest.raises(RegistryFrozenError):
            registry.register_field(User, "email", type=str)
        with pytest.raises(RegistryFrozenError):
            registry.register_rule(User, "email", Rule(RuleKind.EMAIL))

    def test_freeze_twice_raises(self):
        """Freezing twice raises error."""
        registry = SchemaRegistry()
        registry.freeze()

        with pytest.raises(RegistryFrozenError, match="already frozen"):
            registry.freeze()


class TestGlobalRegistry:
    """Tests for the process-wide registry."""

    def test_get_registry_is_singleton(self):
        """get_registry returns the same instance until reset."""
        first = get_registry()
        assert get_registry() is first

        reset_registry()
        assert get_registry() is not first
