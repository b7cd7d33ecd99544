"""
Unit tests for tool registration and output contracts.

Tests cover:
- ToolSpec payloads and argument parsing
- Remote tools through the bridge
- Contract resolution and output parsing
"""

import pytest

from toolschema.contracts import ContractKind, resolve_contract
from toolschema.errors import DefinitionError, ToolSchemaError, ValidationError
from toolschema.schema import declare as ts
from toolschema.tools import ToolSpec


@pytest.fixture
def search_args():
    @ts.schema("Search the catalog")
    class SearchArgs:
        query = ts.field(str, rules=[ts.min_length(1)], description="Search text")
        limit = ts.field(int, optional=True, rules=[ts.minimum(1), ts.maximum(50)])

    return SearchArgs


class TestToolSpec:
    """Tests for ToolSpec."""

    def test_to_dict(self, search_args):
        """to_dict renders the function-calling payload."""
        tool = ToolSpec.from_type(search_args, name="search")

        payload = tool.to_dict()
        assert payload["name"] == "search"
        assert payload["description"] == "Search the catalog"
        assert payload["parameters"]["type"] == "object"
        assert payload["parameters"]["required"] == ["query"]
        assert payload["parameters"]["properties"]["limit"] == {"type": "number", "minimum": 1, "maximum": 50}

    def test_name_defaults_to_type_name(self, search_args):
        """Without a name the shape's name is used."""
        assert ToolSpec.from_type(search_args).name == "SearchArgs"

    def test_parse_arguments_from_json(self, search_args):
        """JSON text arguments are decoded and validated."""
        tool = ToolSpec.from_type(search_args, name="search")

        assert tool.parse_arguments('{"query": "lamp", "limit": 5}') == {"query": "lamp", "limit": 5}

    def test_invalid_arguments(self, search_args):
        """Invalid arguments raise with feedback for the model."""
        tool = ToolSpec.from_type(search_args, name="search")

        with pytest.raises(ValidationError) as exc_info:
            tool.parse_arguments({"query": "", "limit": 500})

        assert exc_info.value.to_model_message() == (
            "Your tool arguments were invalid:\n"
            "- query: String must contain at least 1 character(s)\n"
            "- limit: Number must be less than or equal to 50"
        )

    def test_invoke_calls_handler_with_validated_arguments(self, search_args):
        """invoke validates and then calls the handler."""
        seen = []
        tool = ToolSpec.from_type(search_args, name="search", handler=seen.append)

        tool.invoke({"query": "lamp", "ignored": True})

        assert seen == [{"query": "lamp"}]

    def test_invoke_without_handler(self, search_args):
        """invoke needs a handler."""
        with pytest.raises(ToolSchemaError, match="has no handler"):
            ToolSpec.from_type(search_args).invoke({"query": "x"})

    def test_undeclared_type(self):
        """Tools need a declared shape."""

        class Nope:
            pass

        with pytest.raises(DefinitionError, match="No schema found for Nope"):
            ToolSpec.from_type(Nope)

    def test_from_remote(self):
        """Remote tools wrap their JSON-Schema through the bridge."""
        tool = ToolSpec.from_remote(
            "get_weather",
            "Current weather",
            {"type": "object", "properties": {"city": {"type": "string"}}, "required": ["city"]},
        )

        assert tool.parse_arguments({"city": "Oslo"}) == {"city": "Oslo"}
        assert tool.to_dict()["parameters"]["required"] == ["city"]

    def test_remote_non_object_rejected(self):
        """Tool arguments must be an object."""
        with pytest.raises(DefinitionError, match="must be an object schema"):
            ToolSpec.from_remote("echo", "Echo", {"type": "string"})


class TestContracts:
    """Tests for output contracts."""

    def test_no_type_is_text(self):
        """No declared output means raw text."""
        contract = resolve_contract(None)

        assert contract.kind is ContractKind.TEXT
        assert contract.parse_output("  anything goes ").data == "  anything goes "

    def test_undeclared_class_is_text(self):
        """A class without a schema falls back to text."""

        class Plain:
            pass

        assert resolve_contract(Plain).kind is ContractKind.TEXT

    @pytest.mark.parametrize(
        ("type_id", "text", "expected"),
        [(str, "hello", "hello"), (int, "42", 42), (float, "2.5", 2.5), (bool, "true", True)],
    )
    def test_primitives(self, type_id, text, expected):
        """Primitive contracts decode and check the answer."""
        contract = resolve_contract(type_id)

        assert contract.kind is ContractKind.PRIMITIVE
        assert contract.parse_output(text).data == expected

    def test_int_rejects_fraction(self):
        """An int contract rejects 2.5."""
        result = resolve_contract(int).parse_output("2.5")

        assert not result.success
        assert result.error.errors == ["Expected integer, received float"]

    def test_schema_contract(self, search_args):
        """Declared shapes parse JSON answers."""
        contract = resolve_contract(search_args)

        assert contract.kind is ContractKind.SCHEMA
        assert contract.describe()["required"] == ["query"]
        assert contract.parse_output('{"query": "lamp"}').data == {"query": "lamp"}

    def test_schema_contract_violations(self, search_args):
        """Bad answers are reported, not raised."""
        result = resolve_contract(search_args).parse_output('{"limit": 0}')

        assert result.error.errors == [
            "query: Required",
            "limit: Number must be greater than or equal to 1",
        ]

    def test_invalid_json_answer(self, search_args):
        """Answers that are not JSON are violations."""
        result = resolve_contract(search_args).parse_output("Sure! Here you go")

        assert not result.success
        assert result.violations[0].code == "invalid_json"
