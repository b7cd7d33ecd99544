"""
Command line tool for toolschema.

Commands:
- describe: Print the JSON-Schema description of a declared shape
- check: Compile every declared shape and report definition errors
- validate: Validate a JSON or YAML payload against a declared shape
- bridge: Convert a JSON-Schema file and optionally validate a payload

Usage:
    toolschema describe --module myapp.tools --type SearchArgs
    toolschema check --module myapp.tools
    toolschema validate --module myapp.tools --type SearchArgs --file args.yaml
    toolschema bridge --file weather.schema.json --payload call.json

Invariants:
    - Definition errors and invalid payloads exit with code 1
    - Output JSON is deterministic (sorted keys)

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for CI parsing
"""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys
from typing import Any, Optional, Sequence

import yaml

from .bridge import from_json_schema
from .config import get_settings, setup_logging
from .errors import ToolSchemaError
from .schema.compiler import CompiledSchema, SchemaCompiler, get_compiler
from .schema.registry import SchemaRegistry
from .schema.validators import UnknownKeys

logger = logging.getLogger(__name__)


class SchemaCLI:
    """CLI operations over a compiler.

    Example:
        >>> cli = SchemaCLI(get_compiler())
        >>> print(cli.describe("SearchArgs"))
        >>> ok, errors = cli.check()
    """

    def __init__(self, compiler: SchemaCompiler) -> None:
        self.compiler = compiler

    def lookup(self, type_name: str) -> CompiledSchema:
        """Compile a declared shape by display name.

        Raises:
            ToolSchemaError: If no shape has that name
        """
        definition = self.compiler.registry.get_definition_by_name(type_name)
        if definition is None:
            known = sorted(d.name for d in self.compiler.registry.definitions())
            raise ToolSchemaError(f"Unknown type '{type_name}'. Declared types: {known}", code="UNKNOWN_TYPE")
        return self.compiler.compile(definition.type_id)

    def describe(self, type_name: str, indent: int = 2) -> str:
        """JSON description of a declared shape."""
        return json.dumps(self.lookup(type_name).describe(), indent=indent, sort_keys=True)

    def check(self) -> tuple[bool, list[str]]:
        """Compile all declared shapes.

        Returns:
            Tuple of (all_compiled, list_of_errors)
        """
        errors = self.compiler.compile_all()
        issues = [f"{name}: {exc}" for name, exc in errors.items()]
        return len(issues) == 0, issues

    def validate(self, type_name: str, payload: Any) -> list[str]:
        """Validate a payload; returns violations (empty when valid)."""
        result = self.lookup(type_name).safe_parse(payload)
        return [] if result.success else result.error.errors


def load_document(path: str) -> Any:
    """Load a JSON or YAML file (chosen by extension)."""
    with open(path) as f:
        if path.endswith((".yaml", ".yml")):
            return yaml.safe_load(f)
        return json.load(f)


def _load_compiler(module_path: str) -> SchemaCompiler:
    """Import the declaring module and pick the compiler for its registry.

    A module exposing its own ``registry`` gets a dedicated compiler;
    otherwise declarations live in the global registry.
    """
    module = importlib.import_module(module_path)
    registry = getattr(module, "registry", None)
    if isinstance(registry, SchemaRegistry):
        settings = get_settings()
        return SchemaCompiler(
            registry,
            unknown_keys=UnknownKeys.REJECT if settings.strict_objects else UnknownKeys.STRIP,
            max_suggestions=settings.max_suggestions,
        )
    return get_compiler()


def _report(errors: list[str], header: str) -> int:
    if not errors:
        return 0
    print(f"{header} with {len(errors)} error(s):")
    for error in errors:
        print(f"  - {error}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="toolschema", description="Declared schema tooling for LLM tools")
    subparsers = parser.add_subparsers(dest="command", required=True)

    describe_parser = subparsers.add_parser("describe", help="Print the JSON description of a shape")
    describe_parser.add_argument("--module", "-m", required=True, help="Python module declaring the shapes")
    describe_parser.add_argument("--type", "-t", required=True, dest="type_name", help="Declared type name")
    describe_parser.add_argument("--indent", type=int, default=2, help="JSON indent")

    check_parser = subparsers.add_parser("check", help="Compile every declared shape")
    check_parser.add_argument("--module", "-m", required=True, help="Python module declaring the shapes")

    validate_parser = subparsers.add_parser("validate", help="Validate a payload against a shape")
    validate_parser.add_argument("--module", "-m", required=True, help="Python module declaring the shapes")
    validate_parser.add_argument("--type", "-t", required=True, dest="type_name", help="Declared type name")
    validate_parser.add_argument("--file", "-f", required=True, help="Payload file (.json, .yaml)")

    bridge_parser = subparsers.add_parser("bridge", help="Convert a JSON-Schema file")
    bridge_parser.add_argument("--file", "-f", required=True, help="JSON-Schema file (.json, .yaml)")
    bridge_parser.add_argument("--payload", "-p", help="Payload file to validate against it")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)
    setup_logging(get_settings())

    try:
        if args.command == "describe":
            cli = SchemaCLI(_load_compiler(args.module))
            print(cli.describe(args.type_name, indent=args.indent))
            return 0

        if args.command == "check":
            cli = SchemaCLI(_load_compiler(args.module))
            ok, issues = cli.check()
            if ok:
                print("All schemas compiled")
            logger.info(f"Checked schemas in {args.module}: {len(issues)} error(s)")
            return _report(issues, "Schema check FAILED")

        if args.command == "validate":
            cli = SchemaCLI(_load_compiler(args.module))
            errors = cli.validate(args.type_name, load_document(args.file))
            if not errors:
                print("Payload is valid")
            return _report(errors, "Validation FAILED")

        compiled = from_json_schema(load_document(args.file))
        if not args.payload:
            print(json.dumps(compiled.describe(), indent=2, sort_keys=True))
            return 0
        result = compiled.safe_parse(load_document(args.payload))
        if result.success:
            print("Payload is valid")
            return 0
        return _report(result.error.errors, "Validation FAILED")

    except ToolSchemaError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
