"""
Shared fixtures for toolschema tests.
"""

import logging

import pytest

from toolschema.config import get_settings
from toolschema.schema.compiler import reset_compiler
from toolschema.schema.registry import reset_registry


@pytest.fixture(autouse=True)
def isolated_schemas():
    """Give every test a fresh global registry, compiler and settings."""
    reset_registry()
    reset_compiler()
    get_settings.cache_clear()
    yield
    reset_registry()
    reset_compiler()
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo handler changes made by setup_logging."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
