"""schemagraph - build linked JSON documents from JSON Schema catalogs as instance graphs."""

from importlib.metadata import version as _version

from schemagraph.builder.json_graph import export_to_json, import_from_json
from schemagraph.builder.session import BuilderSession
from schemagraph.schema.catalog import SchemaCatalog, load_catalog
from schemagraph.schema.relationships import extract_connection_rules
from schemagraph.settings import settings
from schemagraph.types import Cardinality, Connection, ConnectionRule, GraphSnapshot, Instance, Position

__version__: str = _version("schemagraph")

__all__ = [
    "BuilderSession",
    "SchemaCatalog",
    "load_catalog",
    "extract_connection_rules",
    "export_to_json",
    "import_from_json",
    "settings",
    "Cardinality",
    "Connection",
    "ConnectionRule",
    "GraphSnapshot",
    "Instance",
    "Position",
]

# --- Self-Test: __all__ contract ---
import sys
from typing import List


def _selftest_imports() -> None:
    """
    Self-test: Ensure all __all__ symbols are importable from this module.
    """
    module = sys.modules[__name__]
    missing: List[str] = [symbol for symbol in __all__ if not hasattr(module, symbol)]
    if missing:
        raise ImportError(f"Missing symbols in __all__: {missing}")


_selftest_imports()
