"""
Pytest configuration and fixtures for schemagraph.

- Schema catalogs used across the suite (a small order-management catalog and
  the two-schema user/address example).
- A schema directory on disk for loader and CLI tests.
- A CLI runner.
"""

import json
from pathlib import Path
from typing import Any, Dict

import pytest

from schemagraph.builder.session import BuilderSession
from schemagraph.schema.catalog import SchemaCatalog

USER = "v1/user/user.schema.json"
TEAM = "v1/user/team.schema.json"
ADDRESS = "v1/address/address.schema.json"
ORDER = "v1/order/order.schema.json"
LINE_ITEMS = "v1/order/line-items.schema.json"
LINE_ITEM = "v1/order/line-item.schema.json"
STATUS = "v1/order/status.schema.json"
POSITIVE_INTEGER = "v1/primitives/positive-integer.schema.json"

SIMPLE_USER = "schemas/user.schema.json"
SIMPLE_ADDRESS = "schemas/address.schema.json"


def order_catalog_schemas() -> Dict[str, Dict[str, Any]]:
    return {
        USER: {
            "title": "User",
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Full name"},
                "email": {"type": "string", "format": "email"},
                "address": {"$ref": "../address/address.schema.json"},
                "orders": {"type": "array", "items": {"$ref": "../order/order.schema.json"}},
                "tags": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["name"],
        },
        TEAM: {
            "type": "object",
            "properties": {
                "label": {"type": "string"},
                "members": {
                    "type": "object",
                    "patternProperties": {"^[a-z0-9-]+$": {"$ref": "user.schema.json"}},
                },
            },
        },
        ADDRESS: {
            "title": "Address",
            "type": "object",
            "properties": {
                "street": {"type": "string"},
                "city": {"type": "string"},
                "zip": {"type": "string"},
            },
        },
        ORDER: {
            "title": "Order",
            "type": "object",
            "properties": {
                "total": {"type": "number"},
                "items": {"$ref": "./line-items.schema.json"},
                "customer": {"$ref": "../user/user.schema.json"},
                "status": {"$ref": "./status.schema.json"},
            },
            "required": ["total"],
        },
        LINE_ITEMS: {
            "type": "array",
            "items": {"$ref": "./line-item.schema.json"},
        },
        LINE_ITEM: {
            "title": "Line Item",
            "type": "object",
            "properties": {
                "sku": {"type": "string"},
                "quantity": {"$ref": "../primitives/positive-integer.schema.json"},
            },
            "required": ["sku"],
        },
        STATUS: {"type": "string", "enum": ["open", "shipped"]},
        POSITIVE_INTEGER: {"type": "integer", "minimum": 1},
    }


@pytest.fixture
def catalog() -> SchemaCatalog:
    return SchemaCatalog(order_catalog_schemas())


@pytest.fixture
def simple_catalog() -> SchemaCatalog:
    """``user`` (untyped, name + address ref) and ``address``."""
    return SchemaCatalog({
        SIMPLE_USER: {
            "properties": {
                "name": {"type": "string"},
                "address": {"$ref": "./address.schema.json"},
            },
            "required": ["name"],
        },
        SIMPLE_ADDRESS: {
            "type": "object",
            "properties": {
                "city": {"type": "string"},
                "street": {"type": "string"},
            },
        },
    })


@pytest.fixture
def node_catalog() -> SchemaCatalog:
    """A single self-referencing schema, for cycle and self-loop cases."""
    return SchemaCatalog({
        "graph/node.schema.json": {
            "type": "object",
            "properties": {
                "label": {"type": "string"},
                "next": {"$ref": "./node.schema.json"},
                "children": {"type": "array", "items": {"$ref": "./node.schema.json"}},
            },
        },
    })


@pytest.fixture
def session(catalog: SchemaCatalog) -> BuilderSession:
    return BuilderSession(catalog)


@pytest.fixture
def schema_dir(tmp_path: Path) -> Path:
    """The order catalog written to disk, one file per schema."""
    root = tmp_path / "schemas"
    for path, schema in order_catalog_schemas().items():
        target = root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(schema), encoding="utf-8")
    return root


@pytest.fixture
def cli_runner():
    """
    Provides a runner for invoking CLI entry points in tests.
    """
    from typer.testing import CliRunner
    return CliRunner()
