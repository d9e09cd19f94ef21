import pytest
from conftest import ADDRESS, LINE_ITEM, LINE_ITEMS, ORDER, USER

from schemagraph.builder.connection_validator import (
    can_connect,
    get_connectable_properties,
    get_valid_sources,
    get_valid_targets,
    resolve_target_schema_paths,
    validate_connection,
)
from schemagraph.schema.catalog import SchemaCatalog
from schemagraph.types import Cardinality, Connection, Instance, Position


def make_instances(*pairs):
    return {
        instance_id: Instance(id=instance_id, schema_path=schema_path, position=Position(x=0, y=0))
        for instance_id, schema_path in pairs
    }


def link(source, target, prop):
    return Connection(id=f"{source}-{prop}-{target}", source_id=source, target_id=target, property_path=prop)


@pytest.fixture
def instances():
    return make_instances(
        ("user-1", USER),
        ("user-2", USER),
        ("address-1", ADDRESS),
        ("address-2", ADDRESS),
        ("order-1", ORDER),
        ("order-2", ORDER),
        ("line-item-1", LINE_ITEM),
    )


# --- Resolved targets ---

def test_resolved_targets_unwrap_array_wrappers(catalog):
    assert resolve_target_schema_paths(LINE_ITEMS, catalog) == [LINE_ITEMS, LINE_ITEM]
    assert resolve_target_schema_paths(ADDRESS, catalog) == [ADDRESS]


def test_resolved_targets_unwrap_unions():
    catalog = SchemaCatalog({
        "pay/payment.schema.json": {"anyOf": [{"$ref": "./card.schema.json"}, {"$ref": "./bank.schema.json"}]},
        "pay/card.schema.json": {"type": "object"},
        "pay/bank.schema.json": {"oneOf": [{"$ref": "./iban.schema.json"}]},
        "pay/iban.schema.json": {"type": "object"},
    })
    assert resolve_target_schema_paths("pay/payment.schema.json", catalog) == [
        "pay/payment.schema.json",
        "pay/card.schema.json",
        "pay/bank.schema.json",
        "pay/iban.schema.json",
    ]


def test_resolved_targets_survive_reference_cycles():
    catalog = SchemaCatalog({
        "a.schema.json": {"items": {"$ref": "b.schema.json"}},
        "b.schema.json": {"anyOf": [{"$ref": "a.schema.json"}]},
    })
    assert resolve_target_schema_paths("a.schema.json", catalog) == ["a.schema.json", "b.schema.json"]


def test_resolved_targets_of_unknown_path(catalog):
    assert resolve_target_schema_paths("x/unknown.schema.json", catalog) == ["x/unknown.schema.json"]


# --- can_connect ---

def test_can_connect(catalog):
    check = can_connect(USER, ADDRESS, catalog)
    assert check.valid
    assert check.property_path == "address"
    assert check.cardinality == Cardinality.ONE

    through_wrapper = can_connect(ORDER, LINE_ITEM, catalog)
    assert through_wrapper.valid
    assert through_wrapper.property_path == "items"
    assert through_wrapper.cardinality == Cardinality.MANY


def test_cannot_connect(catalog):
    check = can_connect(ADDRESS, USER, catalog)
    assert not check.valid
    assert check.reason == f"No $ref from {ADDRESS} to {USER}"
    assert "Source schema not found" in can_connect("nope.schema.json", USER, catalog).reason


# --- validate_connection ---

def test_validate_connection_accepts_legal_edges(catalog, instances):
    assert validate_connection("user-1", "address-1", "address", [], catalog, instances).valid
    assert validate_connection("order-1", "line-item-1", "items", [], catalog, instances).valid


@pytest.mark.parametrize(
    "source, target, prop, expected",
    [
        ("ghost", "address-1", "address", "Source instance not found: ghost"),
        ("user-1", "ghost", "address", "Target instance not found: ghost"),
        ("user-1", "address-1", "name", f"Property 'name' does not have a $ref in schema {USER}"),
        ("user-1", "order-1", "address", f"Property 'address' expects {ADDRESS}, got {ORDER}"),
    ],
)
def test_validate_connection_reasons(catalog, instances, source, target, prop, expected):
    result = validate_connection(source, target, prop, [], catalog, instances)
    assert not result.valid
    assert result.reason == expected


def test_one_cardinality_allows_a_single_connection(catalog, instances):
    existing = [link("user-1", "address-1", "address")]
    result = validate_connection("user-1", "address-2", "address", existing, catalog, instances)
    assert not result.valid
    assert "one-to-one" in result.reason


def test_many_cardinality_rejects_exact_duplicates_only(catalog, instances):
    existing = [link("user-1", "order-1", "orders")]
    assert validate_connection("user-1", "order-2", "orders", existing, catalog, instances).valid
    duplicate = validate_connection("user-1", "order-1", "orders", existing, catalog, instances)
    assert duplicate.reason == "This exact connection already exists"


def test_self_loops_rejected_for_both_cardinalities(node_catalog):
    nodes = make_instances(("node-1", "graph/node.schema.json"))
    for prop in ("next", "children"):
        result = validate_connection("node-1", "node-1", prop, [], node_catalog, nodes)
        assert result.reason == "Cannot connect an instance to itself"


def test_occupied_property_reported_before_self_loop(node_catalog):
    nodes = make_instances(("node-1", "graph/node.schema.json"), ("node-2", "graph/node.schema.json"))
    existing = [link("node-1", "node-2", "next")]
    result = validate_connection("node-1", "node-1", "next", existing, node_catalog, nodes)
    assert "one-to-one" in result.reason


# --- Target / source discovery ---

def test_get_valid_targets(catalog, instances):
    assert get_valid_targets("user-1", "address", instances, catalog) == ["address-1", "address-2"]
    occupied = [link("user-1", "address-1", "address")]
    assert get_valid_targets("user-1", "address", instances, catalog, occupied) == []

    many = [link("user-1", "order-1", "orders")]
    assert get_valid_targets("user-1", "orders", instances, catalog, many) == ["order-2"]
    assert get_valid_targets("order-1", "items", instances, catalog) == ["line-item-1"]
    assert get_valid_targets("ghost", "orders", instances, catalog) == []
    assert get_valid_targets("user-1", "name", instances, catalog) == []


def test_get_valid_sources(catalog, instances):
    assert get_valid_sources("address-1", instances, catalog) == ["user-1", "user-2"]
    existing = [link("user-1", "address-2", "address")]
    assert get_valid_sources("address-1", instances, catalog, existing) == ["user-2"]
    # orders point at users through "customer"; users point at orders through "orders"
    assert get_valid_sources("user-1", instances, catalog) == ["order-1", "order-2"]
    assert get_valid_sources("ghost", instances, catalog) == []


def test_get_connectable_properties(node_catalog):
    nodes = make_instances(("node-1", "graph/node.schema.json"), ("node-2", "graph/node.schema.json"))
    assert get_connectable_properties("node-1", "node-2", nodes, node_catalog) == ["next", "children"]
    existing = [link("node-1", "node-2", "next")]
    assert get_connectable_properties("node-1", "node-2", nodes, node_catalog, existing) == ["children"]
    assert get_connectable_properties("node-1", "node-1", nodes, node_catalog) == []


def test_plain_mapping_catalog_extracts_each_schema_once(monkeypatch, catalog, instances):
    from schemagraph.schema import relationships

    extracted = []
    extract = relationships.extract_connection_rules

    def counting(schema, schema_path, *args, **kwargs):
        extracted.append(schema_path)
        return extract(schema, schema_path, *args, **kwargs)

    monkeypatch.setattr(relationships, "extract_connection_rules", counting)
    sources = get_valid_sources("user-1", instances, dict(catalog))
    assert sources == ["order-1", "order-2"]
    assert sorted(extracted) == sorted([USER, ADDRESS, ORDER, LINE_ITEM])
