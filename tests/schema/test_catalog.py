import json
from types import MappingProxyType

import pytest
from conftest import ADDRESS, LINE_ITEM, ORDER, USER

from schemagraph.exceptions import ConfigurationError
from schemagraph.schema.catalog import (
    SchemaCatalog,
    display_name,
    find_schema,
    group_schemas_by_folder,
    load_catalog,
    schema_info,
)
from schemagraph.schema.introspect import PrimitivePathHeuristic


def test_find_schema_exact_then_suffix(catalog):
    assert find_schema(catalog, USER) == (USER, catalog[USER])
    assert find_schema(catalog, "order/order.schema.json")[0] == ORDER
    assert find_schema(catalog, "schemas/v1/address/address.schema.json")[0] == ADDRESS
    assert find_schema(catalog, "nope.schema.json") is None
    assert find_schema(catalog, "") is None


def test_catalog_is_read_only(catalog):
    with pytest.raises(TypeError):
        catalog[USER] = {}  # type: ignore[index]
    assert SchemaCatalog.wrap(catalog) is catalog


def test_catalog_copies_its_input():
    source = {"a.json": {"type": "object"}}
    wrapped = SchemaCatalog(source)
    source["b.json"] = {}
    assert list(wrapped) == ["a.json"]


def test_load_catalog(schema_dir):
    loaded = load_catalog(schema_dir)
    assert USER in loaded
    assert loaded[LINE_ITEM]["required"] == ["sku"]


def test_load_catalog_skips_bad_files(tmp_path):
    (tmp_path / "good.schema.json").write_text(json.dumps({"type": "object"}), encoding="utf-8")
    (tmp_path / "broken.schema.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "list.schema.json").write_text("[]", encoding="utf-8")
    loaded = load_catalog(tmp_path)
    assert list(loaded) == ["good.schema.json"]


def test_load_catalog_missing_directory(tmp_path):
    with pytest.raises(ConfigurationError) as exc:
        load_catalog(tmp_path / "missing")
    assert exc.value.code == "schemagraph.configuration_error"


def test_load_catalog_custom_heuristic(schema_dir):
    heuristic = PrimitivePathHeuristic(path_patterns=["/scalars/"])
    assert load_catalog(schema_dir, primitive_paths=heuristic).primitive_paths is heuristic


def test_display_name_and_info():
    assert display_name("v1/order/line-item.schema.json") == "Line Item"
    assert display_name("v1/user/user_profile.json") == "User Profile"
    info = schema_info("v1/a/thing.schema.json", {"$id": "urn:thing", "description": "A thing"})
    assert info.title == "Thing"
    assert info.schema_id == "urn:thing"
    assert info.description == "A thing"
    assert schema_info(USER, {"title": "Person"}).title == "Person"


def test_group_schemas_by_folder():
    groups = group_schemas_by_folder({
        "v1/user/user.schema.json": {"title": "User"},
        "v1/user/account.schema.json": {},
        "top.schema.json": {},
    })
    assert set(groups) == {"User", "Root"}
    assert [info.title for info in groups["User"]] == ["Account", "User"]
    assert groups["Root"][0].path == "top.schema.json"
