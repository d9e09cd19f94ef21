import pytest

from schemagraph.schema.paths import resolve_ref, schema_file_ref, schema_stem


@pytest.mark.parametrize(
    "base, ref, expected",
    [
        ("v1/user/user.schema.json", "../address/address.schema.json", "v1/address/address.schema.json"),
        ("v1/user/user.schema.json", "./profile.schema.json", "v1/user/profile.schema.json"),
        ("v1/user/user.schema.json", "profile.schema.json", "v1/user/profile.schema.json"),
        ("v1/user/user.schema.json", "v2/order/order.schema.json", "v2/order/order.schema.json"),
        ("v1/user/user.schema.json", "../address/address.schema.json#/definitions/x", "v1/address/address.schema.json"),
        ("v1/user/user.schema.json", "./a/./b/../c.schema.json", "v1/user/a/c.schema.json"),
        ("v1/user/user.schema.json", "../../../top.schema.json", "top.schema.json"),
        ("user.schema.json", "address.schema.json", "address.schema.json"),
        ("user.schema.json", "./address.schema.json", "address.schema.json"),
    ],
)
def test_resolve_ref(base, ref, expected):
    assert resolve_ref(base, ref) == expected


def test_fragment_only_ref_points_at_the_same_document():
    assert resolve_ref("v1/user/user.schema.json", "#/definitions/name") == "v1/user/user.schema.json"


def test_resolve_ref_is_deterministic():
    first = resolve_ref("v1/a/b.schema.json", "../c/d.schema.json")
    assert all(resolve_ref("v1/a/b.schema.json", "../c/d.schema.json") == first for _ in range(3))


def test_schema_file_ref_only_accepts_json_files():
    assert schema_file_ref("./a.schema.json#/x") == "./a.schema.json"
    assert schema_file_ref("#/definitions/x") is None
    assert schema_file_ref("https://example.com/thing") is None
    assert schema_file_ref(None) is None
    assert schema_file_ref(42) is None


def test_schema_stem_strips_longest_suffix_first():
    suffixes = [".schema.json", ".json"]
    assert schema_stem("v1/user/user.schema.json", suffixes) == "user"
    assert schema_stem("v1/user/plain.json", suffixes) == "plain"
    assert schema_stem("README", suffixes) == "README"
