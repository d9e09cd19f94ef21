"""
Input-form hints for the primitive (non-reference) properties of a schema.

A node on the canvas renders one input per primitive property. The input
type has to be dug out of ``$ref`` chains and ``allOf`` compositions; when the
referenced schema is missing, the ref path itself is used as a hint.
"""

from typing import Any, Dict, List, Mapping, Optional, Set

from schemagraph.schema.catalog import find_schema
from schemagraph.schema.introspect import effective_properties, effective_required
from schemagraph.schema.paths import resolve_ref, schema_file_ref
from schemagraph.schema.relationships import connection_rules_for
from schemagraph.types import FieldSpec

DEFAULT_FIELD_TYPE = "string"

# Ordered (substring, type) pairs checked against an unresolvable ref path.
PATH_TYPE_HINTS = (
    ("boolean", "boolean"),
    ("binary-flag", "boolean"),
    ("integer", "integer"),
    ("number", "integer"),
    ("string", "string"),
    ("array", "array"),
)


def _declared_type(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    if isinstance(value, list):
        # ["string", "null"] -> "string"
        concrete = [t for t in value if isinstance(t, str) and t != "null"]
        return concrete[0] if concrete else None
    return None


def resolve_property_type(
    prop_def: Any,
    catalog: Mapping[str, Dict[str, Any]],
    schema_path: str,
    _seen: Optional[Set[str]] = None,
) -> str:
    """
    Concrete input type for a property definition.

    Follows ``$ref`` -> ``$ref`` chains and ``allOf`` branches of the target
    until a ``type`` turns up. Falls back to hints in the ref path, then to
    ``string``.
    """
    if not isinstance(prop_def, dict):
        return DEFAULT_FIELD_TYPE

    declared = _declared_type(prop_def.get("type"))
    if declared:
        return declared

    file_ref = schema_file_ref(prop_def.get("$ref"))
    if file_ref is None:
        return DEFAULT_FIELD_TYPE

    seen = _seen if _seen is not None else set()
    ref_path = resolve_ref(schema_path, file_ref)
    found = find_schema(catalog, ref_path)

    if found is not None and found[0] not in seen:
        key, ref_schema = found
        seen.add(key)
        declared = _declared_type(ref_schema.get("type"))
        if declared:
            return declared
        if isinstance(ref_schema.get("$ref"), str):
            return resolve_property_type(ref_schema, catalog, key, seen)
        branches = ref_schema.get("allOf")
        if isinstance(branches, list):
            for branch in branches:
                if not isinstance(branch, dict):
                    continue
                declared = _declared_type(branch.get("type"))
                if declared:
                    return declared
                if isinstance(branch.get("$ref"), str):
                    resolved = resolve_property_type(branch, catalog, key, seen)
                    if resolved != DEFAULT_FIELD_TYPE:
                        return resolved

    lower = ref_path.lower()
    for hint, type_name in PATH_TYPE_HINTS:
        if hint in lower:
            return type_name
    return DEFAULT_FIELD_TYPE


def primitive_fields(
    schema_path: str,
    catalog: Mapping[str, Dict[str, Any]],
) -> List[FieldSpec]:
    """Form fields for every effective property that is not a connection."""
    found = find_schema(catalog, schema_path)
    if found is None:
        return []
    key, schema = found

    reference_props = {rule.property_path for rule in connection_rules_for(key, catalog)}
    required = set(effective_required(schema))

    fields: List[FieldSpec] = []
    for name, prop_def in effective_properties(schema).items():
        if name in reference_props:
            continue
        definition = prop_def if isinstance(prop_def, dict) else {}
        enum = definition.get("enum")
        fields.append(FieldSpec(
            name=name,
            type=resolve_property_type(definition, catalog, key),
            required=name in required,
            format=definition.get("format"),
            description=definition.get("description"),
            enum=enum if isinstance(enum, list) else None,
            default=definition.get("default"),
        ))
    return fields
