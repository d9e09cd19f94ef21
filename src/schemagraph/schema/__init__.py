"""
Schema-side analysis: ``$ref`` path resolution, composition-aware
introspection, connection rule extraction and the catalog wrapper.

Nothing in this package touches instances or connections; it only reads
schema documents.
"""

from schemagraph.schema.catalog import SchemaCatalog, load_catalog
from schemagraph.schema.introspect import (
    PrimitivePathHeuristic,
    effective_properties,
    effective_type,
    is_array_of_refs,
    is_primitive_schema,
)
from schemagraph.schema.paths import resolve_ref
from schemagraph.schema.relationships import extract_connection_rules

__all__ = [
    "SchemaCatalog",
    "load_catalog",
    "PrimitivePathHeuristic",
    "effective_properties",
    "effective_type",
    "is_array_of_refs",
    "is_primitive_schema",
    "resolve_ref",
    "extract_connection_rules",
]
