"""
Connection rule extraction.

Turns the reference properties of a schema into a flat list of
``ConnectionRule`` records. JSON Schema spells "this property points at
another entity" in several ways; all of them collapse into one
``(property, target, cardinality, required)`` shape here:

- a direct ``$ref`` (``one``, or ``many`` when the target is itself an
  array-of-refs wrapper schema)
- ``type: array`` with ``items.$ref`` (``many``)
- ``type: object`` with ``patternProperties`` whose entry is a ``$ref``
  (``many``, a map of entities keyed by pattern)

References to primitive schemas, by path convention or by content, never
produce a rule. Unresolvable references degrade to "no rule".

The module also builds the schema-level relationship overview (which schema
refers to which), used for the read-only schema graph view.
"""

from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from schemagraph.schema.catalog import SchemaCatalog, find_schema
from schemagraph.schema.introspect import (
    PrimitivePathHeuristic,
    default_primitive_heuristic,
    effective_properties,
    effective_required,
    is_array_of_refs,
    is_primitive_schema,
)
from schemagraph.schema.paths import resolve_ref, schema_file_ref
from schemagraph.types import (
    Cardinality,
    ConnectionRule,
    SchemaGraphEdge,
    SchemaGraphNode,
    SchemaRelationship,
)
from schemagraph.utilities.logging import get_logger

logger = get_logger("schema.relationships")


def extract_connection_rules(
    schema: Any,
    schema_path: str,
    catalog: Optional[Mapping[str, Dict[str, Any]]] = None,
    primitive_paths: Optional[PrimitivePathHeuristic] = None,
) -> List[ConnectionRule]:
    """
    Extract the connection rules of ``schema``.

    Args:
        schema: The schema document to analyze.
        schema_path: Catalog path of ``schema``; relative refs resolve against it.
        catalog: Optional catalog used to inspect ref targets by content and to
            detect array-wrapper targets. Without it only path heuristics apply.
        primitive_paths: Path heuristic override. Defaults to the catalog's own
            heuristic, then to the configured one.

    Returns:
        At most one rule per effective property, in property order.
    """
    if not isinstance(schema, dict):
        return []

    if primitive_paths is None:
        if isinstance(catalog, SchemaCatalog):
            primitive_paths = catalog.primitive_paths
        else:
            primitive_paths = default_primitive_heuristic()

    required = set(effective_required(schema))

    def lookup(path: str) -> Optional[Tuple[str, Dict[str, Any]]]:
        if catalog is None:
            return None
        found = find_schema(catalog, path)
        if found is None or not isinstance(found[1], dict):
            return None
        return found

    def target_is_primitive(key: str, target: Dict[str, Any]) -> bool:
        return is_primitive_schema(target, primitive_paths, key)

    def make_rule(name: str, target: str, cardinality: Cardinality) -> ConnectionRule:
        return ConnectionRule(
            property_path=name,
            target_schema_path=target,
            cardinality=cardinality,
            required=name in required,
        )

    def direct_ref_rule(name: str, ref: str) -> Optional[ConnectionRule]:
        file_ref = schema_file_ref(ref)
        if file_ref is None:
            return None
        target = resolve_ref(schema_path, file_ref)
        if primitive_paths(target):
            return None
        cardinality = Cardinality.ONE
        found = lookup(target)
        if found is not None:
            target, target_schema = found
            if target_is_primitive(target, target_schema):
                return None
            if is_array_of_refs(target_schema):
                # The wrapper path is kept; the validator unwraps it to the item type.
                cardinality = Cardinality.MANY
        return make_rule(name, target, cardinality)

    def items_ref_rule(name: str, ref: str) -> Optional[ConnectionRule]:
        file_ref = schema_file_ref(ref)
        if file_ref is None:
            return None
        target = resolve_ref(schema_path, file_ref)
        if primitive_paths(target):
            return None
        found = lookup(target)
        if found is not None:
            target, target_schema = found
            if target_is_primitive(target, target_schema):
                return None
        return make_rule(name, target, Cardinality.MANY)

    def pattern_rule(name: str, patterns: Dict[str, Any]) -> Optional[ConnectionRule]:
        for pattern_def in patterns.values():
            if not isinstance(pattern_def, dict):
                continue
            file_ref = schema_file_ref(pattern_def.get("$ref"))
            if file_ref is None:
                continue
            target = resolve_ref(schema_path, file_ref)
            if primitive_paths(target):
                continue
            found = lookup(target)
            if found is not None:
                target, target_schema = found
                if target_is_primitive(target, target_schema):
                    continue
            # Only the first usable pattern counts.
            return make_rule(name, target, Cardinality.MANY)
        return None

    rules: List[ConnectionRule] = []
    for name, prop in effective_properties(schema).items():
        if not isinstance(prop, dict):
            continue

        rule: Optional[ConnectionRule] = None
        if isinstance(prop.get("$ref"), str):
            rule = direct_ref_rule(name, prop["$ref"])
        else:
            items = prop.get("items")
            patterns = prop.get("patternProperties")
            if prop.get("type") == "array" and isinstance(items, dict) and isinstance(items.get("$ref"), str):
                rule = items_ref_rule(name, items["$ref"])
            elif prop.get("type") == "object" and isinstance(patterns, dict):
                rule = pattern_rule(name, patterns)

        if rule is not None:
            rules.append(rule)
        else:
            logger.debug("%s: property '%s' is not a connection", schema_path, name)

    return rules


def connection_rules_for(
    schema_path: str,
    catalog: Mapping[str, Dict[str, Any]],
) -> List[ConnectionRule]:
    """
    Rules for the catalog schema at ``schema_path`` (cached per catalog).

    Returns an empty list when the schema is not in the catalog.
    """
    schemas = SchemaCatalog.wrap(catalog)
    found = schemas.lookup(schema_path)
    if found is None:
        return []
    key, schema = found
    return schemas.cached(
        "rules", key, lambda: extract_connection_rules(schema, key, schemas)
    )


def find_rule(rules: List[ConnectionRule], property_path: str) -> Optional[ConnectionRule]:
    return next((r for r in rules if r.property_path == property_path), None)


# --- Schema Overview Graph ---

def extract_schema_references(schema: Any, schema_path: str) -> List[SchemaRelationship]:
    """
    Every file ``$ref`` anywhere in ``schema``, tagged with the nearest
    enclosing key as property name. Refs reached through an array's ``items``
    are ``one-to-many``; all others are ``one-to-one``.
    """
    refs: List[SchemaRelationship] = []

    def traverse(node: Any, property_name: str, parent_is_array: bool) -> None:
        if isinstance(node, list):
            for index, value in enumerate(node):
                traverse(value, str(index), False)
            return
        if not isinstance(node, dict):
            return

        file_ref = schema_file_ref(node.get("$ref"))
        if file_ref is not None:
            refs.append(SchemaRelationship(
                from_path=schema_path,
                to_path=resolve_ref(schema_path, file_ref),
                ref=node["$ref"],
                type="one-to-many" if parent_is_array else "one-to-one",
                property_name=property_name or None,
            ))

        if node.get("type") == "array" and node.get("items") is not None:
            traverse(node["items"], property_name, True)

        for key, value in node.items():
            if key != "items" and isinstance(value, (dict, list)):
                traverse(value, key, False)

    traverse(schema, "", False)
    return refs


def _entity_type(schema_path: str) -> str:
    suffix = ".schema.json"
    without_suffix = schema_path[: -len(suffix)] if schema_path.endswith(suffix) else schema_path
    parts = without_suffix.split("/")
    if len(parts) >= 2 and parts[0] == "v1" and parts[1]:
        return parts[1]
    return parts[-1] or "unknown"


def build_schema_relationship_graph(
    catalog: Mapping[str, Dict[str, Any]],
) -> Tuple[List[SchemaGraphNode], List[SchemaGraphEdge]]:
    """
    Schema-level graph: one node per catalog schema and one edge per
    referencing/referenced schema pair.

    An edge is typed ``multiple`` when several properties link the same pair,
    else ``one-to-many`` or ``one-to-one``. Nodes nobody references are roots.
    """
    relationships: List[SchemaRelationship] = []
    for path, schema in catalog.items():
        relationships.extend(extract_schema_references(schema, path))

    referenced: Set[str] = {rel.to_path for rel in relationships}
    nodes: List[SchemaGraphNode] = []
    for path, schema in catalog.items():
        props = schema.get("properties") if isinstance(schema, dict) else None
        summary = []
        if isinstance(props, dict):
            for key, prop in props.items():
                prop_type = prop.get("type", "any") if isinstance(prop, dict) else "any"
                summary.append(f"{key}: {prop_type}")
        title = schema.get("title") or schema.get("$id") or path
        nodes.append(SchemaGraphNode(
            id=path,
            title=str(title),
            entity_type=_entity_type(path),
            is_root=path not in referenced,
            properties=summary,
        ))

    def match_node(path: str) -> str:
        if path in catalog:
            return path
        return next((key for key in catalog if key.endswith(path)), path)

    groups: Dict[Tuple[str, str], List[SchemaRelationship]] = {}
    for rel in relationships:
        groups.setdefault((rel.from_path, rel.to_path), []).append(rel)

    edges: List[SchemaGraphEdge] = []
    seen: Set[Tuple[str, str]] = set()
    for (from_path, to_path), rels in groups.items():
        source, target = match_node(from_path), match_node(to_path)
        if source not in catalog or target not in catalog:
            logger.debug("Unmatched schema reference %s -> %s", from_path, to_path)
            continue
        if (source, target) in seen:
            continue
        seen.add((source, target))
        if len(rels) > 1:
            edge_type = "multiple"
        else:
            edge_type = rels[0].type
        edges.append(SchemaGraphEdge(
            id=f"{source}->{target}",
            source=source,
            target=target,
            type=edge_type,
            property_names=[r.property_name for r in rels if r.property_name],
            count=len(rels),
        ))

    return nodes, edges
