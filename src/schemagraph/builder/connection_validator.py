"""
Connection validation for the instance graph.

Decides whether an edge from one instance's reference property to another
instance is legal, given the connection rules of the source schema. All
checks return outcome models; nothing here raises for an illegal edge.

Cardinality rules:
  - ``one``: at most one connection per (source, property)
  - ``many``: any number, but no exact (source, target, property) duplicates
  - never a self-loop
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from schemagraph.schema.catalog import SchemaCatalog, find_schema
from schemagraph.schema.introspect import items_refs, union_refs
from schemagraph.schema.paths import resolve_ref, schema_file_ref
from schemagraph.schema.relationships import connection_rules_for, find_rule
from schemagraph.types import (
    Cardinality,
    Connection,
    ConnectionCheck,
    ConnectionRule,
    Instance,
    InstanceID,
    PropertyName,
    SchemaPath,
    ValidationResult,
)
from schemagraph.utilities.logging import get_logger

logger = get_logger("builder.connection_validator")

Catalog = Mapping[str, Dict[str, Any]]
InstanceMap = Mapping[InstanceID, Instance]


# --- Resolved Targets ---

def resolve_target_schema_paths(target_schema_path: SchemaPath, catalog: Catalog) -> List[SchemaPath]:
    """
    Every schema path an edge for ``target_schema_path`` may point at.

    The path itself is always included. Array wrappers (``items.$ref``, also
    inside ``allOf``) and unions (``anyOf``/``oneOf`` refs) are unwrapped
    recursively. The result is ordered and free of duplicates.
    """
    results: List[SchemaPath] = []
    seen: Set[SchemaPath] = set()

    def add(path: SchemaPath) -> None:
        if path not in seen:
            seen.add(path)
            results.append(path)

    def visit(path: SchemaPath) -> None:
        found = find_schema(catalog, path)
        if found is None:
            add(path)
            return
        actual, schema = found
        if actual in seen and path in seen:
            return
        add(path)
        add(actual)
        for ref in [*items_refs(schema), *union_refs(schema)]:
            file_ref = schema_file_ref(ref)
            if file_ref is None:
                continue
            nested = resolve_ref(actual, file_ref)
            if nested in seen:
                continue
            visit(nested)

    visit(target_schema_path)
    return results


def _targets_for(rule: ConnectionRule, catalog: Catalog) -> List[SchemaPath]:
    return resolve_target_schema_paths(rule.target_schema_path, catalog)


def _occupied(source_id: InstanceID, property_path: PropertyName, connections: Iterable[Connection]) -> bool:
    return any(c.source_id == source_id and c.property_path == property_path for c in connections)


def _duplicate(
    source_id: InstanceID,
    target_id: InstanceID,
    property_path: PropertyName,
    connections: Iterable[Connection],
) -> bool:
    return any(
        c.source_id == source_id and c.target_id == target_id and c.property_path == property_path
        for c in connections
    )


# --- Schema-level Checks ---

def can_connect(
    source_schema_path: SchemaPath,
    target_schema_path: SchemaPath,
    catalog: Catalog,
) -> ConnectionCheck:
    """Whether any reference property of the source schema accepts the target schema."""
    catalog = SchemaCatalog.wrap(catalog)
    if find_schema(catalog, source_schema_path) is None:
        return ConnectionCheck(valid=False, reason=f"Source schema not found: {source_schema_path}")

    for rule in connection_rules_for(source_schema_path, catalog):
        if target_schema_path in _targets_for(rule, catalog):
            return ConnectionCheck(
                valid=True,
                property_path=rule.property_path,
                cardinality=rule.cardinality,
            )

    return ConnectionCheck(
        valid=False,
        reason=f"No $ref from {source_schema_path} to {target_schema_path}",
    )


# --- Instance-level Checks ---

def validate_connection(
    source_instance_id: InstanceID,
    target_instance_id: InstanceID,
    property_path: PropertyName,
    existing_connections: List[Connection],
    catalog: Catalog,
    instances: InstanceMap,
) -> ValidationResult:
    """
    Validate a proposed edge. The first failed check decides the reason:

    1. source instance exists
    2. target instance exists
    3. the source schema has a rule for ``property_path``
    4. the target's schema is in that rule's resolved-target set
    5. a ``one`` property is not already connected
    6. source and target differ
    7. the exact edge does not exist yet
    """
    catalog = SchemaCatalog.wrap(catalog)
    result = _validate(
        source_instance_id, target_instance_id, property_path,
        existing_connections, catalog, instances,
    )
    if not result.valid:
        logger.debug(
            "Rejected %s -[%s]-> %s: %s",
            source_instance_id, property_path, target_instance_id, result.reason,
        )
    return result


def _validate(
    source_instance_id: InstanceID,
    target_instance_id: InstanceID,
    property_path: PropertyName,
    existing_connections: List[Connection],
    catalog: Catalog,
    instances: InstanceMap,
) -> ValidationResult:
    source = instances.get(source_instance_id)
    if source is None:
        return ValidationResult(valid=False, reason=f"Source instance not found: {source_instance_id}")

    target = instances.get(target_instance_id)
    if target is None:
        return ValidationResult(valid=False, reason=f"Target instance not found: {target_instance_id}")

    rule = find_rule(connection_rules_for(source.schema_path, catalog), property_path)
    if rule is None:
        return ValidationResult(
            valid=False,
            reason=f"Property '{property_path}' does not have a $ref in schema {source.schema_path}",
        )

    if target.schema_path not in _targets_for(rule, catalog):
        return ValidationResult(
            valid=False,
            reason=f"Property '{property_path}' expects {rule.target_schema_path}, got {target.schema_path}",
        )

    if rule.cardinality == Cardinality.ONE and _occupied(source_instance_id, property_path, existing_connections):
        return ValidationResult(
            valid=False,
            reason=(
                f"Property '{property_path}' already has a connection (one-to-one). "
                "Remove existing connection first."
            ),
        )

    if source_instance_id == target_instance_id:
        return ValidationResult(valid=False, reason="Cannot connect an instance to itself")

    if _duplicate(source_instance_id, target_instance_id, property_path, existing_connections):
        return ValidationResult(valid=False, reason="This exact connection already exists")

    return ValidationResult(valid=True)


def get_valid_targets(
    source_instance_id: InstanceID,
    property_path: PropertyName,
    instances: InstanceMap,
    catalog: Catalog,
    existing_connections: Optional[List[Connection]] = None,
) -> List[InstanceID]:
    """Instances the given property of the source could be connected to right now."""
    catalog = SchemaCatalog.wrap(catalog)
    connections = existing_connections or []
    source = instances.get(source_instance_id)
    if source is None:
        return []

    rule = find_rule(connection_rules_for(source.schema_path, catalog), property_path)
    if rule is None:
        return []

    if rule.cardinality == Cardinality.ONE and _occupied(source_instance_id, property_path, connections):
        return []

    targets = _targets_for(rule, catalog)
    valid: List[InstanceID] = []
    for instance_id, instance in instances.items():
        if instance_id == source_instance_id:
            continue
        if instance.schema_path not in targets:
            continue
        if rule.cardinality == Cardinality.MANY and _duplicate(
            source_instance_id, instance_id, property_path, connections
        ):
            continue
        valid.append(instance_id)
    return valid


def get_valid_sources(
    target_instance_id: InstanceID,
    instances: InstanceMap,
    catalog: Catalog,
    existing_connections: Optional[List[Connection]] = None,
) -> List[InstanceID]:
    """Instances with at least one property that could point at the target right now."""
    catalog = SchemaCatalog.wrap(catalog)
    connections = existing_connections or []
    target = instances.get(target_instance_id)
    if target is None:
        return []

    valid: List[InstanceID] = []
    for instance_id, instance in instances.items():
        if instance_id == target_instance_id:
            continue
        for rule in connection_rules_for(instance.schema_path, catalog):
            if target.schema_path not in _targets_for(rule, catalog):
                continue
            if rule.cardinality == Cardinality.ONE:
                if _occupied(instance_id, rule.property_path, connections):
                    continue
            elif _duplicate(instance_id, target_instance_id, rule.property_path, connections):
                continue
            valid.append(instance_id)
            break
    return valid


def get_connectable_properties(
    source_instance_id: InstanceID,
    target_instance_id: InstanceID,
    instances: InstanceMap,
    catalog: Catalog,
    existing_connections: Optional[List[Connection]] = None,
) -> List[PropertyName]:
    """Properties of the source that could still accept an edge to the target."""
    catalog = SchemaCatalog.wrap(catalog)
    connections = existing_connections or []
    source = instances.get(source_instance_id)
    target = instances.get(target_instance_id)
    if source is None or target is None or source_instance_id == target_instance_id:
        return []

    properties: List[PropertyName] = []
    for rule in connection_rules_for(source.schema_path, catalog):
        if target.schema_path not in _targets_for(rule, catalog):
            continue
        if rule.cardinality == Cardinality.ONE and _occupied(source_instance_id, rule.property_path, connections):
            continue
        if _duplicate(source_instance_id, target_instance_id, rule.property_path, connections):
            continue
        properties.append(rule.property_path)
    return properties
