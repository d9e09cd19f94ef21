"""
json_graph.py

Graph <-> JSON codec for schemagraph instance graphs.

Export walks outgoing connections depth-first and nests connected instances
into their parent according to the cardinality of the reference property:
``one`` becomes a nested object (or ``None``), ``many`` becomes a list.

Import goes the other way for arbitrary JSON. Each object is matched to the
best-scoring catalog schema (or to the one named by ``_schemaPath``), its
plain values become instance values and its reference properties are
recursed into. Nested objects are only matched against the schemas their
parent property accepts. The same nested object reached through two paths
becomes one instance with two incoming connections, unless that would link
an instance to itself or to a schema the property does not accept.

Neither direction raises for bad input: export degrades to ``None``/``[]``,
import collects per-object errors and returns whatever it could build.
"""

import json
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence, Set, Tuple, Union

from schemagraph.builder.connection_validator import resolve_target_schema_paths
from schemagraph.builder.naming import InstanceNamer
from schemagraph.schema.catalog import SchemaCatalog, find_schema
from schemagraph.schema.introspect import effective_properties, effective_required, effective_type
from schemagraph.schema.relationships import connection_rules_for
from schemagraph.settings import settings
from schemagraph.types import (
    Cardinality,
    Connection,
    ConnectionRule,
    ExportOptions,
    ImportResult,
    ImportValidationResult,
    Instance,
    InstanceID,
    Position,
    SchemaPath,
)
from schemagraph.utilities.logging import get_logger

logger = get_logger("builder.json_graph")

Catalog = Mapping[str, Dict[str, Any]]
JsonValue = Union[Dict[str, Any], List[Any]]

METADATA_PREFIX = "_"
SCHEMA_PATH_KEY = "_schemaPath"
INSTANCE_ID_KEY = "_instanceId"


# --- Export ---

def _default_value(prop_def: Any) -> Any:
    if not isinstance(prop_def, dict):
        return None
    if "default" in prop_def:
        return prop_def["default"]
    prop_type = prop_def.get("type")
    if prop_type == "array":
        return []
    if prop_type == "object":
        return {}
    return None


def find_root_instances(instances: Sequence[Instance], connections: Sequence[Connection]) -> List[InstanceID]:
    """Ids of instances without incoming connections, in instance order."""
    target_ids = {c.target_id for c in connections}
    return [i.id for i in instances if i.id not in target_ids]


def get_instance_connections(instance_id: InstanceID, connections: Sequence[Connection]) -> List[Connection]:
    """Outgoing connections of an instance."""
    return [c for c in connections if c.source_id == instance_id]


def _reachable(start: InstanceID, connections: Sequence[Connection]) -> Set[InstanceID]:
    adjacency: Dict[InstanceID, List[InstanceID]] = {}
    for c in connections:
        adjacency.setdefault(c.source_id, []).append(c.target_id)
    stack = [start]
    seen: Set[InstanceID] = set()
    while stack:
        node = stack.pop()
        if node not in seen:
            seen.add(node)
            stack.extend(adjacency.get(node, []))
    return seen


def export_roots(instances: Sequence[Instance], connections: Sequence[Connection]) -> List[InstanceID]:
    """
    Instances to export as top-level values.

    Topological roots come first. Instances no root reaches (cycles hanging
    off nothing) add one extra root per unreached component, in instance
    order. A graph without any topological root exports every instance.
    """
    roots = find_root_instances(instances, connections)
    if not roots:
        return [i.id for i in instances]

    reached: Set[InstanceID] = set()
    for root_id in roots:
        reached |= _reachable(root_id, connections)

    for instance in instances:
        if instance.id not in reached:
            roots.append(instance.id)
            reached |= _reachable(instance.id, connections)
    return roots


def build_object_from_instance(
    instance_id: InstanceID,
    instances: Mapping[InstanceID, Instance],
    connections: Sequence[Connection],
    catalog: Catalog,
    visited: Set[InstanceID],
    options: Optional[ExportOptions] = None,
) -> Optional[Dict[str, Any]]:
    """
    Build the JSON object for one instance, nesting its connected instances.

    ``visited`` is the cycle guard of the current branch: an instance already
    in it yields ``None``. Each ``many`` child gets its own copy, so one
    instance may appear in several lists.

    Returns ``None`` for visited or unknown instances and for instances whose
    schema is missing from the catalog.
    """
    catalog = SchemaCatalog.wrap(catalog)
    if instance_id in visited:
        return None
    visited.add(instance_id)

    instance = instances.get(instance_id)
    if instance is None:
        return None
    found = find_schema(catalog, instance.schema_path)
    if found is None:
        logger.debug("Export skips %s: schema %s not in catalog", instance_id, instance.schema_path)
        return None
    schema_path, schema = found

    options = options or ExportOptions()
    result: Dict[str, Any] = {}
    if options.include_metadata:
        result[SCHEMA_PATH_KEY] = instance.schema_path
        result[INSTANCE_ID_KEY] = instance_id

    rules = {rule.property_path: rule for rule in connection_rules_for(schema_path, catalog)}

    by_property: Dict[str, List[Connection]] = {}
    for conn in get_instance_connections(instance_id, connections):
        by_property.setdefault(conn.property_path, []).append(conn)

    for name, prop_def in effective_properties(schema).items():
        rule = rules.get(name)
        if rule is None:
            if name in instance.values:
                result[name] = instance.values[name]
            else:
                result[name] = _default_value(prop_def)
            continue

        linked = by_property.get(name, [])
        if rule.cardinality == Cardinality.ONE:
            result[name] = (
                build_object_from_instance(linked[0].target_id, instances, connections, catalog, visited, options)
                if linked else None
            )
        else:
            items = []
            for conn in linked:
                child = build_object_from_instance(
                    conn.target_id, instances, connections, catalog, set(visited), options
                )
                if child is not None:
                    items.append(child)
            result[name] = items

    return result


def export_to_json(
    instances: Sequence[Instance],
    connections: Sequence[Connection],
    catalog: Catalog,
    options: Optional[ExportOptions] = None,
) -> JsonValue:
    """
    Export an instance graph to nested JSON.

    Returns a single object when one root produced output, a list otherwise
    (``[]`` for an empty graph). With ``root_instance_id`` only that subtree is
    exported, and an unknown root yields ``{}``.
    """
    options = options or ExportOptions()
    if not instances:
        return []
    catalog = SchemaCatalog.wrap(catalog)

    by_id = {i.id: i for i in instances}

    if options.root_instance_id:
        result = build_object_from_instance(
            options.root_instance_id, by_id, connections, catalog, set(), options
        )
        return result or {}

    results: List[Dict[str, Any]] = []
    for root_id in export_roots(instances, connections):
        result = build_object_from_instance(root_id, by_id, connections, catalog, set(), options)
        if result is not None:
            results.append(result)

    logger.debug("Exported %d root object(s) from %d instances", len(results), len(instances))
    if len(results) == 1:
        return results[0]
    return results


# --- Schema Matching ---

class SchemaMatch(NamedTuple):
    schema_path: SchemaPath
    score: float


def _is_object_schema(schema: Any) -> bool:
    """Object-typed, or untyped but declaring properties."""
    if not isinstance(schema, dict) or not effective_properties(schema):
        return False
    return effective_type(schema) in ("object", None)


def _data_keys(data: Mapping[str, Any]) -> List[str]:
    return [k for k in data if not k.startswith(METADATA_PREFIX)]


def find_matching_schema(
    data: Mapping[str, Any],
    catalog: Catalog,
    candidates: Optional[Sequence[SchemaPath]] = None,
    threshold: Optional[float] = None,
) -> Optional[SchemaMatch]:
    """
    Best catalog schema for a plain JSON object.

    Only object schemas with properties take part (an untyped schema with
    properties counts as an object). A schema is out when the
    data lacks any of its required properties; otherwise it scores
    ``|data keys & schema properties| / max(|data keys|, |schema properties|)``
    with metadata keys ignored. The first best score wins and must reach
    ``threshold`` (``settings.match_threshold`` by default).

    Args:
        candidates: Restrict matching to these schema paths.
    """
    threshold = settings.match_threshold if threshold is None else threshold
    keys = _data_keys(data)
    paths = candidates if candidates is not None else list(catalog)

    best: Optional[SchemaMatch] = None
    for path in paths:
        schema = catalog.get(path)
        if not _is_object_schema(schema):
            continue
        properties = effective_properties(schema)
        if not all(name in data for name in effective_required(schema)):
            continue
        matching = [k for k in keys if k in properties]
        score = len(matching) / max(len(keys), len(properties))
        if best is None or score > best.score:
            best = SchemaMatch(path, score)

    if best is None or best.score < threshold:
        return None
    return best


# --- Import ---

def _preview(data: Any) -> str:
    try:
        text = json.dumps(data, default=str)
    except (TypeError, ValueError):
        text = repr(data)
    return text[:100]


class _GraphImporter:
    """One import run: accumulates instances, connections and errors."""

    def __init__(self, catalog: Catalog, namer: InstanceNamer) -> None:
        self.catalog = catalog
        self.namer = namer
        self.instances: List[Instance] = []
        self.connections: List[Connection] = []
        self.errors: List[str] = []
        self._by_identity: Dict[int, InstanceID] = {}
        self._keep_alive: List[Any] = []
        self._by_metadata_id: Dict[str, InstanceID] = {}
        self._schema_of: Dict[InstanceID, SchemaPath] = {}
        self._edges: Set[Tuple[InstanceID, InstanceID, str]] = set()
        self.step_x = settings.node_width + settings.horizontal_gap
        self.step_y = settings.node_height + settings.vertical_gap

    def link(self, parent_id: InstanceID, child_id: InstanceID, property_path: str) -> None:
        edge = (parent_id, child_id, property_path)
        if edge in self._edges:
            return
        self._edges.add(edge)
        self.connections.append(Connection(
            id=f"e-{len(self.connections) + 1}",
            source_id=parent_id,
            target_id=child_id,
            property_path=property_path,
        ))

    def fail(self, message: str) -> None:
        logger.warning(message)
        self.errors.append(message)

    def link_rejection(
        self,
        parent_id: InstanceID,
        child_id: Optional[InstanceID],
        schema_path: SchemaPath,
        property_path: str,
        candidates: Optional[List[SchemaPath]],
    ) -> Optional[str]:
        """Why ``parent -[property]-> child`` may not be linked, or ``None``."""
        if child_id == parent_id:
            return f"Property '{property_path}' of {parent_id} refers back to {parent_id}"
        if candidates is not None and schema_path not in candidates:
            return f"Property '{property_path}' of {parent_id} does not accept {schema_path}"
        return None

    def known_instance(self, data: Dict[str, Any]) -> Optional[InstanceID]:
        existing = self._by_identity.get(id(data))
        if existing is not None:
            return existing
        meta_id = data.get(INSTANCE_ID_KEY)
        if isinstance(meta_id, str):
            return self._by_metadata_id.get(meta_id)
        return None

    def match(self, data: Dict[str, Any], candidates: Optional[List[SchemaPath]]) -> Optional[SchemaPath]:
        declared = data.get(SCHEMA_PATH_KEY)
        if isinstance(declared, str):
            found = find_schema(self.catalog, declared)
            if found is not None:
                return found[0]
            logger.debug("Ignoring unknown %s %r", SCHEMA_PATH_KEY, declared)

        found_match = find_matching_schema(data, self.catalog, candidates)
        return found_match.schema_path if found_match else None

    def create(
        self,
        data: Dict[str, Any],
        position: Position,
        parent_id: Optional[InstanceID] = None,
        property_path: Optional[str] = None,
        candidates: Optional[List[SchemaPath]] = None,
    ) -> Optional[InstanceID]:
        """
        Build the instance for ``data`` and link it under ``parent_id``.

        ``candidates`` are the schemas the parent property accepts. A nested
        object is only matched against them, and a shared or declared
        instance outside them (or the parent itself) is reported instead of
        linked.
        """
        linked = bool(parent_id and property_path)
        existing = self.known_instance(data)
        if existing is not None:
            if linked:
                rejection = self.link_rejection(
                    parent_id, existing, self._schema_of[existing], property_path, candidates
                )
                if rejection is not None:
                    self.fail(rejection)
                    return None
                self.link(parent_id, existing, property_path)
            return existing

        schema_path = self.match(data, candidates)
        if schema_path is None:
            self.fail(f"Could not find matching schema for object: {_preview(data)}...")
            return None
        if linked:
            rejection = self.link_rejection(parent_id, None, schema_path, property_path, candidates)
            if rejection is not None:
                self.fail(rejection)
                return None

        instance_id = self.namer.generate(schema_path)
        self._schema_of[instance_id] = schema_path
        self._by_identity[id(data)] = instance_id
        self._keep_alive.append(data)
        meta_id = data.get(INSTANCE_ID_KEY)
        if isinstance(meta_id, str):
            self._by_metadata_id[meta_id] = instance_id

        rules = connection_rules_for(schema_path, self.catalog)
        reference_props = {rule.property_path for rule in rules}
        values = {
            key: value for key, value in data.items()
            if not key.startswith(METADATA_PREFIX) and key not in reference_props
        }
        self.instances.append(Instance(
            id=instance_id, schema_path=schema_path, position=position, values=values
        ))
        if parent_id and property_path:
            self.link(parent_id, instance_id, property_path)

        self.create_children(instance_id, data, position, rules)
        return instance_id

    def create_children(
        self,
        instance_id: InstanceID,
        data: Dict[str, Any],
        position: Position,
        rules: List[ConnectionRule],
    ) -> None:
        child_x = position.x + self.step_x
        child_index = 0
        for rule in rules:
            nested = data.get(rule.property_path)
            if nested is None:
                continue
            targets = [
                path for path in resolve_target_schema_paths(rule.target_schema_path, self.catalog)
                if path in self.catalog
            ]

            if rule.cardinality == Cardinality.ONE:
                if not isinstance(nested, dict):
                    self.errors.append(
                        f"Property '{rule.property_path}' of {instance_id} expects an object"
                    )
                    continue
                child_pos = Position(x=child_x, y=position.y + child_index * self.step_y)
                self.create(nested, child_pos, instance_id, rule.property_path, targets)
                child_index += 1
            else:
                if not isinstance(nested, list):
                    self.errors.append(
                        f"Property '{rule.property_path}' of {instance_id} expects an array"
                    )
                    continue
                for offset, item in enumerate(nested):
                    if not isinstance(item, dict):
                        self.errors.append(
                            f"Item {offset} of '{rule.property_path}' on {instance_id} is not an object"
                        )
                        continue
                    child_pos = Position(x=child_x, y=position.y + (child_index + offset) * self.step_y)
                    self.create(item, child_pos, instance_id, rule.property_path, targets)
                child_index += len(nested)


def import_from_json(
    data: Any,
    catalog: Catalog,
    start_position: Optional[Position] = None,
    namer: Optional[InstanceNamer] = None,
) -> ImportResult:
    """
    Rebuild an instance graph from a JSON object or a list of objects.

    Objects that match no schema are reported in ``errors`` and skipped
    together with their subtree; everything else is still returned.
    ``success`` is true only when nothing failed.

    Args:
        data: Parsed JSON.
        catalog: Schemas to match against.
        start_position: Position of the first root; defaults to (100, 100).
        namer: Id source; pass the session's namer so ids do not collide.
    """
    start = start_position or Position(x=100, y=100)
    importer = _GraphImporter(SchemaCatalog.wrap(catalog), namer or InstanceNamer())

    if isinstance(data, list):
        y = start.y
        for index, item in enumerate(data):
            if not isinstance(item, dict):
                importer.errors.append(f"Item {index}: Not a valid object")
                continue
            importer.create(item, Position(x=start.x, y=y))
            y += importer.step_y
    elif isinstance(data, dict):
        importer.create(data, start)
    else:
        importer.errors.append("Invalid JSON: Expected an object or an array of objects")

    logger.info(
        "Imported %d instances and %d connections (%d errors)",
        len(importer.instances), len(importer.connections), len(importer.errors),
    )
    return ImportResult(
        success=not importer.errors,
        instances=importer.instances,
        connections=importer.connections,
        errors=importer.errors,
    )


# --- Import Preview ---

def _value_matches(value: Any, prop_type: Any) -> bool:
    if value is None:
        return True
    if prop_type == "string":
        return isinstance(value, str)
    if prop_type in ("number", "integer"):
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if prop_type == "boolean":
        return isinstance(value, bool)
    if prop_type == "array":
        return isinstance(value, list)
    if prop_type == "object":
        return isinstance(value, dict)
    return True


def validate_data_against_schema(
    data: Mapping[str, Any],
    schema_path: SchemaPath,
    catalog: Catalog,
) -> ImportValidationResult:
    """
    Check ``data`` against one schema: required properties present, primitive
    values of the declared type. Unknown keys only warn. Reference properties
    are not checked here.
    """
    found = find_schema(catalog, schema_path)
    if found is None:
        return ImportValidationResult(valid=False, errors=[f"Schema not found: {schema_path}"])
    key, schema = found

    properties = effective_properties(schema)
    if not _is_object_schema(schema):
        return ImportValidationResult(valid=False, errors=["Schema is not an object type"])

    errors: List[str] = []
    warnings: List[str] = []
    for name in effective_required(schema):
        if name not in data:
            errors.append(f"Missing required property: {name}")

    reference_props = {rule.property_path for rule in connection_rules_for(key, catalog)}
    for name, value in data.items():
        if name.startswith(METADATA_PREFIX):
            continue
        prop_def = properties.get(name)
        if prop_def is None:
            warnings.append(f"Unknown property: {name}")
            continue
        if name in reference_props or not isinstance(prop_def, dict):
            continue
        if not _value_matches(value, prop_def.get("type")):
            errors.append(
                f"Property '{name}' has invalid type. Expected {prop_def.get('type')}, "
                f"got {type(value).__name__}"
            )

    return ImportValidationResult(
        valid=not errors, errors=errors, warnings=warnings, matched_schema=key
    )


def _partial(score: float) -> str:
    return f"Partial schema match ({round(score * 100)}%)"


def validate_import_data(data: Any, catalog: Catalog) -> ImportValidationResult:
    """Dry-run preview of an import: matching errors and warnings, no graph built."""
    catalog = SchemaCatalog.wrap(catalog)
    if isinstance(data, list):
        if not data:
            return ImportValidationResult(valid=False, errors=["Empty array - nothing to import"])
        errors: List[str] = []
        warnings: List[str] = []
        for index, item in enumerate(data):
            if not isinstance(item, dict):
                errors.append(f"Item {index}: Not a valid object")
                continue
            match = find_matching_schema(item, catalog)
            if match is None:
                errors.append(f"Item {index}: No matching schema found")
            elif match.score < settings.partial_match_warning:
                warnings.append(f"Item {index}: {_partial(match.score)}")
        return ImportValidationResult(valid=not errors, errors=errors, warnings=warnings)

    if not isinstance(data, dict):
        return ImportValidationResult(valid=False, errors=["Invalid JSON: Expected an object"])

    match = find_matching_schema(data, catalog)
    if match is None:
        return ImportValidationResult(valid=False, errors=["No matching schema found for the data"])

    result = validate_data_against_schema(data, match.schema_path, catalog)
    if match.score < settings.partial_match_warning:
        result.warnings.append(_partial(match.score))
    return result
