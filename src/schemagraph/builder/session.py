"""
Builder session: the mutable instance graph behind one canvas.

A ``BuilderSession`` owns the instances, the connections and the naming
state of one builder. Every mutation is validated first and applied in one
step, so a rejected call leaves the graph untouched. Outcomes are returned
as ``MutationResult`` values; the session never raises for an invalid edit.

Each applied mutation is published on the session's ``EventBus`` so
collaborators such as snapshot persistence can follow along:

    session = BuilderSession(catalog)
    storage = FileSnapshotStorage()
    session.events.subscribe("*", lambda _event, _payload: storage.save(session.snapshot()))
"""

import copy
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from schemagraph.builder.connection_validator import (
    get_connectable_properties,
    get_valid_sources,
    get_valid_targets,
    validate_connection,
)
from schemagraph.builder.json_graph import export_to_json, import_from_json
from schemagraph.builder.naming import InstanceNamer
from schemagraph.builder.storage import load_snapshot
from schemagraph.schema.catalog import SchemaCatalog
from schemagraph.schema.introspect import effective_properties
from schemagraph.schema.relationships import connection_rules_for
from schemagraph.settings import settings
from schemagraph.types import (
    Connection,
    ConnectionID,
    ExportOptions,
    GraphSnapshot,
    ImportResult,
    Instance,
    InstanceID,
    LayoutService,
    MutationResult,
    Position,
    PropertyName,
    SchemaPath,
)
from schemagraph.utilities.logging import get_logger

logger = get_logger("builder.session")

EventCallback = Callable[[str, Dict[str, Any]], Any]

ALL_EVENTS = "*"


# --- Event Bus ---

class EventBus:
    """
    Simple synchronous event bus.

    Subscribers of ``"*"`` receive every event. A failing callback is logged
    and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[EventCallback]] = {}

    def subscribe(self, event_type: str, callback: EventCallback) -> None:
        self._subscribers.setdefault(event_type, []).append(callback)

    def unsubscribe(self, event_type: str, callback: EventCallback) -> None:
        callbacks = self._subscribers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        callbacks = [*self._subscribers.get(event_type, []), *self._subscribers.get(ALL_EVENTS, [])]
        for cb in callbacks:
            try:
                cb(event_type, payload)
            except Exception:
                logger.exception("EventBus callback error for %s", event_type)


# --- Session ---

class BuilderSession:
    """
    Instance/connection graph of one builder, validated against a schema catalog.
    """

    def __init__(
        self,
        catalog: Mapping[str, Dict[str, Any]],
        namer: Optional[InstanceNamer] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self.catalog: SchemaCatalog = SchemaCatalog.wrap(catalog)
        self.namer: InstanceNamer = namer or InstanceNamer()
        self.events: EventBus = event_bus or EventBus()
        self._instances: Dict[InstanceID, Instance] = {}
        self._connections: List[Connection] = []
        self._connection_seq = 0

    def __repr__(self) -> str:
        return f"BuilderSession({len(self._instances)} instances, {len(self._connections)} connections)"

    # --- Read Access ---

    @property
    def instances(self) -> List[Instance]:
        return list(self._instances.values())

    @property
    def connections(self) -> List[Connection]:
        return list(self._connections)

    def get_instance(self, instance_id: InstanceID) -> Optional[Instance]:
        return self._instances.get(instance_id)

    def get_connection(self, connection_id: ConnectionID) -> Optional[Connection]:
        return next((c for c in self._connections if c.id == connection_id), None)

    def _next_connection_id(self, connections: Optional[List[Connection]] = None) -> ConnectionID:
        used = {c.id for c in (self._connections if connections is None else connections)}
        while True:
            self._connection_seq += 1
            connection_id = f"conn-{self._connection_seq}"
            if connection_id not in used:
                return connection_id

    def _reject(self, operation: str, reason: str) -> MutationResult:
        logger.debug("%s rejected: %s", operation, reason)
        return MutationResult(applied=False, reason=reason)

    # --- Instances ---

    def create_instance(
        self,
        schema_path: SchemaPath,
        position: Position,
        values: Optional[Dict[PropertyName, Any]] = None,
    ) -> MutationResult:
        found = self.catalog.lookup(schema_path)
        if found is None:
            return self._reject("create_instance", f"Schema not found: {schema_path}")
        key = found[0]

        instance_id = self.namer.generate(key)
        while instance_id in self._instances:
            instance_id = self.namer.generate(key)

        instance = Instance(
            id=instance_id,
            schema_path=key,
            position=position,
            values=dict(values or {}),
        )
        self._instances[instance_id] = instance
        logger.info("Instance %s created (%s)", instance_id, key)
        self.events.publish("instance_created", {"instance_id": instance_id, "schema_path": key})
        return MutationResult(applied=True, id=instance_id)

    def delete_instance(self, instance_id: InstanceID) -> MutationResult:
        """Delete an instance together with every connection touching it."""
        if instance_id not in self._instances:
            return self._reject("delete_instance", f"Instance not found: {instance_id}")

        removed = [c.id for c in self._connections if instance_id in (c.source_id, c.target_id)]
        self._connections = [c for c in self._connections if c.id not in removed]
        del self._instances[instance_id]
        logger.info("Instance %s deleted (%d connections removed)", instance_id, len(removed))
        self.events.publish("instance_deleted", {"instance_id": instance_id, "connection_ids": removed})
        return MutationResult(applied=True, id=instance_id)

    def set_value(self, instance_id: InstanceID, property_path: PropertyName, value: Any) -> MutationResult:
        """Replace one primitive value. Reference properties are set through connections."""
        instance = self._instances.get(instance_id)
        if instance is None:
            return self._reject("set_value", f"Instance not found: {instance_id}")

        schema = self.catalog.get(instance.schema_path, {})
        if property_path not in effective_properties(schema):
            return self._reject(
                "set_value", f"Property '{property_path}' is not defined by {instance.schema_path}"
            )
        if any(r.property_path == property_path for r in connection_rules_for(instance.schema_path, self.catalog)):
            return self._reject(
                "set_value", f"Property '{property_path}' is a reference; connect an instance instead"
            )

        values = {**instance.values, property_path: value}
        self._instances[instance_id] = instance.model_copy(update={"values": values})
        self.events.publish(
            "value_changed", {"instance_id": instance_id, "property_path": property_path}
        )
        return MutationResult(applied=True, id=instance_id)

    def move_instance(self, instance_id: InstanceID, position: Position) -> MutationResult:
        instance = self._instances.get(instance_id)
        if instance is None:
            return self._reject("move_instance", f"Instance not found: {instance_id}")
        self._instances[instance_id] = instance.model_copy(update={"position": position})
        self.events.publish("instance_moved", {"instance_id": instance_id})
        return MutationResult(applied=True, id=instance_id)

    def paste_instances(
        self,
        instance_ids: Iterable[InstanceID],
        offset: Optional[float] = None,
    ) -> List[InstanceID]:
        """
        Copy instances with fresh ids, shifted by ``offset`` on both axes.

        Values are copied, connections are not. Unknown ids are skipped.
        """
        shift = settings.paste_offset if offset is None else offset
        created: List[InstanceID] = []
        for source_id in instance_ids:
            source = self._instances.get(source_id)
            if source is None:
                continue
            result = self.create_instance(
                source.schema_path,
                Position(x=source.position.x + shift, y=source.position.y + shift),
                copy.deepcopy(source.values),
            )
            if result.applied and result.id:
                created.append(result.id)
        return created

    # --- Connections ---

    def propose_connection(
        self,
        source_id: InstanceID,
        target_id: InstanceID,
        property_path: PropertyName,
    ) -> MutationResult:
        """Add an edge if it passes validation; otherwise report why not."""
        check = validate_connection(
            source_id, target_id, property_path, self._connections, self.catalog, self._instances
        )
        if not check.valid:
            return MutationResult(applied=False, reason=check.reason)

        connection_id = self._next_connection_id()
        connection = Connection(
            id=connection_id, source_id=source_id, target_id=target_id, property_path=property_path
        )
        self._connections.append(connection)
        logger.info("Connected %s -[%s]-> %s", source_id, property_path, target_id)
        self.events.publish("connection_created", {"connection_id": connection_id})
        return MutationResult(applied=True, id=connection_id)

    def delete_connection(self, connection_id: ConnectionID) -> MutationResult:
        if self.get_connection(connection_id) is None:
            return self._reject("delete_connection", f"Connection not found: {connection_id}")
        self._connections = [c for c in self._connections if c.id != connection_id]
        logger.info("Connection %s deleted", connection_id)
        self.events.publish("connection_deleted", {"connection_id": connection_id})
        return MutationResult(applied=True, id=connection_id)

    def valid_targets(self, source_id: InstanceID, property_path: PropertyName) -> List[InstanceID]:
        return get_valid_targets(source_id, property_path, self._instances, self.catalog, self._connections)

    def valid_sources(self, target_id: InstanceID) -> List[InstanceID]:
        return get_valid_sources(target_id, self._instances, self.catalog, self._connections)

    def connectable_properties(self, source_id: InstanceID, target_id: InstanceID) -> List[PropertyName]:
        return get_connectable_properties(
            source_id, target_id, self._instances, self.catalog, self._connections
        )

    # --- Whole-graph Operations ---

    def clear(self) -> None:
        """Empty the graph and reset the naming counters."""
        self._instances = {}
        self._connections = []
        self._connection_seq = 0
        self.namer.reset()
        logger.info("Session cleared")
        self.events.publish("cleared", {})

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            instances=[i.model_copy(deep=True) for i in self._instances.values()],
            connections=[c.model_copy() for c in self._connections],
        )

    def restore(self, snapshot: Union[GraphSnapshot, Mapping[str, Any], None]) -> bool:
        """
        Replace the graph with a saved snapshot.

        An invalid snapshot leaves an empty graph and returns ``False``.
        Naming counters are re-seeded from the restored ids.
        """
        loaded = load_snapshot(dict(snapshot) if isinstance(snapshot, Mapping) else snapshot)
        self._connection_seq = 0
        if loaded is None:
            self._instances = {}
            self._connections = []
            self.namer.reset()
            self.events.publish("restored", {"instances": 0, "connections": 0})
            return False

        for instance in loaded.instances:
            if self.catalog.lookup(instance.schema_path) is None:
                logger.warning(
                    "Restored instance %s uses unknown schema %s; it is left out of exports",
                    instance.id, instance.schema_path,
                )
        self._instances = {i.id: i for i in loaded.instances}
        self._connections = list(loaded.connections)
        self.namer.restore_from_ids(self._instances)
        logger.info(
            "Restored %d instances and %d connections", len(self._instances), len(self._connections)
        )
        self.events.publish(
            "restored", {"instances": len(self._instances), "connections": len(self._connections)}
        )
        return True

    def export_json(self, options: Optional[ExportOptions] = None) -> Any:
        return export_to_json(self.instances, self._connections, self.catalog, options)

    def import_json(self, data: Any, start_position: Optional[Position] = None) -> ImportResult:
        """
        Import JSON into the current graph.

        Everything that could be built is merged in one step; ids come from this
        session's namer and never collide with existing instances. Imported
        edges go through the same validation as ``propose_connection``; a
        rejected edge is dropped and reported in ``errors``.
        """
        self.namer.observe(self._instances)
        imported = import_from_json(data, self.catalog, start_position, self.namer)

        instances = {**self._instances, **{i.id: i for i in imported.instances}}
        connections = list(self._connections)
        accepted: List[Connection] = []
        errors = list(imported.errors)
        for edge in imported.connections:
            check = validate_connection(
                edge.source_id, edge.target_id, edge.property_path, connections, self.catalog, instances
            )
            if not check.valid:
                message = (
                    f"Connection {edge.source_id} -[{edge.property_path}]-> {edge.target_id} "
                    f"rejected: {check.reason}"
                )
                logger.warning(message)
                errors.append(message)
                continue
            connection = edge.model_copy(update={"id": self._next_connection_id(connections)})
            connections.append(connection)
            accepted.append(connection)

        self._instances = instances
        self._connections = connections
        result = ImportResult(
            success=not errors,
            instances=imported.instances,
            connections=accepted,
            errors=errors,
        )
        self.events.publish(
            "imported",
            {
                "instance_ids": [i.id for i in result.instances],
                "connection_ids": [c.id for c in result.connections],
                "errors": list(result.errors),
            },
        )
        return result

    def apply_layout(self, service: LayoutService) -> int:
        """
        Ask a layout service for positions and apply them.

        Positions for unknown ids are ignored. Returns how many instances moved.
        """
        positions = service.layout(self.instances, self.connections)
        moved = 0
        for instance_id, position in positions.items():
            instance = self._instances.get(instance_id)
            if instance is None:
                continue
            self._instances[instance_id] = instance.model_copy(update={"position": position})
            moved += 1
        if moved:
            self.events.publish("layout_applied", {"moved": moved})
        return moved
