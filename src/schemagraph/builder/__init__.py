"""
Instance-graph side: connection validation, the graph <-> JSON codec,
instance naming, the builder session and snapshot storage.
"""

from schemagraph.builder.connection_validator import (
    can_connect,
    get_connectable_properties,
    get_valid_sources,
    get_valid_targets,
    resolve_target_schema_paths,
    validate_connection,
)
from schemagraph.builder.json_graph import (
    build_object_from_instance,
    export_to_json,
    find_matching_schema,
    find_root_instances,
    import_from_json,
    validate_data_against_schema,
    validate_import_data,
)
from schemagraph.builder.naming import InstanceNamer
from schemagraph.builder.session import BuilderSession, EventBus
from schemagraph.builder.storage import FileSnapshotStorage, load_snapshot

__all__ = [
    "can_connect",
    "get_connectable_properties",
    "get_valid_sources",
    "get_valid_targets",
    "resolve_target_schema_paths",
    "validate_connection",
    "build_object_from_instance",
    "export_to_json",
    "find_matching_schema",
    "find_root_instances",
    "import_from_json",
    "validate_data_against_schema",
    "validate_import_data",
    "InstanceNamer",
    "BuilderSession",
    "EventBus",
    "FileSnapshotStorage",
    "load_snapshot",
]
