"""
Centralized type definitions for schemagraph.

This module provides the shared, strongly-typed structures used by the schema
analysis layer, the connection validator, the JSON codec and the builder
session:

- Connection rules derived from schemas (``ConnectionRule``, ``Cardinality``)
- Graph records (``Instance``, ``Connection``, ``GraphSnapshot``)
- Outcome models returned instead of raising (``ValidationResult``,
  ``ConnectionCheck``, ``MutationResult``, ``ImportResult``,
  ``ImportValidationResult``)
- Display and form metadata (``SchemaInfo``, ``FieldSpec``)
- The ``LayoutService`` protocol for the external auto-layout engine

Field names are snake_case in Python and camelCase on the wire, so
``model_dump(by_alias=True)`` produces exactly the snapshot format consumed by
storage collaborators.
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# --- Core Type Aliases ---
SchemaPath = str
InstanceID = str
ConnectionID = str
PropertyName = str


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Schema-derived Rules ---

class Cardinality(str, Enum):
    """How many connections a reference property accepts."""
    ONE = "one"
    MANY = "many"


class ConnectionRule(_CamelModel):
    """One reference property of a schema, normalized."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    property_path: PropertyName
    target_schema_path: SchemaPath
    cardinality: Cardinality
    required: bool = False


# --- Graph Records ---

class Position(BaseModel):
    x: float
    y: float


class Instance(_CamelModel):
    id: InstanceID = Field(min_length=1)
    schema_path: SchemaPath = Field(min_length=1)
    position: Position
    values: Dict[PropertyName, Any] = Field(default_factory=dict)


class Connection(_CamelModel):
    id: ConnectionID = Field(min_length=1)
    source_id: InstanceID = Field(min_length=1)
    target_id: InstanceID = Field(min_length=1)
    property_path: PropertyName = ""


class GraphSnapshot(_CamelModel):
    """Plain serializable form of a builder graph, as handed to storage."""
    instances: List[Instance] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)
    last_saved: Optional[str] = None


# --- Outcomes ---

class ValidationResult(BaseModel):
    valid: bool
    reason: Optional[str] = None


class ConnectionCheck(_CamelModel):
    """Result of asking whether two schemas can be linked at all."""
    valid: bool
    property_path: Optional[PropertyName] = None
    cardinality: Optional[Cardinality] = None
    reason: Optional[str] = None


class MutationResult(BaseModel):
    applied: bool
    id: Optional[str] = None
    reason: Optional[str] = None


class ImportResult(BaseModel):
    success: bool
    instances: List[Instance] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class ImportValidationResult(_CamelModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    matched_schema: Optional[SchemaPath] = None


class ExportOptions(_CamelModel):
    include_metadata: bool = False
    root_instance_id: Optional[InstanceID] = None


# --- Display / Form Metadata ---

class SchemaInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: SchemaPath
    title: str
    description: Optional[str] = None
    schema_id: Optional[str] = Field(default=None, alias="$id")


class FieldSpec(BaseModel):
    """Input-form hint for one non-reference property of a schema."""
    name: PropertyName
    type: str
    required: bool = False
    format: Optional[str] = None
    description: Optional[str] = None
    enum: Optional[List[Any]] = None
    default: Any = None


# --- Schema Overview Graph ---

class SchemaRelationship(_CamelModel):
    from_path: SchemaPath
    to_path: SchemaPath
    ref: str
    type: str  # 'one-to-one' | 'one-to-many'
    property_name: Optional[PropertyName] = None


class SchemaGraphNode(_CamelModel):
    id: SchemaPath
    title: str
    entity_type: str
    is_root: bool
    properties: List[str] = Field(default_factory=list)


class SchemaGraphEdge(_CamelModel):
    id: str
    source: SchemaPath
    target: SchemaPath
    type: str  # 'one-to-one' | 'one-to-many' | 'multiple'
    property_names: List[PropertyName] = Field(default_factory=list)
    count: int = 1


# --- Protocols for External Collaborators ---

@runtime_checkable
class LayoutService(Protocol):
    def layout(
        self,
        instances: List[Instance],
        connections: List[Connection],
    ) -> Mapping[InstanceID, Position]:
        """
        Compute positions for the given nodes and edges.
        Instances missing from the returned mapping keep their position.
        """
        ...
