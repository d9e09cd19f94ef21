"""
Composition-aware schema introspection.

Catalogs built from small composable primitives (an "object" primitive, a
"positive-integer" primitive, ...) merged through ``allOf`` hide their real
property set and type from a naive top-level look. The helpers here see
through one level of ``allOf`` the way the rest of the engine expects.

Primitive detection by *path* is a naming-convention heuristic. It is a
pluggable predicate (``PrimitivePathHeuristic``) so catalogs with other
conventions can supply their own pattern lists.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from schemagraph.schema.paths import file_name, resolve_ref
from schemagraph.settings import settings

PRIMITIVE_TYPES = frozenset({"string", "number", "integer", "boolean", "null"})

# Ordered (substring, type) pairs used when an allOf branch is only a $ref.
TYPE_NAME_HINTS: Sequence[Tuple[str, str]] = (
    ("object", "object"),
    ("array", "array"),
    ("string", "string"),
    ("number", "number"),
    ("integer", "number"),
    ("boolean", "boolean"),
)


class PrimitivePathHeuristic:
    """
    Decide from a schema path alone whether it names a primitive schema.

    Two ordered pattern lists are checked case-insensitively:

    - ``path_patterns``: substrings anywhere in the path (``/primitives/``).
    - ``filename_suffixes``: endings of the file name (``id.schema.json``).
    """

    def __init__(
        self,
        path_patterns: Iterable[str] = (),
        filename_suffixes: Iterable[str] = (),
    ) -> None:
        self.path_patterns: List[str] = [p.lower() for p in path_patterns]
        self.filename_suffixes: List[str] = [s.lower() for s in filename_suffixes]

    @classmethod
    def from_settings(cls) -> "PrimitivePathHeuristic":
        return cls(settings.primitive_path_patterns, settings.primitive_filename_suffixes)

    def __call__(self, schema_path: str) -> bool:
        lower = schema_path.lower()
        if any(pattern in lower for pattern in self.path_patterns):
            return True
        name = file_name(lower)
        return any(name.endswith(suffix) for suffix in self.filename_suffixes)

    def __repr__(self) -> str:
        return (
            f"PrimitivePathHeuristic(path_patterns={self.path_patterns!r}, "
            f"filename_suffixes={self.filename_suffixes!r})"
        )


_default_heuristic: Optional[PrimitivePathHeuristic] = None

def default_primitive_heuristic() -> PrimitivePathHeuristic:
    global _default_heuristic
    if _default_heuristic is None:
        _default_heuristic = PrimitivePathHeuristic.from_settings()
    return _default_heuristic


def _all_of(schema: Dict[str, Any]) -> List[Dict[str, Any]]:
    branches = schema.get("allOf")
    if not isinstance(branches, list):
        return []
    return [b for b in branches if isinstance(b, dict)]


def _items_ref(schema: Dict[str, Any]) -> Optional[str]:
    items = schema.get("items")
    if isinstance(items, dict) and isinstance(items.get("$ref"), str):
        return items["$ref"]
    return None


def effective_properties(schema: Any) -> Dict[str, Any]:
    """
    Merge ``properties`` with the ``properties`` of every ``allOf`` branch.

    Later branches win on a name collision (last-write-wins), so the result is
    deterministic even when branches disagree about a property.
    """
    properties: Dict[str, Any] = {}
    if not isinstance(schema, dict):
        return properties

    own = schema.get("properties")
    if isinstance(own, dict):
        properties.update(own)

    for branch in _all_of(schema):
        branch_props = branch.get("properties")
        if isinstance(branch_props, dict):
            properties.update(branch_props)

    return properties


def effective_required(schema: Any) -> List[str]:
    """``required`` of the schema plus those of its ``allOf`` branches, in order."""
    if not isinstance(schema, dict):
        return []
    required: List[str] = []
    for source in [schema, *_all_of(schema)]:
        names = source.get("required")
        if isinstance(names, list):
            for name in names:
                if isinstance(name, str) and name not in required:
                    required.append(name)
    return required


def effective_type(schema: Any) -> Optional[str]:
    """
    ``type`` of the schema, falling back to the first ``allOf`` branch that
    declares one or whose ``$ref`` path names a primitive kind.
    """
    if not isinstance(schema, dict):
        return None

    if schema.get("type"):
        return schema["type"]

    for branch in _all_of(schema):
        if branch.get("type"):
            return branch["type"]
        ref = branch.get("$ref")
        if isinstance(ref, str):
            for hint, type_name in TYPE_NAME_HINTS:
                if hint in ref:
                    return type_name

    return None


def is_primitive_schema(
    schema: Any,
    primitive_paths: Optional[PrimitivePathHeuristic] = None,
    schema_path: Optional[str] = None,
) -> bool:
    """
    Whether a resolved schema is a scalar that must not become a graph edge.

    Args:
        schema: The schema document.
        primitive_paths: Path heuristic for ``$ref``-only schemas.
        schema_path: Where the schema lives; when given, ``$ref`` values are
            resolved against it before the path heuristic runs.
    """
    if not isinstance(schema, dict):
        return False
    is_primitive_path = primitive_paths or default_primitive_heuristic()

    def ref_is_primitive(ref: str) -> bool:
        target = resolve_ref(schema_path, ref) if schema_path else ref
        return is_primitive_path(target)

    declared = schema.get("type")
    if isinstance(declared, str) and declared in PRIMITIVE_TYPES:
        return True

    ref = schema.get("$ref")
    if isinstance(ref, str):
        return ref_is_primitive(ref)

    branches = schema.get("allOf")
    if isinstance(branches, list):
        branches = [b for b in branches if isinstance(b, dict)]
        # A collection of complex items is never primitive, even when composed.
        if any(_items_ref(b) for b in branches):
            return False
        if any(b.get("properties") for b in branches):
            return False

        def branch_is_primitive(branch: Dict[str, Any]) -> bool:
            if isinstance(branch.get("$ref"), str):
                return ref_is_primitive(branch["$ref"])
            if branch.get("type"):
                return branch["type"] in PRIMITIVE_TYPES
            return True

        return all(branch_is_primitive(b) for b in branches)

    return False


def is_array_of_refs(schema: Any) -> bool:
    """True for schemas that wrap a collection of referenced items."""
    if not isinstance(schema, dict):
        return False
    if _items_ref(schema):
        return True
    return any(_items_ref(b) for b in _all_of(schema))


def items_refs(schema: Any) -> List[str]:
    """Every ``items.$ref`` declared directly or in an ``allOf`` branch."""
    if not isinstance(schema, dict):
        return []
    refs: List[str] = []
    direct = _items_ref(schema)
    if direct:
        refs.append(direct)
    refs.extend(ref for ref in (_items_ref(b) for b in _all_of(schema)) if ref)
    return refs


def union_refs(schema: Any) -> List[str]:
    """``$ref`` values of the ``anyOf`` then ``oneOf`` branches."""
    if not isinstance(schema, dict):
        return []
    refs: List[str] = []
    for keyword in ("anyOf", "oneOf"):
        branches = schema.get(keyword)
        if not isinstance(branches, list):
            continue
        for branch in branches:
            if isinstance(branch, dict) and isinstance(branch.get("$ref"), str):
                refs.append(branch["$ref"])
    return refs
