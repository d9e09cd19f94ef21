"""
Schema catalog: an immutable path -> schema document mapping.

The catalog is the only way the engine reaches another schema. Cross
references are always resolved on demand by path lookup, never turned into
live object pointers, so mutually-referencing schemas need no special care.

Besides the exact-key lookup, ``find_schema`` tolerates base-path convention
mismatches between how ``$ref`` values were written and how the catalog was
keyed (``user/address.schema.json`` vs ``v1/user/address.schema.json``).
"""

import json
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, TypeVar, Union

from schemagraph.exceptions import ConfigurationError
from schemagraph.schema.introspect import PrimitivePathHeuristic, default_primitive_heuristic
from schemagraph.schema.paths import schema_stem
from schemagraph.settings import settings
from schemagraph.types import SchemaInfo
from schemagraph.utilities.logging import get_logger

logger = get_logger("schema.catalog")

T = TypeVar("T")

SchemaDocument = Dict[str, Any]


class SchemaCatalog(Mapping[str, SchemaDocument]):
    """
    Read-only view over the schemas of one builder session.

    Carries the primitive-path heuristic for its naming convention and a
    per-path cache for derived data such as connection rules. Entries are
    never mutated.
    """

    def __init__(
        self,
        schemas: Mapping[str, SchemaDocument],
        primitive_paths: Optional[PrimitivePathHeuristic] = None,
    ) -> None:
        self._schemas: Mapping[str, SchemaDocument] = MappingProxyType(dict(schemas))
        self.primitive_paths: PrimitivePathHeuristic = primitive_paths or default_primitive_heuristic()
        self._cache: Dict[Tuple[str, str], Any] = {}

    @classmethod
    def wrap(cls, catalog: Mapping[str, SchemaDocument]) -> "SchemaCatalog":
        """Return ``catalog`` itself if it is already a SchemaCatalog."""
        if isinstance(catalog, SchemaCatalog):
            return catalog
        return cls(catalog)

    def __getitem__(self, path: str) -> SchemaDocument:
        return self._schemas[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._schemas)

    def __len__(self) -> int:
        return len(self._schemas)

    def __repr__(self) -> str:
        return f"SchemaCatalog({len(self)} schemas)"

    def lookup(self, path: str) -> Optional[Tuple[str, SchemaDocument]]:
        return find_schema(self, path)

    def cached(self, kind: str, path: str, factory: Callable[[], T]) -> T:
        key = (kind, path)
        if key not in self._cache:
            self._cache[key] = factory()
        return self._cache[key]


def find_schema(
    catalog: Mapping[str, SchemaDocument],
    path: str,
) -> Optional[Tuple[str, SchemaDocument]]:
    """
    Look up ``path`` in ``catalog``.

    Exact keys win. Otherwise the first key (in catalog order) that ends with
    ``path``, or that ``path`` ends with, is used.

    Returns:
        ``(catalog_key, schema)`` or ``None``.
    """
    if not path:
        return None
    schema = catalog.get(path)
    if schema is not None:
        return path, schema
    for key in catalog:
        if key and (key.endswith(path) or path.endswith(key)):
            return key, catalog[key]
    return None


# --- Loading ---

def load_catalog(
    directory: Union[str, Path],
    pattern: str = "**/*.json",
    primitive_paths: Optional[PrimitivePathHeuristic] = None,
) -> SchemaCatalog:
    """
    Load every JSON schema below ``directory`` into a catalog.

    Keys are POSIX paths relative to ``directory``. Files that are not valid
    JSON objects are skipped with a warning.

    Raises:
        ConfigurationError: If ``directory`` does not exist.
    """
    root = Path(directory)
    if not root.is_dir():
        raise ConfigurationError(
            f"Schema directory not found: {root}", path=root
        )

    schemas: Dict[str, SchemaDocument] = {}
    for file_path in sorted(root.glob(pattern)):
        if not file_path.is_file():
            continue
        key = file_path.relative_to(root).as_posix()
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Skipping unreadable schema %s: %s", key, e)
            continue
        if not isinstance(document, dict):
            logger.warning("Skipping %s: top-level value is not an object", key)
            continue
        schemas[key] = document

    logger.info("Loaded %d schemas from %s", len(schemas), root)
    return SchemaCatalog(schemas, primitive_paths=primitive_paths)


# --- Display Metadata ---

def display_name(schema_path: str) -> str:
    """``v1/user/user-profile.schema.json`` -> ``User Profile``."""
    stem = schema_stem(schema_path, settings.schema_suffixes)
    words = stem.replace("_", "-").split("-")
    return " ".join(word[:1].upper() + word[1:] for word in words)


def schema_info(schema_path: str, schema: Mapping[str, Any]) -> SchemaInfo:
    title = schema.get("title")
    return SchemaInfo(
        path=schema_path,
        title=title if isinstance(title, str) and title else display_name(schema_path),
        description=schema.get("description"),
        schema_id=schema.get("$id"),
    )


def group_schemas_by_folder(catalog: Mapping[str, SchemaDocument]) -> Dict[str, List[SchemaInfo]]:
    """
    Group schemas by their parent folder for a palette view.

    ``v1/user/user.schema.json`` lands in ``User``; top-level files land in
    ``Root``. Each group is sorted by title.
    """
    groups: Dict[str, List[SchemaInfo]] = {}
    for path, schema in catalog.items():
        parts = path.split("/")
        folder = parts[-2] if len(parts) > 1 else "root"
        display_folder = folder[:1].upper() + folder[1:]
        groups.setdefault(display_folder, []).append(schema_info(path, schema))

    for infos in groups.values():
        infos.sort(key=lambda info: info.title.casefold())
    return groups
