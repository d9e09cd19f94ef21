"""
Resolution of ``$ref`` strings against the path of the schema that contains them.

Schema paths are opaque, slash-separated catalog keys such as
``v1/user/user.schema.json``. Resolution is purely lexical: no catalog
lookups, no filesystem access.
"""

from typing import Iterable, List, Optional


def strip_fragment(ref: str) -> str:
    """Drop a ``#...`` JSON-pointer suffix from a ``$ref``."""
    return ref.split("#", 1)[0]


def base_dir(path: str) -> str:
    """Directory part of a schema path, or ``""`` when there is none."""
    idx = path.rfind("/")
    return path[:idx] if idx >= 0 else ""


def resolve_ref(base_path: str, ref: str) -> str:
    """
    Resolve ``ref`` relative to the schema stored at ``base_path``.

    - ``./x`` and ``../x`` are resolved segment by segment against the
      directory of ``base_path`` (``..`` pops, ``.`` and empty segments are
      dropped).
    - A bare filename with no ``/`` is a sibling of ``base_path``.
    - Anything else is already a catalog path and is returned unchanged.

    A fragment-only ref (``#/definitions/x``) points into the same document
    and resolves to ``base_path`` itself.
    """
    ref_path = strip_fragment(ref)
    if not ref_path:
        return base_path

    directory = base_dir(base_path)

    if ref_path.startswith("./") or ref_path.startswith("../"):
        parts: List[str] = [p for p in directory.split("/") if p]
        for segment in ref_path.split("/"):
            if not segment or segment == ".":
                continue
            if segment == "..":
                if parts:
                    parts.pop()
            else:
                parts.append(segment)
        return "/".join(parts)

    if "/" not in ref_path:
        return f"{directory}/{ref_path}" if directory else ref_path

    return ref_path


def schema_file_ref(ref: object) -> Optional[str]:
    """
    Return the file part of ``ref`` if it names another schema file.

    Only refs whose path ends in ``.json`` count; local ``#/...`` pointers and
    non-string values return ``None``.
    """
    if not isinstance(ref, str):
        return None
    ref_path = strip_fragment(ref)
    if ref_path and ref_path.endswith(".json"):
        return ref_path
    return None


def file_name(path: str) -> str:
    return path.rsplit("/", 1)[-1] or path


def schema_stem(path: str, suffixes: Iterable[str]) -> str:
    """
    Filename of ``path`` with the first matching schema suffix removed.

    >>> schema_stem("v1/user/user.schema.json", [".schema.json", ".json"])
    'user'
    """
    name = file_name(path)
    for suffix in suffixes:
        if suffix and name.endswith(suffix):
            return name[: -len(suffix)]
    return name
