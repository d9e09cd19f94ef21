"""Exceptions raised at the file-system edges of schemagraph.

The graph engine reports expected failures (rejected connections, unmatched
import objects, corrupt snapshots) as result values. The exceptions below are
raised only when a schema directory, a user-supplied JSON file or a snapshot
file cannot be read or written, so each one names the path involved.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar, Union

E = TypeVar("E", bound="SchemaGraphError")

PathLike = Union[str, Path]


class SchemaGraphError(Exception):
    """
    Base error for schemagraph.

    Args:
        message: Human-readable error message.
        path: The file or directory the failure concerns, if any.
        details: Extra structured data for debugging.
    """

    error_code: str = "schemagraph.error"

    def __init__(
        self,
        message: str,
        *,
        path: Optional[PathLike] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message: str = message
        self.path: Optional[str] = str(path) if path is not None else None
        self.details: Dict[str, Any] = dict(details or {})
        super().__init__(message)

    @property
    def code(self) -> str:
        return self.error_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "path": self.path,
            "details": self.details,
        }

    @classmethod
    def from_exception(cls: Type[E], exc: Exception, *, path: Optional[PathLike] = None) -> E:
        """Wrap an I/O or decoding error, keeping its message and its repr."""
        message = f"{path}: {exc}" if path is not None else str(exc)
        return cls(message, path=path, details={"original_exception": repr(exc)})


class SerializationError(SchemaGraphError):
    """A user-supplied JSON file is missing or does not decode."""

    error_code = "schemagraph.serialization_error"


class ConfigurationError(SchemaGraphError):
    """The schema catalog cannot be loaded, e.g. the schema directory is missing."""

    error_code = "schemagraph.configuration_error"


class StorageError(SchemaGraphError):
    """A snapshot cannot be written to its storage backend."""

    error_code = "schemagraph.storage_error"
