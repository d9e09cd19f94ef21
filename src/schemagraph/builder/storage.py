"""
Snapshot persistence for builder sessions.

A snapshot is the plain ``GraphSnapshot`` shape
(``{instances: [...], connections: [...], lastSaved}``). Loading is strict:
a snapshot with any malformed record, or a connection whose endpoint is
missing, is discarded as a whole and treated as "no saved state".
"""

import datetime
import json
import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from schemagraph.exceptions import StorageError
from schemagraph.settings import settings
from schemagraph.types import GraphSnapshot
from schemagraph.utilities.logging import get_logger

logger = get_logger("builder.storage")

DEFAULT_SNAPSHOT_NAME = "builder-state"


def load_snapshot(raw: Any) -> Optional[GraphSnapshot]:
    """
    Validate a decoded snapshot.

    Returns ``None`` when any instance lacks ``id``/``schemaPath``/``position``,
    any connection lacks ``id``/``sourceId``/``targetId``, or a connection
    points at an instance that is not in the snapshot.
    """
    if isinstance(raw, GraphSnapshot):
        raw = raw.model_dump(by_alias=True)
    if not isinstance(raw, dict):
        logger.warning("Discarding snapshot: top-level value is not an object")
        return None
    if not isinstance(raw.get("instances"), list) or not isinstance(raw.get("connections"), list):
        logger.warning("Discarding snapshot: 'instances' and 'connections' must be lists")
        return None

    try:
        snapshot = GraphSnapshot.model_validate(raw)
    except PydanticValidationError as e:
        logger.warning("Discarding invalid snapshot: %d error(s)", e.error_count())
        return None

    ids = {instance.id for instance in snapshot.instances}
    if len(ids) != len(snapshot.instances):
        logger.warning("Discarding snapshot: duplicate instance ids")
        return None
    for conn in snapshot.connections:
        if conn.source_id not in ids or conn.target_id not in ids:
            logger.warning("Discarding snapshot: connection %s has a missing endpoint", conn.id)
            return None
    return snapshot


class FileSnapshotStorage:
    """
    File-based snapshot storage, one JSON file per snapshot name.
    Thread-safe, atomic writes.
    """

    def __init__(self, base_dir: Union[str, Path, None] = None) -> None:
        self._base_dir = Path(base_dir or settings.storage_dir)
        self._lock = threading.Lock()

    def path(self, name: str = DEFAULT_SNAPSHOT_NAME) -> Path:
        return self._base_dir / f"{name}.json"

    def save(self, snapshot: GraphSnapshot, name: str = DEFAULT_SNAPSHOT_NAME) -> Path:
        """
        Write ``snapshot`` atomically (temp file, then move), stamping ``lastSaved``.

        Raises:
            StorageError: If the file cannot be written.
        """
        stamped = snapshot.model_copy(
            update={"last_saved": datetime.datetime.now(datetime.timezone.utc).isoformat()}
        )
        payload = json.dumps(stamped.model_dump(by_alias=True), indent=2)
        target = self.path(name)

        with self._lock:
            temp_path: Optional[str] = None
            try:
                os.makedirs(self._base_dir, exist_ok=True)
                with tempfile.NamedTemporaryFile(
                    "w", encoding="utf-8", dir=self._base_dir, suffix=".tmp", delete=False
                ) as tmp_file:
                    tmp_file.write(payload)
                    temp_path = tmp_file.name
                shutil.move(temp_path, target)
            except OSError as e:
                if temp_path and os.path.exists(temp_path):
                    os.remove(temp_path)
                raise StorageError(
                    f"Failed to write snapshot atomically: {e}", path=target
                ) from e

        logger.debug("Saved snapshot %s (%d instances)", target, len(snapshot.instances))
        return target

    def load(self, name: str = DEFAULT_SNAPSHOT_NAME) -> Optional[GraphSnapshot]:
        """Load a snapshot; a missing, unreadable or invalid file yields ``None``."""
        target = self.path(name)
        with self._lock:
            try:
                with open(target, "r", encoding="utf-8") as f:
                    raw = json.load(f)
            except FileNotFoundError:
                return None
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
                logger.warning("Discarding unreadable snapshot %s: %s", target, e)
                self._remove(target)
                return None

        snapshot = load_snapshot(raw)
        if snapshot is None:
            with self._lock:
                self._remove(target)
        return snapshot

    def clear(self, name: str = DEFAULT_SNAPSHOT_NAME) -> None:
        with self._lock:
            self._remove(self.path(name))

    def exists(self, name: str = DEFAULT_SNAPSHOT_NAME) -> bool:
        return self.path(name).is_file()

    @staticmethod
    def _remove(target: Path) -> None:
        try:
            target.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Failed to remove snapshot %s: %s", target, e)
