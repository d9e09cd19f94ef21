"""
Instance naming.

Instances get human-readable ids such as ``user-1``, ``user-2``, derived from
the schema file stem plus a per-stem counter. Counter state lives on an
``InstanceNamer`` object, so every builder session keeps its own.
"""

import re
from typing import Dict, Iterable, Optional, Sequence

from schemagraph.schema.paths import schema_stem
from schemagraph.settings import settings

INSTANCE_ID_PATTERN = re.compile(r"^(.+)-(\d+)$")


class InstanceNamer:
    """Issues ``{base}-{n}`` ids with one monotonically increasing counter per base."""

    def __init__(self, suffixes: Optional[Sequence[str]] = None) -> None:
        self.suffixes: Sequence[str] = list(suffixes) if suffixes is not None else list(settings.schema_suffixes)
        self._counters: Dict[str, int] = {}

    def base_name(self, schema_path: str) -> str:
        return schema_stem(schema_path, self.suffixes)

    def generate(self, schema_path: str) -> str:
        base = self.base_name(schema_path)
        count = self._counters.get(base, 0) + 1
        self._counters[base] = count
        return f"{base}-{count}"

    def reset(self) -> None:
        self._counters.clear()

    def set_counter(self, base: str, value: int) -> None:
        self._counters[base] = value

    def counter(self, base: str) -> int:
        return self._counters.get(base, 0)

    @property
    def counters(self) -> Dict[str, int]:
        """Copy of the current counter state."""
        return dict(self._counters)

    def observe(self, instance_ids: Iterable[str]) -> None:
        """
        Raise counters so ids already in use are never issued again.

        Every id of the form ``{base}-{number}`` lifts the counter of ``base``
        to at least ``number``. Counters are never lowered.
        """
        for instance_id in instance_ids:
            match = INSTANCE_ID_PATTERN.match(instance_id)
            if not match:
                continue
            base, number = match.group(1), int(match.group(2))
            if number > self._counters.get(base, 0):
                self._counters[base] = number

    def restore_from_ids(self, instance_ids: Iterable[str]) -> None:
        """Reset, then seed counters from the ids of a restored graph."""
        self.reset()
        self.observe(instance_ids)

    def __repr__(self) -> str:
        return f"InstanceNamer(counters={self._counters!r})"
