"""Lock store — the project-level record of installed components.

The store is a YAML file at the host root, keyed by component name::

    components:
      comp:
        origin: {path: ../comp}
        version: 1
        files: {src/host_app/thing.py: 3f2a...}
        hash: 9c1e...

A ``LockStore`` is an in-memory handle over that file. Mutations stay in
memory; the lifecycle plans ``render()`` into its change set so the lock is
written together with everything else, or not at all.
"""

from __future__ import annotations

from pathlib import Path

import yaml

from kindling.errors import KindlingError
from kindling.models.lock import LockRecord


class LockStore:
    """Get/put access to lock records by component name."""

    def __init__(self, path: str, records: dict[str, LockRecord] | None = None):
        self.path = path
        self._records: dict[str, LockRecord] = dict(records or {})

    @classmethod
    def load(cls, root: Path, path: str) -> LockStore:
        """Read the lock file at ``root / path``; a missing file is an empty store."""
        lock_file = root / path
        if not lock_file.exists():
            return cls(path)

        try:
            with open(lock_file) as f:
                data = yaml.safe_load(f) or {}
            records = {
                name: LockRecord.from_dict(entry)
                for name, entry in (data.get("components") or {}).items()
            }
        except (yaml.YAMLError, KeyError, TypeError, ValueError) as e:
            raise KindlingError(f"Corrupt lock file {lock_file}: {e}") from e
        return cls(path, records)

    def get(self, name: str) -> LockRecord | None:
        return self._records.get(name)

    def put(self, name: str, record: LockRecord) -> None:
        self._records[name] = record

    def remove(self, name: str) -> None:
        self._records.pop(name, None)

    def names(self) -> list[str]:
        return sorted(self._records)

    def __contains__(self, name: str) -> bool:
        return name in self._records

    def copy(self) -> LockStore:
        return LockStore(self.path, self._records)

    def render(self) -> str:
        """Serialize deterministically; an unchanged store renders byte-identically."""
        data = {
            "components": {
                name: self._records[name].to_dict() for name in sorted(self._records)
            }
        }
        return yaml.safe_dump(data, sort_keys=True, default_flow_style=False)
