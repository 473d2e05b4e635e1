"""Lock record model — provenance of an installed component."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from kindling.models.component import Origin, origin_from_dict


@dataclass
class LockRecord:
    """Binds installed files to the component, version and origin they came from."""

    origin: Origin
    version: int
    files: dict[str, str] = field(default_factory=dict)  # path -> content hash
    aggregate_hash: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "origin": self.origin.to_dict(),
            "version": self.version,
            "files": dict(sorted(self.files.items())),
            "hash": self.aggregate_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LockRecord:
        return cls(
            origin=origin_from_dict(data["origin"]),
            version=int(data["version"]),
            files={str(k): str(v) for k, v in (data.get("files") or {}).items()},
            aggregate_hash=str(data.get("hash", "")),
        )
