"""Component data models — origins, requirements, descriptors and artifacts."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping

from kindling.syntax.tree import Module


class ArtifactKind(Enum):
    """Where an imported file belongs in the host project."""

    LIBRARY = "library"
    TEST = "test"
    TEST_SUPPORT = "test_support"


class FileCategory(Enum):
    """The manifest glob list a file was matched by."""

    REQUIRED = "required"  # Imported, tracked, conflicts abort the plan
    OPTIONAL = "optional"  # Imported only when absent, never tracked
    OVERWRITABLE = "overwritable"  # Always overwritten, never tracked


# --- Origins ---


@dataclass(frozen=True)
class LocalOrigin:
    """A component living in a local directory."""

    path: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path}

    def describe(self) -> str:
        return f"path:{self.path}"


@dataclass(frozen=True)
class RemoteOrigin:
    """A component fetched from a git remote."""

    url: str
    ref: str | None = None
    branch: str | None = None
    tag: str | None = None

    @property
    def selector(self) -> tuple[str, str] | None:
        """The checkout target, in priority order ref > branch > tag."""
        if self.ref:
            return ("ref", self.ref)
        if self.branch:
            return ("branch", self.branch)
        if self.tag:
            return ("tag", self.tag)
        return None

    def to_dict(self) -> dict[str, str]:
        data = {"git": self.url}
        if self.selector:
            kind, value = self.selector
            data[kind] = value
        return data

    def describe(self) -> str:
        if self.selector:
            kind, value = self.selector
            return f"git:{self.url}@{kind}:{value}"
        return f"git:{self.url}"


Origin = LocalOrigin | RemoteOrigin


def origin_from_dict(data: Mapping[str, Any]) -> Origin:
    """Rebuild an origin from its lock-file representation."""
    if "path" in data:
        return LocalOrigin(path=str(data["path"]))
    if "git" in data:
        return RemoteOrigin(
            url=str(data["git"]),
            ref=data.get("ref"),
            branch=data.get("branch"),
            tag=data.get("tag"),
        )
    raise ValueError(f"Unrecognized origin: {dict(data)}")


@dataclass(frozen=True)
class Requirement:
    """A component name plus where to fetch it from (None: use the lock record)."""

    name: str
    origin: Origin | None = None


# --- Descriptor ---


@dataclass(frozen=True)
class FileGlobs:
    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()
    overwritable: tuple[str, ...] = ()


@dataclass(frozen=True)
class ComponentDescriptor:
    """A component's validated self-description, bound to one resolved snapshot."""

    name: str
    version: int
    namespace: str
    files: FileGlobs
    root: Path
    setup: Callable[..., Any] | None = None
    upgrades: Mapping[tuple[int, int], Callable[..., Any]] = field(default_factory=dict)
    generic_upgrade: Callable[..., Any] | None = None

    def upgrade_hook(self, from_version: int, to_version: int) -> Callable[..., Any] | None:
        """Return the hook migrating from one version to the next, if any.

        Explicit ``UPGRADES`` entries win over the module-level ``upgrade``
        function, which receives both versions as arguments.
        """
        explicit = self.upgrades.get((from_version, to_version))
        if explicit is not None:
            return explicit
        if self.generic_upgrade is not None:
            generic = self.generic_upgrade
            return lambda changes: generic(changes, from_version, to_version)
        return None


# --- Artifacts ---


@dataclass
class Artifact:
    """A component file after parsing, ready to be placed in the host."""

    relative_path: str
    kind: ArtifactKind
    category: FileCategory
    namespace: tuple[str, ...]
    tree: Module

    @property
    def trackable(self) -> bool:
        return self.category == FileCategory.REQUIRED
