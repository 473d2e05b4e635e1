"""Host project conventions and configuration.

The host project is described by its ``pyproject.toml``: ``[project].name``
is its symbolic name and the optional ``[tool.kindling]`` table overrides the
layout and engine policies::

    [tool.kindling]
    package = "host_app"
    source-root = "src"
    tests-root = "tests"
    lock-file = "kindling.lock.yaml"
    prefix-match = "segment"        # or "substring"
    on-hook-error = "abort"         # or "continue"
    require-clean-worktree = true
"""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath

from kindling.errors import KindlingError
from kindling.models.component import ArtifactKind

SUPPORT_DIR = "support"

_KNOWN_SETTINGS = {
    "package",
    "source-root",
    "tests-root",
    "lock-file",
    "prefix-match",
    "on-hook-error",
    "require-clean-worktree",
}


class PrefixMatch(Enum):
    """How a dotted name's leading segment is compared to the component namespace."""

    SEGMENT = "segment"  # Leading segment equals the namespace
    SUBSTRING = "substring"  # Leading segment starts with the namespace


class HookPolicy(Enum):
    """What happens when a setup or upgrade hook raises."""

    ABORT = "abort"
    CONTINUE = "continue"


@dataclass
class Settings:
    lock_file: str = "kindling.lock.yaml"
    prefix_match: PrefixMatch = PrefixMatch.SEGMENT
    on_hook_error: HookPolicy = HookPolicy.ABORT
    require_clean_worktree: bool = True


@dataclass
class HostProject:
    """The project components are installed into, and where files belong in it."""

    root: Path
    name: str
    package: str
    source_root: str = "."
    tests_root: str = "tests"
    settings: Settings = field(default_factory=Settings)

    @classmethod
    def load(cls, root: str | Path) -> HostProject:
        """Read the host configuration from ``<root>/pyproject.toml``.

        Raises:
            KindlingError: If the file is missing or lacks a project name.
        """
        root = Path(root).resolve()
        pyproject = root / "pyproject.toml"
        if not pyproject.is_file():
            raise KindlingError(f"No pyproject.toml found in {root}")

        with open(pyproject, "rb") as f:
            data = tomllib.load(f)

        name = data.get("project", {}).get("name")
        if not name:
            raise KindlingError(f"{pyproject} has no [project].name")

        tool = data.get("tool", {}).get("kindling", {})
        unknown = set(tool) - _KNOWN_SETTINGS
        if unknown:
            raise KindlingError(
                f"Unknown [tool.kindling] settings: {', '.join(sorted(unknown))}"
            )

        package = tool.get("package") or _normalize_package(name)
        source_root = tool.get("source-root")
        if source_root is None:
            source_root = "src" if (root / "src" / package).is_dir() else "."

        try:
            settings = Settings(
                lock_file=tool.get("lock-file", "kindling.lock.yaml"),
                prefix_match=PrefixMatch(tool.get("prefix-match", "segment")),
                on_hook_error=HookPolicy(tool.get("on-hook-error", "abort")),
                require_clean_worktree=bool(tool.get("require-clean-worktree", True)),
            )
        except ValueError as e:
            raise KindlingError(f"Invalid [tool.kindling] setting: {e}") from e

        return cls(
            root=root,
            name=name,
            package=package,
            source_root=source_root,
            tests_root=tool.get("tests-root", "tests"),
            settings=settings,
        )

    @property
    def lock_path(self) -> str:
        return self.settings.lock_file

    def is_package_root(self, namespace: tuple[str, ...]) -> bool:
        """Whether a namespace names the host package itself (its ``__init__``)."""
        return namespace == (self.package, "__init__")

    def destination(self, namespace: tuple[str, ...], kind: ArtifactKind) -> str:
        """Map a rehomed namespace and artifact kind to a path relative to the root."""
        if kind == ArtifactKind.LIBRARY:
            base = PurePosixPath(self.source_root)
        elif kind == ArtifactKind.TEST:
            base = PurePosixPath(self.tests_root)
        else:
            base = PurePosixPath(self.tests_root) / SUPPORT_DIR
        path = base.joinpath(*namespace[:-1], f"{namespace[-1]}.py")
        return path.as_posix()


def classify(relative_path: str) -> tuple[ArtifactKind, tuple[str, ...]]:
    """Derive an artifact's kind and namespace from its path inside the component.

    ``tests/support/...`` is test support code, ``tests/...`` is a test and
    anything else is library code (with a leading ``src/`` stripped).
    """
    parts = PurePosixPath(relative_path).with_suffix("").parts
    if parts[:2] == ("tests", SUPPORT_DIR) and len(parts) > 2:
        return ArtifactKind.TEST_SUPPORT, parts[2:]
    if parts[0] == "tests" and len(parts) > 1:
        return ArtifactKind.TEST, parts[1:]
    if parts[0] == "src" and len(parts) > 1:
        return ArtifactKind.LIBRARY, parts[1:]
    return ArtifactKind.LIBRARY, parts


def _normalize_package(name: str) -> str:
    return re.sub(r"[-.]+", "_", name).lower()
