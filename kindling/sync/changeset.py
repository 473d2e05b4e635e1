"""Change sets — plan file writes and deletions, present them, apply them once.

Nothing touches the filesystem until ``apply_changes`` gets a confirmation,
which is what lets every lifecycle operation commit all-or-nothing.
"""

from __future__ import annotations

import copy
import difflib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

import structlog
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

log = structlog.get_logger("kindling.changeset")

# Tags the lifecycle attaches to paths while building a plan
IMPORTED = "imported"
UNTRACKED = "untracked"
MANAGED = "managed"
DELETIONS = "deletions"


class ApplyOutcome(Enum):
    CHANGES_MADE = "changes_made"
    NO_CHANGES = "no_changes"
    ABORTED = "aborted"


@dataclass
class FileChange:
    """A pending change to one file."""

    path: str
    action: str  # create | update | delete
    before: str
    after: str

    def diff(self) -> str:
        lines = difflib.unified_diff(
            self.before.splitlines(keepends=True),
            self.after.splitlines(keepends=True),
            fromfile=f"a/{self.path}" if self.action != "create" else "/dev/null",
            tofile=f"b/{self.path}" if self.action != "delete" else "/dev/null",
        )
        return "".join(lines)


class ChangeSet:
    """An in-memory plan of changes to a project rooted at ``root``.

    Hooks receive a change set and return one; they can ``read``, ``write``,
    ``delete`` files and leave ``note``/``warn`` messages for the user.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self._writes: dict[str, str] = {}
        self._deletions: list[str] = []
        self.notices: list[str] = []
        self.warnings: list[str] = []
        self.tags: dict[str, list[str]] = {}

    # -- reading -----------------------------------------------------------

    def read(self, path: str) -> str | None:
        """Planned content of ``path``, falling back to disk; None if absent."""
        if path in self._writes:
            return self._writes[path]
        if path in self._deletions:
            return None
        disk = self.root / path
        if disk.is_file():
            return disk.read_text(encoding="utf-8")
        return None

    def exists(self, path: str) -> bool:
        return self.read(path) is not None

    # -- planning ----------------------------------------------------------

    def write(self, path: str, content: str) -> None:
        self._writes[path] = content
        if path in self._deletions:
            self._deletions.remove(path)

    def delete(self, path: str) -> None:
        self._writes.pop(path, None)
        if path not in self._deletions:
            self._deletions.append(path)

    def note(self, message: str) -> None:
        self.notices.append(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def tag(self, name: str, path: str) -> None:
        paths = self.tags.setdefault(name, [])
        if path not in paths:
            paths.append(path)

    def tagged(self, name: str) -> list[str]:
        return list(self.tags.get(name, []))

    def copy(self) -> ChangeSet:
        """A snapshot that can be modified without affecting this plan."""
        return copy.deepcopy(self)

    @property
    def planned_writes(self) -> dict[str, str]:
        return dict(self._writes)

    @property
    def planned_deletions(self) -> list[str]:
        return list(self._deletions)

    # -- inspection --------------------------------------------------------

    def pending(self) -> list[FileChange]:
        """Changes that would actually alter the filesystem, sorted by path."""
        changes: list[FileChange] = []
        for path, content in self._writes.items():
            disk = self.root / path
            if disk.is_file():
                before = disk.read_text(encoding="utf-8")
                if before != content:
                    changes.append(FileChange(path, "update", before, content))
            else:
                changes.append(FileChange(path, "create", "", content))
        for path in self._deletions:
            disk = self.root / path
            if disk.is_file():
                changes.append(FileChange(path, "delete", disk.read_text(encoding="utf-8"), ""))
        return sorted(changes, key=lambda c: c.path)

    @property
    def is_empty(self) -> bool:
        return not self.pending()

    def diff(self) -> str:
        return "".join(change.diff() for change in self.pending())

    # -- applying ----------------------------------------------------------

    def apply(self) -> list[FileChange]:
        """Write planned files, then remove deletions. Returns what changed."""
        changes = self.pending()
        for change in changes:
            target = self.root / change.path
            if change.action == "delete":
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(change.after, encoding="utf-8")
        for change in changes:
            if change.action == "delete":
                (self.root / change.path).unlink()
        log.info("changeset.applied", root=str(self.root), files=len(changes))
        return changes


def apply_changes(
    changes: ChangeSet,
    *,
    title: str = "Kindling",
    yes: bool = False,
    confirm: Callable[[str], bool] | None = None,
    console: Console | None = None,
) -> ApplyOutcome:
    """Present a change set and apply it if confirmed.

    Without ``yes`` or a ``confirm`` callback the plan is only shown (dry run).
    """
    console = console or Console()
    pending = changes.pending()

    if not pending:
        for notice in changes.notices:
            console.print(f"[blue]{notice}[/]")
        console.print(f"[dim]{title}: no changes to apply.[/]")
        return ApplyOutcome.NO_CHANGES

    console.print(Panel(_summary(pending), title=title))
    for change in pending:
        console.print(Syntax(change.diff(), "diff", theme="ansi_dark", word_wrap=True))
    for warning in changes.warnings:
        console.print(f"[yellow]![/] {warning}")

    if not yes and not (confirm and confirm("Proceed with changes?")):
        console.print("[yellow]Aborted; no files were changed.[/]")
        log.info("changeset.aborted", title=title, files=len(pending))
        return ApplyOutcome.ABORTED

    changes.apply()
    for notice in changes.notices:
        console.print(f"[green]{notice}[/]")
    return ApplyOutcome.CHANGES_MADE


def _summary(pending: list[FileChange]) -> str:
    symbols = {"create": "[green]+[/]", "update": "[yellow]~[/]", "delete": "[red]-[/]"}
    return "\n".join(f"{symbols[c.action]} {c.path}" for c in pending)
