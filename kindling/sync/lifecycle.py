"""Lifecycle orchestration — install, update, unlock and uninstall components.

Every operation builds a single change set and applies it once, at the end,
after confirmation. Any fatal error raised while planning therefore leaves
the project untouched. Dependency installation is the exception: it is its
own sub-plan, confirmed and committed before the code sub-plan is built.

The lock store is an explicit handle passed to each operation. It is only
updated after the change set carrying the new lock file has been applied.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

import structlog
from rich.console import Console

from kindling.errors import (
    AlreadyInstalledError,
    ComponentNotInstalledError,
    ConflictError,
    HookError,
    IntegrityError,
    InvalidRequirementError,
    SyntaxTreeError,
)
from kindling.models.component import (
    Artifact,
    ComponentDescriptor,
    FileCategory,
    Origin,
)
from kindling.models.lock import LockRecord
from kindling.project import HookPolicy, HostProject, classify
from kindling.sync.changeset import (
    DELETIONS,
    IMPORTED,
    MANAGED,
    UNTRACKED,
    ApplyOutcome,
    ChangeSet,
    apply_changes,
)
from kindling.sync.dependencies import DependencyInstaller, PipInstaller, install_dependencies
from kindling.sync.globs import expand_globs
from kindling.sync.lock import LockStore
from kindling.sync.manifest import load_manifest
from kindling.sync.rehome import Rehoming
from kindling.sync.resolver import resolve_source
from kindling.sync.tracking import aggregate_hash, compute_hash, embed_marker, strip_marker
from kindling.syntax.tree import parse
from kindling.utils.git_ops import ensure_clean_worktree

log = structlog.get_logger("kindling.lifecycle")

UNINSTALL_WARNINGS = (
    "Code changes made by the component's setup or upgrade hooks are not reverted. "
    "Check the component's hooks to see whether anything was added by hand, such as settings.",
    "Imported files marked as optional are not deleted, as they could have existed "
    "before the component was installed (for example `tests/conftest.py`).",
    "Dependencies installed alongside the component are not removed, since Kindling cannot "
    "know whether they are used elsewhere. Check the component's pyproject.toml if you want "
    "to remove them by hand.",
)


@dataclass
class HookOutcome:
    """What happened when a setup or upgrade hook ran."""

    kind: str  # setup | upgrade
    ok: bool
    from_version: int | None = None
    to_version: int | None = None
    error: str = ""

    @property
    def label(self) -> str:
        if self.kind == "upgrade":
            return f"upgrade {self.from_version} -> {self.to_version}"
        return self.kind


@dataclass
class OperationResult:
    """The outcome of one lifecycle operation."""

    component: str
    outcome: ApplyOutcome
    changes: ChangeSet
    hooks: list[HookOutcome] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)

    @property
    def failed_hooks(self) -> list[HookOutcome]:
        return [h for h in self.hooks if not h.ok]


class Lifecycle:
    """The component state machine for one host project.

    Args:
        host: The project components are installed into.
        installer: Installs component dependencies (pip by default).
        confirm: Asked before any sub-plan is applied; without it, plans
            are only shown unless ``yes`` is passed.
        hook_policy: Whether a failing hook aborts the operation or the
            operation continues with the change set as it was before the
            hook. Defaults to the host's ``on-hook-error`` setting.
    """

    def __init__(
        self,
        host: HostProject,
        *,
        installer: DependencyInstaller | None = None,
        confirm: Callable[[str], bool] | None = None,
        console: Console | None = None,
        hook_policy: HookPolicy | None = None,
    ):
        self.host = host
        self.installer = installer or PipInstaller()
        self.confirm = confirm
        self.console = console or Console()
        self.hook_policy = hook_policy or host.settings.on_hook_error

    # ── Queries ──────────────────────────────────────────────────────

    def is_installed(self, lock: LockStore, name: str) -> bool:
        return lock.get(name) is not None

    def verify_integrity(self, name: str, record: LockRecord) -> None:
        """Check every tracked file still matches its recorded hash.

        Raises:
            IntegrityError: On the first missing or drifted file.
        """
        for path, recorded in sorted(record.files.items()):
            disk = self.host.root / path
            if not disk.is_file():
                raise IntegrityError(name, path, "does not exist")
            try:
                current = compute_hash(parse(disk.read_text(encoding="utf-8"), path))
            except SyntaxTreeError:
                raise IntegrityError(name, path, "has diverged from its original source") from None
            if current != recorded:
                raise IntegrityError(name, path, "has diverged from its original source")
        log.debug("lifecycle.integrity_ok", component=name, files=len(record.files))

    # ── Install ──────────────────────────────────────────────────────

    def install(
        self,
        lock: LockStore,
        name: str,
        origin: Origin | None,
        *,
        unlocked: bool = False,
        yes: bool = False,
    ) -> OperationResult:
        """Import a component, optionally without tracking it."""
        if origin is None:
            raise InvalidRequirementError(
                f"An origin is required to install {name}, e.g. {name}@path:/path/to/{name}"
            )
        if self.is_installed(lock, name):
            raise AlreadyInstalledError(name)
        self._guard_worktree()

        changes = ChangeSet(self.host.root)
        hooks: list[HookOutcome] = []
        record: LockRecord | None = None

        with resolve_source(name, origin, self.host.root) as component_root:
            descriptor = load_manifest(component_root, expected_name=name)
            dependencies = self._install_dependencies(descriptor, yes)
            rehoming = self._rehoming(descriptor)

            if descriptor.setup is not None:
                changes = self._run_hook(
                    descriptor.setup, changes, HookOutcome(kind="setup", ok=True), hooks
                )

            self._import_artifacts(descriptor, changes, rehoming)
            # A fresh install starts at version 1 and walks every upgrade step
            changes = self._run_upgrades(descriptor, changes, 1, hooks)
            self._rehome_planned(changes, rehoming)

            if not unlocked:
                record = self._track(descriptor, changes, origin)
                planned = lock.copy()
                planned.put(name, record)
                changes.write(lock.path, planned.render())

        changes.note(f'"{name}" (version: {descriptor.version}) has been successfully installed.')
        log.info(
            "lifecycle.install_planned",
            component=name,
            version=descriptor.version,
            files=len(changes.tagged(IMPORTED)),
            unlocked=unlocked,
        )
        outcome = self._apply(changes, f"Kindling: install {name}", yes)
        if record is not None and outcome != ApplyOutcome.ABORTED:
            lock.put(name, record)
        return OperationResult(name, outcome, changes, hooks, [d.name for d in dependencies])

    # ── Update ───────────────────────────────────────────────────────

    def update(
        self,
        lock: LockStore,
        name: str,
        origin: Origin | None = None,
        *,
        yes: bool = False,
    ) -> OperationResult:
        """Re-import a locked component from its stored origin or a new one."""
        current = lock.get(name)
        if current is None:
            raise ComponentNotInstalledError(name)
        self.verify_integrity(name, current)
        self._guard_worktree()

        origin = origin or current.origin
        changes = ChangeSet(self.host.root)
        for path in current.files:
            changes.tag(MANAGED, path)
        hooks: list[HookOutcome] = []

        with resolve_source(name, origin, self.host.root) as component_root:
            descriptor = load_manifest(component_root, expected_name=name)
            dependencies = self._install_dependencies(descriptor, yes)
            rehoming = self._rehoming(descriptor)

            self._import_artifacts(descriptor, changes, rehoming)
            self._schedule_deletions(changes)
            changes = self._run_upgrades(descriptor, changes, current.version, hooks)
            self._rehome_planned(changes, rehoming)

            record = self._track(descriptor, changes, origin)
            planned = lock.copy()
            planned.put(name, record)
            changes.write(lock.path, planned.render())

        changes.note(
            f'"{name}" has been updated from version {current.version} to {descriptor.version}.'
        )
        log.info(
            "lifecycle.update_planned",
            component=name,
            from_version=current.version,
            to_version=descriptor.version,
            deletions=len(changes.tagged(DELETIONS)),
        )
        outcome = self._apply(changes, f"Kindling: update {name}", yes)
        if outcome != ApplyOutcome.ABORTED:
            lock.put(name, record)
        return OperationResult(name, outcome, changes, hooks, [d.name for d in dependencies])

    # ── Unlock ───────────────────────────────────────────────────────

    def unlock(self, lock: LockStore, name: str, *, yes: bool = False) -> OperationResult:
        """Stop tracking a component; its files stay as ordinary project code."""
        record = lock.get(name)
        if record is None:
            raise ComponentNotInstalledError(name)

        changes = ChangeSet(self.host.root)
        for path in sorted(record.files):
            content = changes.read(path)
            if content is None:
                changes.warn(f"{path} no longer exists.")
                continue
            try:
                module = parse(content, path)
            except SyntaxTreeError:
                changes.warn(f"{path} is not valid Python; its marker was left in place.")
                continue
            changes.write(path, strip_marker(module).render())

        planned = lock.copy()
        planned.remove(name)
        changes.write(lock.path, planned.render())
        changes.note(f'"{name}" has been unlocked and will no longer be synced.')

        outcome = self._apply(changes, f"Kindling: unlock {name}", yes)
        if outcome != ApplyOutcome.ABORTED:
            lock.remove(name)
        log.info("lifecycle.unlocked", component=name, outcome=outcome.value)
        return OperationResult(name, outcome, changes)

    # ── Uninstall ────────────────────────────────────────────────────

    def uninstall(self, lock: LockStore, name: str, *, yes: bool = False) -> OperationResult:
        """Delete a component's tracked files and its lock record."""
        record = lock.get(name)
        if record is None:
            raise ComponentNotInstalledError(name)
        self.verify_integrity(name, record)

        changes = ChangeSet(self.host.root)
        for path in sorted(record.files):
            changes.tag(MANAGED, path)
            changes.tag(DELETIONS, path)
            changes.delete(path)
        for warning in UNINSTALL_WARNINGS:
            changes.warn(warning)

        planned = lock.copy()
        planned.remove(name)
        changes.write(lock.path, planned.render())
        changes.note(f'"{name}" has been uninstalled.')

        outcome = self._apply(changes, f"Kindling: uninstall {name}", yes)
        if outcome != ApplyOutcome.ABORTED:
            lock.remove(name)
        log.info("lifecycle.uninstalled", component=name, outcome=outcome.value)
        return OperationResult(name, outcome, changes)

    # ── Planning steps ───────────────────────────────────────────────

    def _guard_worktree(self) -> None:
        if self.host.settings.require_clean_worktree:
            ensure_clean_worktree(self.host.root)

    def _install_dependencies(self, descriptor: ComponentDescriptor, yes: bool):
        return install_dependencies(
            descriptor.name,
            descriptor.root,
            self.host.root,
            self.installer,
            yes=yes,
            confirm=self.confirm,
            console=self.console,
        )

    def _rehoming(self, descriptor: ComponentDescriptor) -> Rehoming:
        return Rehoming(
            old_prefix=descriptor.namespace,
            new_prefix=self.host.package,
            old_name=descriptor.name,
            new_name=self.host.name,
            match=self.host.settings.prefix_match,
        )

    def _load_artifact(
        self,
        descriptor: ComponentDescriptor,
        relative_path: str,
        category: FileCategory,
        rehoming: Rehoming,
    ) -> Artifact:
        source = (descriptor.root / relative_path).read_text(encoding="utf-8")
        kind, namespace = classify(relative_path)
        return Artifact(
            relative_path=relative_path,
            kind=kind,
            category=category,
            namespace=rehoming.rehome_path(namespace),
            tree=parse(source, relative_path),
        )

    def _import_artifacts(
        self, descriptor: ComponentDescriptor, changes: ChangeSet, rehoming: Rehoming
    ) -> None:
        """Plan writes for required, overwritable and optional artifacts.

        The host package's own ``__init__.py`` is never claimed by a
        component: a component's top-level ``__init__.py`` is imported like an
        optional file, only when the host does not have one yet.

        Raises:
            ConflictError: If a tracked artifact's destination already exists
                and is not managed by this component.
        """
        expanded = expand_globs(descriptor.root, descriptor.files)
        overwritable = set(expanded[FileCategory.OVERWRITABLE])
        always = list(expanded[FileCategory.REQUIRED])
        always += [p for p in expanded[FileCategory.OVERWRITABLE] if p not in always]
        managed = set(changes.tagged(MANAGED))
        optional: list[Artifact] = []

        for relative_path in always:
            category = (
                FileCategory.OVERWRITABLE if relative_path in overwritable else FileCategory.REQUIRED
            )
            artifact = self._load_artifact(descriptor, relative_path, category, rehoming)
            if self.host.is_package_root(artifact.namespace):
                artifact.category = FileCategory.OPTIONAL
                optional.append(artifact)
                continue
            destination = self.host.destination(artifact.namespace, artifact.kind)
            if artifact.trackable and changes.exists(destination) and destination not in managed:
                raise ConflictError(destination)
            changes.write(destination, artifact.tree.render())
            changes.tag(IMPORTED, destination)
            if not artifact.trackable:
                changes.tag(UNTRACKED, destination)

        optional += [
            self._load_artifact(descriptor, p, FileCategory.OPTIONAL, rehoming)
            for p in expanded[FileCategory.OPTIONAL]
            if p not in always
        ]
        for artifact in optional:
            destination = self.host.destination(artifact.namespace, artifact.kind)
            if changes.exists(destination):
                log.debug("lifecycle.optional_skipped", path=destination)
                if destination in managed:
                    # No longer tracked but still shipped: unmark it, keep it off the deletion list
                    current = parse(changes.read(destination), destination)
                    changes.write(destination, strip_marker(current).render())
                    changes.tag(IMPORTED, destination)
                    changes.tag(UNTRACKED, destination)
                continue
            changes.write(destination, artifact.tree.render())
            changes.tag(IMPORTED, destination)
            changes.tag(UNTRACKED, destination)

    def _schedule_deletions(self, changes: ChangeSet) -> None:
        imported = set(changes.tagged(IMPORTED))
        for path in changes.tagged(MANAGED):
            if path in imported:
                continue
            changes.warn(f"{path} will be deleted.")
            changes.tag(DELETIONS, path)
            changes.delete(path)

    def _run_upgrades(
        self,
        descriptor: ComponentDescriptor,
        changes: ChangeSet,
        current_version: int,
        hooks: list[HookOutcome],
    ) -> ChangeSet:
        """Run one upgrade hook per version step up to the descriptor's version."""
        for to_version in range(current_version + 1, descriptor.version + 1):
            from_version = to_version - 1
            hook = descriptor.upgrade_hook(from_version, to_version)
            if hook is None:
                continue
            outcome = HookOutcome(
                kind="upgrade", ok=True, from_version=from_version, to_version=to_version
            )
            changes = self._run_hook(hook, changes, outcome, hooks)
        return changes

    def _run_hook(
        self,
        hook: Callable[[ChangeSet], ChangeSet],
        changes: ChangeSet,
        outcome: HookOutcome,
        hooks: list[HookOutcome],
    ) -> ChangeSet:
        """Run a hook against a snapshot; keep its result only if it succeeds."""
        snapshot = changes.copy()
        try:
            result = hook(snapshot)
            if result is None:
                result = snapshot
            if not isinstance(result, ChangeSet):
                raise TypeError(f"hook returned {type(result).__name__}, expected a ChangeSet")
        except Exception as e:
            outcome.ok = False
            outcome.error = f"{type(e).__name__}: {e}"
            hooks.append(outcome)
            log.error(
                "lifecycle.hook_failed",
                hook=outcome.label,
                policy=self.hook_policy.value,
                exc_info=True,
            )
            if self.hook_policy == HookPolicy.ABORT:
                raise HookError(f"The {outcome.label} hook failed: {outcome.error}") from e
            changes.warn(f"The {outcome.label} hook failed and was skipped: {outcome.error}")
            return changes

        hooks.append(outcome)
        log.info("lifecycle.hook_ran", hook=outcome.label)
        return result

    def _rehome_planned(self, changes: ChangeSet, rehoming: Rehoming) -> None:
        """Rehome every Python file in the plan, including files hooks wrote."""
        for path, content in changes.planned_writes.items():
            if not path.endswith(".py"):
                continue
            rehomed = rehoming.apply(parse(content, path)).render()
            if rehomed != content:
                changes.write(path, rehomed)

    def _track(
        self, descriptor: ComponentDescriptor, changes: ChangeSet, origin: Origin
    ) -> LockRecord:
        """Hash and mark every tracked import; return the new lock record."""
        untracked = set(changes.tagged(UNTRACKED))
        files: dict[str, str] = {}
        for path in changes.tagged(IMPORTED):
            if path in untracked:
                continue
            module = parse(changes.read(path), path)
            content_hash = compute_hash(module)
            changes.write(path, embed_marker(module, content_hash, descriptor.name).render())
            files[path] = content_hash

        return LockRecord(
            origin=origin,
            version=descriptor.version,
            files=files,
            aggregate_hash=aggregate_hash(files),
        )

    def _apply(self, changes: ChangeSet, title: str, yes: bool) -> ApplyOutcome:
        return apply_changes(
            changes, title=title, yes=yes, confirm=self.confirm, console=self.console
        )
