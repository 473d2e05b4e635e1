"""Dependency installation — the first, independently confirmed sub-plan.

A component's non-optional ``[project].dependencies`` that the host does not
declare yet are installed with pip before any code is imported, since the
component's hooks may need them. Distributions can register installer hooks
that run right after they are installed and plan their own project changes.
"""

from __future__ import annotations

import re
import subprocess
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol

import structlog

from kindling.errors import DependencyInstallError
from kindling.sync.changeset import ApplyOutcome, ChangeSet, apply_changes

log = structlog.get_logger("kindling.dependencies")

# PEP 508 simplified: name followed by optional extras and version specifiers
_PEP508_RE = re.compile(r"^([A-Za-z0-9]([A-Za-z0-9._-]*[A-Za-z0-9])?)")

SELF_DISTRIBUTION = "kindling"

InstallerHook = Callable[[ChangeSet], ChangeSet]

INSTALLER_HOOKS: dict[str, InstallerHook] = {}


def register_installer_hook(distribution: str) -> Callable[[InstallerHook], InstallerHook]:
    """Register a hook to run after ``distribution`` is installed by Kindling."""

    def decorator(hook: InstallerHook) -> InstallerHook:
        INSTALLER_HOOKS[normalize_name(distribution)] = hook
        return hook

    return decorator


class DependencyInstaller(Protocol):
    def install(self, requirements: list[str]) -> None: ...


class PipInstaller:
    """Installs requirements into the running interpreter's environment."""

    def __init__(self, python: str | None = None):
        self.python = python or sys.executable

    def install(self, requirements: list[str]) -> None:
        cmd = [self.python, "-m", "pip", "install", *requirements]
        log.info("dependencies.pip_install", requirements=requirements)
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise DependencyInstallError(f"Could not run pip: {e}") from e
        if proc.returncode != 0:
            raise DependencyInstallError(
                f"pip install failed (exit {proc.returncode}):\n{proc.stderr.strip()}"
            )


@dataclass
class Dependency:
    name: str
    requirement: str


def normalize_name(name: str) -> str:
    return re.sub(r"[-_.]+", "-", name).lower()


def parse_dependencies(pyproject: Path) -> list[Dependency]:
    """Read ``[project].dependencies`` from a pyproject.toml; missing file means none."""
    if not pyproject.is_file():
        return []
    try:
        with open(pyproject, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise DependencyInstallError(f"Invalid {pyproject}: {e}") from e

    deps: list[Dependency] = []
    for raw in data.get("project", {}).get("dependencies", []):
        line = raw.strip()
        match = _PEP508_RE.match(line)
        if not match:
            continue
        deps.append(Dependency(name=normalize_name(match.group(1)), requirement=line))
    return deps


def missing_dependencies(component_root: Path, host_root: Path) -> list[Dependency]:
    """Component dependencies the host does not declare, excluding Kindling itself."""
    declared = {d.name for d in parse_dependencies(host_root / "pyproject.toml")}
    return [
        dep
        for dep in parse_dependencies(component_root / "pyproject.toml")
        if dep.name != SELF_DISTRIBUTION and dep.name not in declared
    ]


def install_dependencies(
    component_name: str,
    component_root: Path,
    host_root: Path,
    installer: DependencyInstaller,
    *,
    yes: bool = False,
    confirm: Callable[[str], bool] | None = None,
    console=None,
) -> list[Dependency]:
    """Run the dependency sub-plan: confirm, install, then run installer hooks.

    Returns the dependencies that were installed (empty when nothing was missing).

    Raises:
        DependencyInstallError: If the sub-plan is declined or installation fails.
    """
    missing = missing_dependencies(component_root, host_root)
    if not missing:
        return []

    requirements = [d.requirement for d in missing]
    if console is not None:
        console.print(
            f"\n[bold]{component_name}[/] needs: " + ", ".join(requirements)
        )
    if not yes and not (confirm and confirm("Install these dependencies?")):
        raise DependencyInstallError(
            f"Installation of {component_name}'s dependencies was declined, aborting."
        )

    installer.install(requirements)

    changes = ChangeSet(host_root)
    for dep in missing:
        hook = INSTALLER_HOOKS.get(dep.name)
        if hook is None:
            continue
        log.info("dependencies.installer_hook", distribution=dep.name)
        try:
            changes = hook(changes)
        except Exception as e:
            log.error("dependencies.installer_hook_failed", distribution=dep.name, exc_info=True)
            raise DependencyInstallError(
                f"The installer for {dep.name} failed: {type(e).__name__}: {e}"
            ) from e
        if not isinstance(changes, ChangeSet):
            raise DependencyInstallError(
                f"The installer for {dep.name} returned {type(changes).__name__}, expected a ChangeSet"
            )

    outcome = apply_changes(
        changes,
        title=f"Installers for {component_name}'s dependencies",
        yes=yes,
        confirm=confirm,
        console=console,
    )
    if outcome == ApplyOutcome.ABORTED:
        raise DependencyInstallError("Dependency installer changes were declined, aborting.")
    return missing
