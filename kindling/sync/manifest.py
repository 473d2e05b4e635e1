"""Manifest loader — read and validate a component's kindling.yaml.

A manifest looks like::

    name: comp
    version: 2
    namespace: comp
    files:
      required: ["comp/**/*.py"]
      optional: ["tests/support/comp/*.py"]
      overwritable: ["comp/settings.py"]
    hooks: hooks.py

Validation fails fast: a malformed manifest never leads to a partial import.
"""

from __future__ import annotations

import importlib.util
import re
from pathlib import Path
from typing import Any

import structlog
import yaml

from kindling.errors import ManifestError
from kindling.models.component import ComponentDescriptor, FileGlobs

log = structlog.get_logger("kindling.manifest")

MANIFEST_FILE = "kindling.yaml"

REQUIRED_KEYS = {"name", "version"}
ALLOWED_KEYS = {"name", "version", "namespace", "files", "manifest", "hooks"}
FILE_CATEGORIES = ("required", "optional", "overwritable")

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def load_manifest(component_root: Path, expected_name: str | None = None) -> ComponentDescriptor:
    """Load and validate the manifest at ``component_root``.

    Args:
        component_root: Directory containing ``kindling.yaml``.
        expected_name: The name the caller asked for; a different declared
            name is rejected.

    Raises:
        ManifestError: On any structural problem or name mismatch.
    """
    path = component_root / MANIFEST_FILE
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ManifestError(f"Could not read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML in {path}: {e}") from e

    issues = validate_manifest(data)
    if issues:
        raise ManifestError(f"Malformed {path}:\n  " + "\n  ".join(issues))

    name = data["name"]
    if expected_name is not None and name != expected_name:
        raise ManifestError(f'The provided component is not "{expected_name}" (found "{name}")')

    files = data.get("files", data.get("manifest")) or {}
    descriptor_hooks = _load_hooks(component_root, name, data.get("hooks"))

    descriptor = ComponentDescriptor(
        name=name,
        version=data["version"],
        namespace=data.get("namespace", name),
        files=FileGlobs(**{c: tuple(files.get(c) or ()) for c in FILE_CATEGORIES}),
        root=component_root,
        **descriptor_hooks,
    )
    log.debug("manifest.loaded", component=name, version=descriptor.version)
    return descriptor


def validate_manifest(data: Any) -> list[str]:
    """Return a list of problems with a parsed manifest. Empty list means valid."""
    if not isinstance(data, dict):
        return ["manifest must be a mapping"]

    issues: list[str] = []
    for key in sorted(REQUIRED_KEYS - set(data)):
        issues.append(f"missing required key '{key}'")
    for key in sorted(set(data) - ALLOWED_KEYS):
        issues.append(f"unknown key '{key}'")
    if "files" in data and "manifest" in data:
        issues.append("'files' and 'manifest' are aliases; use only one")
    if "files" not in data and "manifest" not in data:
        issues.append("missing required key 'files'")

    name = data.get("name")
    if "name" in data and not (isinstance(name, str) and _IDENTIFIER_RE.match(name)):
        issues.append(f"'name' must be an identifier, got {name!r}")

    version = data.get("version")
    if "version" in data and (
        isinstance(version, bool) or not isinstance(version, int) or version < 1
    ):
        issues.append(f"'version' must be a positive integer, got {version!r}")

    namespace = data.get("namespace")
    if "namespace" in data and not (
        isinstance(namespace, str) and _IDENTIFIER_RE.match(namespace)
    ):
        issues.append(f"'namespace' must be an identifier, got {namespace!r}")

    hooks = data.get("hooks")
    if "hooks" in data and not (isinstance(hooks, str) and hooks.endswith(".py")):
        issues.append(f"'hooks' must be the path of a .py file, got {hooks!r}")

    files = data.get("files", data.get("manifest"))
    if files is not None:
        if not isinstance(files, dict):
            issues.append("'files' must be a mapping")
        else:
            for key in sorted(set(files) - set(FILE_CATEGORIES)):
                issues.append(f"unknown file category '{key}'")
            for category in FILE_CATEGORIES:
                globs = files.get(category)
                if globs is None:
                    continue
                if not isinstance(globs, list) or not all(isinstance(g, str) for g in globs):
                    issues.append(f"'files.{category}' must be a list of glob strings")

    return issues


def _load_hooks(component_root: Path, name: str, hooks_file: str | None) -> dict[str, Any]:
    if not hooks_file:
        return {}

    path = component_root / hooks_file
    if not path.is_file():
        raise ManifestError(f"Hooks file {hooks_file} not found in {component_root}")

    spec = importlib.util.spec_from_file_location(f"kindling_hooks_{name}", path)
    if spec is None or spec.loader is None:
        raise ManifestError(f"Cannot load hooks from {path}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise ManifestError(f"Failed to load hooks from {path}: {e}") from e

    upgrades = getattr(module, "UPGRADES", {}) or {}
    if not isinstance(upgrades, dict) or not all(
        isinstance(k, tuple) and len(k) == 2 and callable(v) for k, v in upgrades.items()
    ):
        raise ManifestError(f"{path}: UPGRADES must map (from, to) tuples to callables")

    return {
        "setup": _callable_or_none(module, "setup", path),
        "upgrades": dict(upgrades),
        "generic_upgrade": _callable_or_none(module, "upgrade", path),
    }


def _callable_or_none(module: Any, attr: str, path: Path):
    hook = getattr(module, attr, None)
    if hook is not None and not callable(hook):
        raise ManifestError(f"{path}: '{attr}' must be callable")
    return hook
