"""Glob expansion — turn manifest globs into component-relative file paths."""

from __future__ import annotations

from pathlib import Path

import structlog

from kindling.models.component import FileCategory, FileGlobs

log = structlog.get_logger("kindling.globs")


def expand_globs(component_root: Path, files: FileGlobs) -> dict[FileCategory, list[str]]:
    """Expand each category's globs against the component root.

    Returns POSIX paths relative to the root. Only regular ``.py`` files are
    kept; a path matched twice within a category is listed once. Ordering is
    whatever the filesystem yields.
    """
    expanded: dict[FileCategory, list[str]] = {}
    for category in FileCategory:
        paths: list[str] = []
        for pattern in getattr(files, category.value):
            for hit in component_root.glob(pattern):
                if not hit.is_file():
                    continue
                relative = hit.relative_to(component_root).as_posix()
                if hit.suffix != ".py":
                    log.warning("globs.non_python_skipped", path=relative, pattern=pattern)
                    continue
                if relative not in paths:
                    paths.append(relative)
        expanded[category] = paths
    return expanded
