"""Source resolution — turn a component origin into a readable local directory."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import structlog

from kindling.errors import ResolutionError
from kindling.models.component import LocalOrigin, Origin
from kindling.sync.manifest import MANIFEST_FILE
from kindling.utils.git_ops import clone_component

log = structlog.get_logger("kindling.resolver")


@contextmanager
def resolve_source(component_name: str, origin: Origin, base_dir: Path) -> Iterator[Path]:
    """Yield the root directory of a component.

    Local origins are used in place (relative paths resolve against
    ``base_dir``). Remote origins are cloned to a temporary directory that is
    removed when the context exits, whether or not an error occurred.

    Raises:
        ResolutionError: If the directory is missing, is not a component,
            or cannot be fetched.
    """
    if isinstance(origin, LocalOrigin):
        path = Path(origin.path).expanduser()
        if not path.is_absolute():
            path = base_dir / path
        yield ensure_component_dir(path)
        return

    with clone_component(component_name, origin) as handle:
        yield ensure_component_dir(handle.local_path)


def ensure_component_dir(path: Path) -> Path:
    if not path.is_dir():
        raise ResolutionError(f"directory `{path}` doesn't exist")
    if not (path / MANIFEST_FILE).is_file():
        raise ResolutionError(f"{path} is not a Kindling component ({MANIFEST_FILE} missing), aborting.")
    log.debug("resolver.component_found", path=str(path))
    return path
