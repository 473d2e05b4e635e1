"""Git operations — clone and check out component sources, inspect the host worktree."""

from __future__ import annotations

import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

import structlog
from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from kindling.errors import DirtyWorktreeError, ResolutionError
from kindling.models.component import RemoteOrigin

log = structlog.get_logger("kindling.git")


@dataclass
class CloneHandle:
    """A temporary clone of a component repository.

    Use as a context manager so the clone is removed on every exit path::

        with clone_component(name, origin) as handle:
            load(handle.local_path)
        # temp clone is deleted here
    """

    local_path: Path
    source_url: str

    def __enter__(self) -> "CloneHandle":
        return self

    def __exit__(self, *exc) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        if self.local_path.exists():
            shutil.rmtree(self.local_path, ignore_errors=True)
            log.debug("git.clone_removed", path=str(self.local_path))


def clone_component(component_name: str, origin: RemoteOrigin) -> CloneHandle:
    """Clone ``origin`` into a fresh temporary directory and check out its selector.

    The directory is removed before raising if cloning or checkout fails.

    Raises:
        ResolutionError: If git fails.
    """
    clone_dir = Path(tempfile.mkdtemp(prefix=f"kindling_{component_name}_"))
    handle = CloneHandle(local_path=clone_dir, source_url=origin.url)
    try:
        repo = Repo.clone_from(origin.url, clone_dir)
        selector = origin.selector
        if selector:
            kind, value = selector
            target = f"tags/{value}" if kind == "tag" else value
            repo.git.checkout(target)
    except GitCommandError as e:
        handle.cleanup()
        raise ResolutionError(f"Could not fetch {origin.describe()}: {e.stderr.strip() or e}") from e
    except BaseException:
        handle.cleanup()
        raise

    log.info("git.cloned", url=origin.url, selector=origin.selector, path=str(clone_dir))
    return handle


def ensure_clean_worktree(repo_path: Path) -> None:
    """Refuse to continue when the host repository has uncommitted changes.

    Hosts that are not git repositories are not checked.

    Raises:
        DirtyWorktreeError: If tracked or untracked changes exist.
    """
    try:
        repo = Repo(repo_path)
    except (InvalidGitRepositoryError, NoSuchPathError):
        log.debug("git.worktree_check_skipped", path=str(repo_path))
        return

    if repo.is_dirty(untracked_files=True):
        raise DirtyWorktreeError(
            "Please stage or stash your current Git changes before continuing."
        )
