"""Tests for source resolution and git operations."""

import tempfile
from pathlib import Path

import pytest
from git import Repo

from kindling.errors import DirtyWorktreeError, ResolutionError
from kindling.models.component import LocalOrigin, RemoteOrigin
from kindling.sync.resolver import resolve_source
from kindling.utils.git_ops import ensure_clean_worktree

MANIFEST = "name: comp\nversion: {version}\nfiles:\n  required: ['comp/*.py']\n"


def _commit(repo: Repo, root: Path, version: int, message: str) -> None:
    (root / "kindling.yaml").write_text(MANIFEST.format(version=version))
    (root / "comp").mkdir(exist_ok=True)
    (root / "comp" / "core.py").write_text(f"VERSION = {version}\n")
    repo.index.add(["kindling.yaml", "comp/core.py"])
    repo.index.commit(message)


def _remote(root: Path) -> Repo:
    """A git repo with v1 tagged, v2 on the default branch and v3 on a branch."""
    repo = Repo.init(root)
    _commit(repo, root, 1, "v1")
    repo.create_tag("v1")
    _commit(repo, root, 2, "v2")
    default = repo.active_branch
    feature = repo.create_head("feature")
    feature.checkout()
    _commit(repo, root, 3, "v3")
    default.checkout()
    return repo


# --- Local ---


def test_local_origin_resolves_relative_to_base():
    with tempfile.TemporaryDirectory() as tmpdir:
        base = Path(tmpdir)
        (base / "components" / "comp").mkdir(parents=True)
        (base / "components" / "comp" / "kindling.yaml").write_text(MANIFEST.format(version=1))
        with resolve_source("comp", LocalOrigin("components/comp"), base) as root:
            assert root == base / "components" / "comp"


def test_missing_local_directory_raises():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ResolutionError, match="doesn't exist"):
            with resolve_source("comp", LocalOrigin("nope"), Path(tmpdir)):
                pass


def test_directory_without_manifest_raises():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ResolutionError, match="not a Kindling component"):
            with resolve_source("comp", LocalOrigin(tmpdir), Path(tmpdir)):
                pass


# --- Remote ---


def test_remote_default_branch_and_cleanup():
    with tempfile.TemporaryDirectory() as tmpdir:
        remote = Path(tmpdir) / "remote"
        _remote(remote)
        with resolve_source("comp", RemoteOrigin(str(remote)), Path(tmpdir)) as root:
            clone = root
            assert (root / "comp" / "core.py").read_text() == "VERSION = 2\n"
            assert root.name.startswith("kindling_comp_")
        assert not clone.exists()


def test_remote_branch_checkout():
    with tempfile.TemporaryDirectory() as tmpdir:
        remote = Path(tmpdir) / "remote"
        _remote(remote)
        origin = RemoteOrigin(str(remote), branch="feature")
        with resolve_source("comp", origin, Path(tmpdir)) as root:
            assert (root / "comp" / "core.py").read_text() == "VERSION = 3\n"


def test_remote_tag_checkout():
    with tempfile.TemporaryDirectory() as tmpdir:
        remote = Path(tmpdir) / "remote"
        _remote(remote)
        origin = RemoteOrigin(str(remote), tag="v1")
        with resolve_source("comp", origin, Path(tmpdir)) as root:
            assert (root / "comp" / "core.py").read_text() == "VERSION = 1\n"


def test_clone_removed_when_body_raises():
    with tempfile.TemporaryDirectory() as tmpdir:
        remote = Path(tmpdir) / "remote"
        _remote(remote)
        seen = []
        with pytest.raises(RuntimeError):
            with resolve_source("comp", RemoteOrigin(str(remote)), Path(tmpdir)) as root:
                seen.append(root)
                raise RuntimeError("boom")
        assert not seen[0].exists()


def test_unknown_selector_raises_resolution_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        remote = Path(tmpdir) / "remote"
        _remote(remote)
        with pytest.raises(ResolutionError):
            with resolve_source("comp", RemoteOrigin(str(remote), branch="nope"), Path(tmpdir)):
                pass


def test_unreachable_remote_raises_resolution_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ResolutionError, match="Could not fetch"):
            with resolve_source("comp", RemoteOrigin(str(Path(tmpdir) / "missing")), Path(tmpdir)):
                pass


# --- Worktree guard ---


def test_non_repository_is_not_checked():
    with tempfile.TemporaryDirectory() as tmpdir:
        ensure_clean_worktree(Path(tmpdir))


def test_dirty_worktree_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        repo = Repo.init(root)
        _commit(repo, root, 1, "init")
        ensure_clean_worktree(root)
        (root / "scratch.py").write_text("x = 1\n")
        with pytest.raises(DirtyWorktreeError):
            ensure_clean_worktree(root)
