"""Tests for host project configuration and artifact placement."""

import tempfile
from pathlib import Path

import pytest

from kindling.errors import KindlingError
from kindling.models.component import ArtifactKind
from kindling.project import HookPolicy, HostProject, PrefixMatch, classify


def _host(root: Path, extra: str = "") -> Path:
    (root / "pyproject.toml").write_text(f'[project]\nname = "host-app"\n{extra}')
    return root


# --- Classification ---


def test_classify_library_paths():
    assert classify("comp/core.py") == (ArtifactKind.LIBRARY, ("comp", "core"))
    assert classify("src/comp/core.py") == (ArtifactKind.LIBRARY, ("comp", "core"))
    assert classify("comp.py") == (ArtifactKind.LIBRARY, ("comp",))


def test_classify_tests_and_support():
    assert classify("tests/comp/test_core.py") == (ArtifactKind.TEST, ("comp", "test_core"))
    assert classify("tests/support/comp/factories.py") == (
        ArtifactKind.TEST_SUPPORT,
        ("comp", "factories"),
    )


# --- Loading ---


def test_load_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        host = HostProject.load(_host(Path(tmpdir)))
        assert host.name == "host-app"
        assert host.package == "host_app"
        assert host.source_root == "."
        assert host.tests_root == "tests"
        assert host.lock_path == "kindling.lock.yaml"
        assert host.settings.prefix_match == PrefixMatch.SEGMENT
        assert host.settings.on_hook_error == HookPolicy.ABORT
        assert host.settings.require_clean_worktree


def test_src_layout_detected():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = _host(Path(tmpdir))
        (root / "src" / "host_app").mkdir(parents=True)
        assert HostProject.load(root).source_root == "src"


def test_tool_settings_override_defaults():
    extra = (
        "\n[tool.kindling]\n"
        'package = "app"\n'
        'lock-file = "components.lock.yaml"\n'
        'prefix-match = "substring"\n'
        'on-hook-error = "continue"\n'
        "require-clean-worktree = false\n"
    )
    with tempfile.TemporaryDirectory() as tmpdir:
        host = HostProject.load(_host(Path(tmpdir), extra))
        assert host.package == "app"
        assert host.lock_path == "components.lock.yaml"
        assert host.settings.prefix_match == PrefixMatch.SUBSTRING
        assert host.settings.on_hook_error == HookPolicy.CONTINUE
        assert not host.settings.require_clean_worktree


def test_unknown_setting_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = _host(Path(tmpdir), '\n[tool.kindling]\nlockfile = "x"\n')
        with pytest.raises(KindlingError, match="lockfile"):
            HostProject.load(root)


def test_invalid_setting_value_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = _host(Path(tmpdir), '\n[tool.kindling]\nprefix-match = "fuzzy"\n')
        with pytest.raises(KindlingError, match="Invalid"):
            HostProject.load(root)


def test_missing_pyproject_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(KindlingError, match="No pyproject.toml"):
            HostProject.load(tmpdir)


# --- Placement ---


def test_destination_by_kind():
    host = HostProject(root=Path("/x"), name="host_app", package="host_app", source_root="src")
    assert host.destination(("host_app", "core"), ArtifactKind.LIBRARY) == "src/host_app/core.py"
    assert host.destination(("host_app", "test_core"), ArtifactKind.TEST) == (
        "tests/host_app/test_core.py"
    )
    assert host.destination(("host_app", "factories"), ArtifactKind.TEST_SUPPORT) == (
        "tests/support/host_app/factories.py"
    )


def test_destination_at_project_root():
    host = HostProject(root=Path("/x"), name="host_app", package="host_app")
    assert host.destination(("host_app", "core"), ArtifactKind.LIBRARY) == "host_app/core.py"


def test_package_root_is_only_the_host_init():
    host = HostProject(root=Path("/x"), name="host_app", package="host_app")
    assert host.is_package_root(("host_app", "__init__"))
    assert not host.is_package_root(("host_app", "sub", "__init__"))
    assert not host.is_package_root(("other", "__init__"))
