"""Tests for manifest glob expansion."""

import tempfile
from pathlib import Path

from kindling.models.component import FileCategory, FileGlobs
from kindling.sync.globs import expand_globs


def _component(root: Path) -> Path:
    (root / "comp" / "sub").mkdir(parents=True)
    (root / "comp" / "__init__.py").write_text("")
    (root / "comp" / "core.py").write_text("x = 1\n")
    (root / "comp" / "sub" / "deep.py").write_text("y = 2\n")
    (root / "comp" / "notes.md").write_text("# notes\n")
    (root / "tests").mkdir()
    (root / "tests" / "test_core.py").write_text("def test(): pass\n")
    return root


def test_expands_each_category():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = _component(Path(tmpdir))
        expanded = expand_globs(
            root,
            FileGlobs(required=("comp/*.py",), optional=("tests/*.py",)),
        )
        assert sorted(expanded[FileCategory.REQUIRED]) == ["comp/__init__.py", "comp/core.py"]
        assert expanded[FileCategory.OPTIONAL] == ["tests/test_core.py"]
        assert expanded[FileCategory.OVERWRITABLE] == []


def test_recursive_glob():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = _component(Path(tmpdir))
        expanded = expand_globs(root, FileGlobs(required=("comp/**/*.py",)))
        assert "comp/sub/deep.py" in expanded[FileCategory.REQUIRED]


def test_non_python_files_are_skipped():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = _component(Path(tmpdir))
        expanded = expand_globs(root, FileGlobs(required=("comp/*",)))
        assert "comp/notes.md" not in expanded[FileCategory.REQUIRED]
        assert "comp/sub" not in expanded[FileCategory.REQUIRED]


def test_overlapping_globs_listed_once():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = _component(Path(tmpdir))
        expanded = expand_globs(root, FileGlobs(required=("comp/*.py", "comp/core.py")))
        assert expanded[FileCategory.REQUIRED].count("comp/core.py") == 1


def test_no_matches_is_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = _component(Path(tmpdir))
        expanded = expand_globs(root, FileGlobs(required=("nothing/*.py",)))
        assert expanded[FileCategory.REQUIRED] == []
