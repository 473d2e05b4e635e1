"""Tests for change sets and applying them."""

import tempfile
from pathlib import Path

from rich.console import Console

from kindling.sync.changeset import ApplyOutcome, ChangeSet, apply_changes


def _quiet():
    return Console(quiet=True)


def test_read_prefers_planned_content():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "a.py").write_text("old\n")
        changes = ChangeSet(root)
        assert changes.read("a.py") == "old\n"
        changes.write("a.py", "new\n")
        assert changes.read("a.py") == "new\n"
        changes.delete("a.py")
        assert changes.read("a.py") is None
        assert not changes.exists("a.py")


def test_nothing_touches_disk_before_apply():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        changes = ChangeSet(root)
        changes.write("pkg/mod.py", "x = 1\n")
        assert not (root / "pkg" / "mod.py").exists()
        assert [c.action for c in changes.pending()] == ["create"]


def test_identical_writes_are_not_pending():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "a.py").write_text("same\n")
        changes = ChangeSet(root)
        changes.write("a.py", "same\n")
        changes.delete("missing.py")
        assert changes.is_empty


def test_copy_is_a_snapshot():
    with tempfile.TemporaryDirectory() as tmpdir:
        changes = ChangeSet(tmpdir)
        changes.tag("imported", "a.py")
        snapshot = changes.copy()
        snapshot.write("b.py", "b\n")
        snapshot.tag("imported", "b.py")
        snapshot.warn("careful")
        assert changes.planned_writes == {}
        assert changes.tagged("imported") == ["a.py"]
        assert changes.warnings == []


def test_apply_with_yes_writes_then_deletes():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "gone.py").write_text("bye\n")
        changes = ChangeSet(root)
        changes.write("pkg/new.py", "hi\n")
        changes.delete("gone.py")
        changes.note("done")

        outcome = apply_changes(changes, yes=True, console=_quiet())
        assert outcome == ApplyOutcome.CHANGES_MADE
        assert (root / "pkg" / "new.py").read_text() == "hi\n"
        assert not (root / "gone.py").exists()


def test_declined_confirmation_aborts():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        changes = ChangeSet(root)
        changes.write("a.py", "x\n")
        asked = []

        def confirm(message):
            asked.append(message)
            return False

        outcome = apply_changes(changes, confirm=confirm, console=_quiet())
        assert outcome == ApplyOutcome.ABORTED
        assert asked
        assert not (root / "a.py").exists()


def test_no_confirm_callback_is_a_dry_run():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        changes = ChangeSet(root)
        changes.write("a.py", "x\n")
        assert apply_changes(changes, console=_quiet()) == ApplyOutcome.ABORTED
        assert not (root / "a.py").exists()


def test_empty_plan_reports_no_changes():
    with tempfile.TemporaryDirectory() as tmpdir:
        changes = ChangeSet(tmpdir)
        assert apply_changes(changes, console=_quiet()) == ApplyOutcome.NO_CHANGES


def test_diff_shows_unified_diff():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "a.py").write_text("x = 1\n")
        changes = ChangeSet(root)
        changes.write("a.py", "x = 2\n")
        diff = changes.diff()
        assert "-x = 1" in diff
        assert "+x = 2" in diff
