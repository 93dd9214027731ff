from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from agent_orchestrator.tools.types import FileChange, FileChangeKind
from agent_orchestrator.tools.workspace import (
    WorkspaceSnapshot,
    load_workspace,
    normalize_path,
    write_changes,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("src/app.py", "src/app.py"),
        ("./src//app.py", "src/app.py"),
        ("src\\pkg\\mod.py", "src/pkg/mod.py"),
        (".", ""),
        ("", ""),
    ],
)
def test_normalize_path(raw: str, expected: str) -> None:
    assert normalize_path(raw) == expected


@pytest.mark.parametrize("raw", ["/etc/passwd", "../outside.py", "src/../../x"])
def test_normalize_path_rejects_escapes(raw: str) -> None:
    with pytest.raises(ValueError, match="escapes workspace root"):
        normalize_path(raw)


def test_staged_writes_stay_out_of_the_snapshot() -> None:
    snapshot = WorkspaceSnapshot({"a.txt": "one"})
    staged = snapshot.stage()

    staged.write("a.txt", "two")
    staged.write("b.txt", "new")
    staged.delete("a.txt")

    assert snapshot.read("a.txt") == "one"
    assert "b.txt" not in snapshot
    assert staged.paths() == ["b.txt"]
    assert not staged.exists("a.txt")
    assert [change.kind for change in staged.changes] == [
        FileChangeKind.MODIFY,
        FileChangeKind.CREATE,
        FileChangeKind.DELETE,
    ]

    snapshot.apply(staged.changes)

    assert snapshot.paths() == ["b.txt"]
    assert snapshot.read("b.txt") == "new"


def test_staged_write_rejects_directories() -> None:
    staged = WorkspaceSnapshot({"src/app.py": ""}).stage()

    with pytest.raises(ValueError, match="is a directory"):
        staged.write("src", "oops")


def test_snapshot_read_missing_file() -> None:
    with pytest.raises(FileNotFoundError):
        WorkspaceSnapshot().read("missing.txt")


def test_file_change_contents_follow_kind() -> None:
    with pytest.raises(ValidationError):
        FileChange(kind=FileChangeKind.DELETE, path="a.txt", new_content="x")
    with pytest.raises(ValidationError):
        FileChange(kind=FileChangeKind.CREATE, path="a.txt")


def test_load_and_write_changes_round_trip_on_disk(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("print('hi')\n", encoding="utf-8")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
    (tmp_path / "old.txt").write_text("bye\n", encoding="utf-8")

    snapshot = load_workspace(tmp_path)

    assert snapshot.paths() == ["old.txt", "src/app.py"]

    changes = [
        FileChange(kind=FileChangeKind.MODIFY, path="src/app.py", new_content="print('bye')\n", old_content="print('hi')\n"),
        FileChange(kind=FileChangeKind.CREATE, path="docs/notes.md", new_content="# Notes\n"),
        FileChange(kind=FileChangeKind.DELETE, path="old.txt", old_content="bye\n"),
    ]
    applied = write_changes(tmp_path, changes)

    assert applied == 3
    assert (tmp_path / "src" / "app.py").read_text(encoding="utf-8") == "print('bye')\n"
    assert (tmp_path / "docs" / "notes.md").read_text(encoding="utf-8") == "# Notes\n"
    assert not (tmp_path / "old.txt").exists()
