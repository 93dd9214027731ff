"""In-memory workspace snapshot that tools read and write instead of the disk."""
from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from agent_orchestrator.core.utils.constants import DEFAULT_IGNORED_DIRS
from agent_orchestrator.core.utils.logger import get_logger

from .types import FileChange, FileChangeKind

LOGGER = get_logger(__name__)


def normalize_path(path: str) -> str:
    """Return the canonical snapshot key for ``path`` ('' denotes the root)."""

    raw = (path or "").strip().replace("\\", "/")
    if raw.startswith("/"):
        raise ValueError(f"Path '{path}' escapes workspace root")
    parts = [part for part in PurePosixPath(raw).parts if part not in ("", ".")]
    if any(part == ".." for part in parts):
        raise ValueError(f"Path '{path}' escapes workspace root")
    return "/".join(parts)


class WorkspaceSnapshot:
    """Passive ``path -> content`` map supplied by the host."""

    def __init__(self, files: Optional[Mapping[str, str]] = None) -> None:
        self._files: Dict[str, str] = {}
        for path, content in (files or {}).items():
            key = normalize_path(path)
            if not key:
                raise ValueError("Workspace files need a non-empty path")
            self._files[key] = content

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.get(path) is not None

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._files))

    def get(self, path: str) -> Optional[str]:
        return self._files.get(normalize_path(path))

    def read(self, path: str) -> str:
        content = self.get(path)
        if content is None:
            raise FileNotFoundError(f"File '{path}' not found in workspace")
        return content

    def paths(self) -> List[str]:
        return sorted(self._files)

    def apply(self, changes: Iterable[FileChange]) -> None:
        """Apply committed changes to the snapshot."""
        for change in changes:
            key = normalize_path(change.path)
            if change.kind is FileChangeKind.DELETE:
                self._files.pop(key, None)
            else:
                self._files[key] = change.new_content or ""

    def stage(self) -> "StagedWorkspace":
        return StagedWorkspace(self)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._files)


class StagedWorkspace:
    """Per-call view: reads fall through to the snapshot, writes are only recorded.

    The owner decides whether the recorded changes are committed, so a handler
    that finishes after its session ended leaves no trace in the snapshot.
    """

    def __init__(self, base: WorkspaceSnapshot) -> None:
        self._base = base
        self._pending: Dict[str, Optional[str]] = {}
        self._changes: List[FileChange] = []

    @property
    def changes(self) -> List[FileChange]:
        return list(self._changes)

    def get(self, path: str) -> Optional[str]:
        key = normalize_path(path)
        if key in self._pending:
            return self._pending[key]
        return self._base.get(key)

    def exists(self, path: str) -> bool:
        return self.get(path) is not None

    def read(self, path: str) -> str:
        content = self.get(path)
        if content is None:
            raise FileNotFoundError(f"File '{path}' not found in workspace")
        return content

    def paths(self) -> List[str]:
        keys = set(self._base.paths())
        for key, content in self._pending.items():
            if content is None:
                keys.discard(key)
            else:
                keys.add(key)
        return sorted(keys)

    def write(self, path: str, content: str) -> FileChange:
        key = normalize_path(path)
        if not key:
            raise ValueError("A file path is required")
        if self._is_directory(key):
            raise ValueError(f"Path '{path}' is a directory")
        previous = self.get(key)
        kind = FileChangeKind.CREATE if previous is None else FileChangeKind.MODIFY
        change = FileChange(kind=kind, path=key, new_content=content, old_content=previous)
        self._pending[key] = content
        self._changes.append(change)
        return change

    def delete(self, path: str) -> FileChange:
        key = normalize_path(path)
        previous = self.get(key)
        if previous is None:
            raise FileNotFoundError(f"File '{path}' not found in workspace")
        change = FileChange(kind=FileChangeKind.DELETE, path=key, old_content=previous)
        self._pending[key] = None
        self._changes.append(change)
        return change

    def list_directory(self, path: str = "", *, recursive: bool = False) -> List[str]:
        """Return entries under ``path``; directories carry a trailing slash."""

        key = normalize_path(path)
        if key and self.exists(key):
            raise ValueError(f"Path '{path}' is a file, not a directory")
        prefix = f"{key}/" if key else ""
        entries: set[str] = set()
        for candidate in self.paths():
            if not candidate.startswith(prefix):
                continue
            remainder = candidate[len(prefix) :]
            if recursive:
                entries.add(remainder)
                parts = remainder.split("/")
                for depth in range(1, len(parts)):
                    entries.add("/".join(parts[:depth]) + "/")
            else:
                head, sep, _ = remainder.partition("/")
                entries.add(f"{head}/" if sep else head)
        if key and not entries:
            raise FileNotFoundError(f"Directory '{path}' not found in workspace")
        return sorted(entries)

    def _is_directory(self, key: str) -> bool:
        prefix = f"{key}/"
        return any(candidate.startswith(prefix) for candidate in self.paths())


# Host-side helpers --------------------------------------------------------


def load_workspace(root: Path, *, ignored_dirs: Iterable[str] = DEFAULT_IGNORED_DIRS) -> WorkspaceSnapshot:
    """Read the text files under ``root`` into a snapshot (host responsibility)."""

    ignored = set(ignored_dirs)
    files: Dict[str, str] = {}
    for candidate in sorted(root.rglob("*")):
        if not candidate.is_file():
            continue
        relative = candidate.relative_to(root)
        if any(part in ignored for part in relative.parts[:-1]):
            continue
        try:
            files[relative.as_posix()] = candidate.read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError) as exc:
            LOGGER.debug("Skipping unreadable workspace file %s: %s", relative, exc)
    return WorkspaceSnapshot(files)


def write_changes(root: Path, changes: Iterable[FileChange]) -> int:
    """Persist accumulated changes below ``root``; returns the number applied."""

    applied = 0
    for change in changes:
        target = root / normalize_path(change.path)
        if change.kind is FileChangeKind.DELETE:
            if target.exists():
                target.unlink()
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(change.new_content or "", encoding="utf-8")
        applied += 1
    return applied


__all__ = [
    "WorkspaceSnapshot",
    "StagedWorkspace",
    "normalize_path",
    "load_workspace",
    "write_changes",
]
