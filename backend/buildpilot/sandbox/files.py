"""
Sandbox File Store

Per-project file trees on disk, confined to <sandbox_dir>/projects/<id>/.
Blocking filesystem work runs in a worker thread so the event loop keeps
serving other projects.
"""
import asyncio
import logging
import os
import posixpath
import re
import shutil
import uuid
from pathlib import Path
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel

from ..config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


# Installed dependencies and tool caches, skipped at any depth
CACHE_DIRS = ("node_modules", ".next", ".git", ".turbo", ".cache")

# Top-level directories left out of the file tree and the archive
HIDDEN_PREFIXES = CACHE_DIRS + ("dist", "build")

# Leftovers of an interrupted commit: .<name>.<hex>.tmp or .bak
_STAGING_RE = re.compile(r"^\..+\.[0-9a-f]{8}\.(tmp|bak)$")

_PROJECT_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class SandboxPathError(ValueError):
    """A path or project id would escape the sandbox."""
    pass


class SandboxFile(BaseModel):
    """A file inside a project sandbox."""
    path: str
    content: str = ""


def safe_rel_path(path: str) -> str:
    """
    Normalize a user- or model-supplied path to a sandbox-relative one.

    Backslashes become slashes and inner ".." segments are resolved
    ("src/../index.html" is "index.html"). Whatever would still climb above
    the root is dropped, so absolute paths and traversal land inside it.
    """
    cleaned = (path or "").replace("\\", "/").strip().lstrip("/")
    if not cleaned:
        return ""
    resolved = posixpath.normpath(cleaned)
    parts = [seg for seg in resolved.split("/") if seg not in ("", ".", "..")]
    return "/".join(parts)


def normalize_files(files: Any, max_file_chars: Optional[int] = None) -> List[SandboxFile]:
    """
    Clean a generator's file list before commit.

    Drops entries without a usable path, strips traversal, skips oversized
    files and de-duplicates by path keeping the last occurrence (in the
    position of its first occurrence). Idempotent.
    """
    if not isinstance(files, (list, tuple)):
        return []

    by_path: dict[str, SandboxFile] = {}
    for item in files:
        if isinstance(item, SandboxFile):
            raw_path, content = item.path, item.content
        elif isinstance(item, dict):
            raw_path, content = item.get("path"), item.get("content")
        else:
            continue

        if not isinstance(raw_path, str):
            continue
        path = safe_rel_path(raw_path)
        if not path:
            continue
        if not isinstance(content, str):
            content = ""
        if max_file_chars is not None and len(content) > max_file_chars:
            logger.warning(f"Skipping oversized file {path} ({len(content)} chars)")
            continue

        by_path[path] = SandboxFile(path=path, content=content)

    return list(by_path.values())


def is_staging_name(name: str) -> bool:
    return bool(_STAGING_RE.match(name))


def is_hidden_path(path: str) -> bool:
    """Whether a path stays out of the file tree and the archive."""
    rel = safe_rel_path(path)
    if not rel:
        return True
    dirs = rel.split("/")[:-1]
    if not dirs:
        return False
    return dirs[0] in HIDDEN_PREFIXES or any(part in CACHE_DIRS for part in dirs)


def filter_visible_paths(paths: Iterable[str]) -> List[str]:
    """Drop dependency caches and top-level build output from a listing."""
    return [p for p in paths if not is_hidden_path(p)]


def _staging_path(target: Path, kind: str) -> Path:
    return target.with_name(f".{target.name}.{uuid.uuid4().hex[:8]}.{kind}")


def build_tree(paths: Iterable[str]) -> List[dict]:
    """
    Build a nested directory tree from flat relative paths.

    Directories sort before files, then by name.
    """
    root: List[dict] = []

    for raw in paths:
        rel = safe_rel_path(raw)
        if not rel:
            continue
        parts = rel.split("/")
        cursor = root
        accum = ""
        for i, part in enumerate(parts):
            accum = f"{accum}/{part}" if accum else part
            if i == len(parts) - 1:
                cursor.append({"type": "file", "name": part, "path": accum})
                continue
            node = next((n for n in cursor if n["type"] == "dir" and n["name"] == part), None)
            if node is None:
                node = {"type": "dir", "name": part, "path": accum, "children": []}
                cursor.append(node)
            cursor = node["children"]

    def _sort(nodes: List[dict]) -> None:
        nodes.sort(key=lambda n: (n["type"] != "dir", n["name"]))
        for n in nodes:
            if n["type"] == "dir":
                _sort(n["children"])

    _sort(root)
    return root


class SandboxFileStore:
    """
    Path-confined read/write/list over project file trees.

    Paths passed in are normalized with safe_rel_path; anything that still
    resolves outside the project root raises SandboxPathError.
    """

    def __init__(self, settings: Optional[Settings] = None, root: Optional[str] = None):
        self.settings = settings or default_settings
        self.root = Path(root or self.settings.sandbox_dir).resolve() / "projects"

    def project_root(self, project_id: str) -> Path:
        if not project_id or not _PROJECT_ID_RE.match(project_id):
            raise SandboxPathError(f"Invalid project id: {project_id!r}")
        return self.root / project_id

    def _full_path(self, project_id: str, rel_path: str) -> Path:
        root = self.project_root(project_id).resolve()
        rel = safe_rel_path(rel_path)
        if not rel:
            raise SandboxPathError("Empty path")
        full = (root / rel).resolve()
        if full != root and root not in full.parents:
            raise SandboxPathError(f"Path escapes project root: {rel_path!r}")
        return full

    # -- sync primitives (run in a worker thread) --

    def _list_files(self, project_id: str) -> List[str]:
        root = self.project_root(project_id)
        if not root.is_dir():
            return []
        out = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [d for d in dirnames if d not in CACHE_DIRS]
            for name in filenames:
                if is_staging_name(name):
                    continue
                full = Path(dirpath) / name
                out.append(full.relative_to(root).as_posix())
        return sorted(out)

    def _read_file(self, project_id: str, rel_path: str) -> str:
        full = self._full_path(project_id, rel_path)
        if not full.is_file():
            raise FileNotFoundError(safe_rel_path(rel_path))
        return full.read_text(encoding="utf-8", errors="replace")

    def _check_targets(self, root: Path, targets: List[Path]) -> None:
        """Reject file/directory clashes before anything touches the disk."""
        batch = {t.relative_to(root).as_posix() for t in targets}
        for target in targets:
            rel = target.relative_to(root).as_posix()
            if target.is_dir():
                raise SandboxPathError(f"Cannot write {rel!r}: it is a directory")
            for parent in target.relative_to(root).parents:
                parent_rel = parent.as_posix()
                if parent_rel == ".":
                    continue
                if parent_rel in batch:
                    raise SandboxPathError(f"Cannot write {rel!r}: {parent_rel!r} is written as a file")
                parent_full = root / parent
                if parent_full.exists() and not parent_full.is_dir():
                    raise SandboxPathError(f"Cannot write {rel!r}: {parent_rel!r} is a file")

    def _write_files(self, project_id: str, files: List[SandboxFile]) -> List[str]:
        """
        Commit a batch of files all-or-nothing.

        Targets are checked first, then staged next to their destination and
        swapped in. If any step fails, files already swapped are restored from
        their backups and no staging file is left behind.
        """
        root = self.project_root(project_id)
        root.mkdir(parents=True, exist_ok=True)
        resolved_root = root.resolve()

        targets = [self._full_path(project_id, f.path) for f in files]
        self._check_targets(resolved_root, targets)

        staged: list[tuple[Path, Path]] = []
        try:
            for f, target in zip(files, targets):
                target.parent.mkdir(parents=True, exist_ok=True)
                tmp = _staging_path(target, "tmp")
                staged.append((tmp, target))
                tmp.write_text(f.content, encoding="utf-8")
        except Exception:
            for tmp, _ in staged:
                tmp.unlink(missing_ok=True)
            raise

        swapped: list[tuple[Path, Optional[Path]]] = []
        try:
            for tmp, target in staged:
                backup = None
                if target.exists():
                    backup = _staging_path(target, "bak")
                    os.replace(target, backup)
                swapped.append((target, backup))
                os.replace(tmp, target)
        except Exception:
            self._roll_back(swapped, [tmp for tmp, _ in staged])
            raise

        for _, backup in swapped:
            if backup is not None:
                backup.unlink(missing_ok=True)
        return [target.relative_to(resolved_root).as_posix() for target in targets]

    def _roll_back(self, swapped: List[tuple], leftovers: List[Path]) -> None:
        for target, backup in reversed(swapped):
            try:
                if backup is not None:
                    os.replace(backup, target)
                else:
                    target.unlink(missing_ok=True)
            except OSError:
                logger.exception(f"Could not restore {target} after a failed commit")
        for tmp in leftovers:
            tmp.unlink(missing_ok=True)

    def _read_snapshot(self, project_id: str, paths: List[str], max_chars: int) -> List[SandboxFile]:
        snapshot: List[SandboxFile] = []
        used = 0
        for p in paths:
            remaining = max_chars - used
            if remaining <= 0:
                break
            try:
                content = self._read_file(project_id, p)
            except (FileNotFoundError, SandboxPathError):
                continue
            sliced = content[:remaining]
            used += len(sliced)
            snapshot.append(SandboxFile(path=p, content=sliced))
        return snapshot

    def _delete_project(self, project_id: str) -> bool:
        root = self.project_root(project_id)
        if not root.exists():
            return False
        shutil.rmtree(root)
        return True

    # -- async API --

    async def list_files(self, project_id: str) -> List[str]:
        """Visible file paths under the project root, sorted, POSIX-style."""
        return await asyncio.to_thread(self._list_files, project_id)

    async def read_file(self, project_id: str, rel_path: str) -> str:
        return await asyncio.to_thread(self._read_file, project_id, rel_path)

    async def write_files(self, project_id: str, files: List[SandboxFile]) -> List[str]:
        """Write (overwrite) files; returns the committed relative paths."""
        written = await asyncio.to_thread(self._write_files, project_id, files)
        logger.info(f"Wrote {len(written)} file(s) to sandbox for project {project_id}")
        return written

    async def read_snapshot(
        self,
        project_id: str,
        paths: List[str],
        max_chars: Optional[int] = None,
    ) -> List[SandboxFile]:
        """Read files in order until the total content budget is spent."""
        budget = self.settings.snapshot_max_chars if max_chars is None else max_chars
        return await asyncio.to_thread(self._read_snapshot, project_id, list(paths), budget)

    async def delete_project(self, project_id: str) -> bool:
        return await asyncio.to_thread(self._delete_project, project_id)
