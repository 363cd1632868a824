# Sandbox file storage
from .files import (
    SandboxFile,
    SandboxFileStore,
    SandboxPathError,
    normalize_files,
    safe_rel_path,
    build_tree,
    filter_visible_paths,
)
from .archive import build_archive, archive_filename

__all__ = [
    "SandboxFile",
    "SandboxFileStore",
    "SandboxPathError",
    "normalize_files",
    "safe_rel_path",
    "build_tree",
    "filter_visible_paths",
    "build_archive",
    "archive_filename",
]
