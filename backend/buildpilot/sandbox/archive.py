"""
Project archive export.

Zips a project sandbox for download, leaving out dependency and build
output directories.
"""
import asyncio
import io
import re
import zipfile

from .files import SandboxFileStore, is_hidden_path


def safe_zip_name(name: str) -> str:
    """Filesystem- and header-safe archive base name ("" if nothing usable)."""
    base = (name or "").strip()
    if not base:
        return ""
    cleaned = re.sub(r"\s+", "-", base)
    cleaned = re.sub(r"[^a-zA-Z0-9._-]", "", cleaned)
    cleaned = re.sub(r"-+", "-", cleaned)
    return cleaned.strip("-._")


def archive_filename(project_id: str, app_name: str = "") -> str:
    return f"{safe_zip_name(app_name) or f'project-{project_id}'}.zip"


def _build_archive(store: SandboxFileStore, project_id: str) -> bytes:
    root = store.project_root(project_id)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for rel in store._list_files(project_id):
            if is_hidden_path(rel):
                continue
            zf.write(root / rel, arcname=rel)
    return buffer.getvalue()


async def build_archive(store: SandboxFileStore, project_id: str) -> bytes:
    """Zip bytes for the project's visible files."""
    return await asyncio.to_thread(_build_archive, store, project_id)
