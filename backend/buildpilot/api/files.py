"""
Files API

Read-only, path-confined access to a project's sandbox.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from ..models.project import Project
from ..sandbox import (
    SandboxFileStore,
    SandboxPathError,
    build_tree,
    build_archive,
    archive_filename,
    filter_visible_paths,
)
from ..schemas.files import FileTreeResponse, FileContentResponse
from .deps import get_sandbox, get_project_or_404

router = APIRouter(prefix="/projects/{project_id}", tags=["files"])


@router.get("/files", response_model=FileTreeResponse)
async def list_files(
    project: Project = Depends(get_project_or_404),
    sandbox: SandboxFileStore = Depends(get_sandbox),
):
    """Nested file tree; dependency caches and top-level build output are hidden."""
    paths = await sandbox.list_files(project.id)
    return FileTreeResponse(built=project.built, tree=build_tree(filter_visible_paths(paths)))


@router.get("/file", response_model=FileContentResponse)
async def read_file(
    path: str = Query(..., min_length=1),
    project: Project = Depends(get_project_or_404),
    sandbox: SandboxFileStore = Depends(get_sandbox),
):
    try:
        content = await sandbox.read_file(project.id, path)
    except SandboxPathError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="File not found")
    return FileContentResponse(path=path, content=content)


@router.get("/download")
async def download(
    project: Project = Depends(get_project_or_404),
    sandbox: SandboxFileStore = Depends(get_sandbox),
):
    """Zip of the project's files."""
    data = await build_archive(sandbox, project.id)
    app_name = (project.build_info or {}).get("app_name", "")
    filename = archive_filename(project.id, app_name)
    return StreamingResponse(
        iter([data]),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
