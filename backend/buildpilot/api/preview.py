"""
Preview API

Preview status for the workspace overlay. Reading status may start
background preview work; it never blocks on it.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..models.project import Project
from ..preview import PreviewRegistry
from ..schemas.preview import PreviewStatus
from .deps import get_preview, get_project_or_404

router = APIRouter(prefix="/projects/{project_id}/preview", tags=["preview"])


@router.get("/status", response_model=PreviewStatus, response_model_exclude_none=True)
async def preview_status(
    platform: Optional[str] = Query(None),
    project: Project = Depends(get_project_or_404),
    preview: PreviewRegistry = Depends(get_preview),
):
    return await preview.status(
        project.id,
        build_info=project.build_info,
        built=project.built,
        platform=platform,
    )


@router.post("/stop")
async def stop_preview(
    project: Project = Depends(get_project_or_404),
    preview: PreviewRegistry = Depends(get_preview),
):
    """Stop background preview work and any dev server for the project."""
    stopped = await preview.stop(project.id)
    return {"status": "stopped" if stopped else "idle", "project_id": project.id}
