"""
Run API

The single message entry point plus the read side of the build state:
chat history, build summary and the mockup gallery.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Response

from ..engine.orchestrator import BuildOrchestrator, MISSING_API_KEY, INVALID_MESSAGE
from ..models.project import Project
from ..schemas.project import ImageRecord
from ..schemas.run import (
    RunRequest,
    RunResponse,
    ChatHistoryResponse,
    BuildSummary,
    GalleryResponse,
)
from .deps import get_orchestrator, get_project_or_404, valid_project_id

router = APIRouter(prefix="/projects/{project_id}", tags=["run"])

ERROR_STATUS = {
    MISSING_API_KEY: 401,
    INVALID_MESSAGE: 400,
}


@router.post("/run", response_model=RunResponse, response_model_exclude_none=True)
async def run(
    data: RunRequest,
    response: Response,
    project_id: str = Depends(valid_project_id),
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
):
    """
    Process one user message.

    Unknown projects are created on first contact. Generation failures come
    back as ok=false with status 200 so the workspace can render them;
    missing credentials (401) and empty messages (400) are rejected before
    anything is recorded.
    """
    result = await orchestrator.run(project_id, data.content)
    if result.error_code in ERROR_STATUS:
        response.status_code = ERROR_STATUS[result.error_code]
    return result


@router.get("/chat", response_model=ChatHistoryResponse)
async def get_chat(
    project_id: str = Depends(valid_project_id),
    limit: int = Query(200, ge=1, le=200),
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
):
    """Chat turns for a project, oldest first."""
    history = await orchestrator.get_chat_history(project_id, limit)
    if history is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return history


@router.get("/summary", response_model=BuildSummary)
async def get_summary(
    project_id: str = Depends(valid_project_id),
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
):
    """Build info, counters and a preview of the file listing."""
    summary = await orchestrator.get_build_summary(project_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return summary


@router.get("/images", response_model=GalleryResponse)
async def get_images(
    project: Project = Depends(get_project_or_404),
):
    """Generated mockups, newest first."""
    return GalleryResponse(
        images=[ImageRecord.model_validate(r) for r in project.images or []],
        last_image=project.last_image,
    )
