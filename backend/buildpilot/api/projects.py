"""
Projects API

Endpoints for project lifecycle.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..engine.orchestrator import get_project_locks
from ..events import EventPublisher
from ..models.project import Project
from ..preview import PreviewRegistry
from ..sandbox import SandboxFileStore
from ..schemas.project import (
    ProjectCreate,
    ProjectUpdate,
    ProjectResponse,
    ProjectListResponse,
)
from ..store import ProjectStore, ProjectExistsError
from .deps import get_sandbox, get_preview, get_publisher, get_project_or_404

router = APIRouter(prefix="/projects", tags=["projects"])


def _project_to_response(project: Project) -> ProjectResponse:
    """Convert Project model to response schema."""
    return ProjectResponse(
        id=project.id,
        title=project.title,
        built=project.built,
        version=project.version,
        build_info=project.build_info,
        awaiting_platform=bool(project.pending_platform_prompt and not project.build_info),
        created_at=project.created_at,
        updated_at=project.updated_at,
        last_build_at=project.last_build_at,
    )


@router.post("", response_model=ProjectResponse)
async def create_project(
    data: ProjectCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a new project."""
    try:
        project = await ProjectStore(db).create(title=data.title, project_id=data.id)
    except ProjectExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return _project_to_response(project)


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    db: AsyncSession = Depends(get_db),
):
    """List all projects, most recently updated first."""
    projects = await ProjectStore(db).list_projects()
    return ProjectListResponse(
        projects=[_project_to_response(p) for p in projects],
        total=len(projects),
    )


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project: Project = Depends(get_project_or_404),
):
    """Get a project by ID."""
    return _project_to_response(project)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    data: ProjectUpdate,
    project: Project = Depends(get_project_or_404),
    db: AsyncSession = Depends(get_db),
):
    """Rename a project. Build info keeps the app name it was created with."""
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if changes:
        project = await ProjectStore(db).update(project, **changes)
    return _project_to_response(project)


@router.delete("/{project_id}")
async def delete_project(
    project: Project = Depends(get_project_or_404),
    db: AsyncSession = Depends(get_db),
    sandbox: SandboxFileStore = Depends(get_sandbox),
    preview: PreviewRegistry = Depends(get_preview),
    publisher: EventPublisher = Depends(get_publisher),
):
    """Delete a project: metadata, chat log, sandbox files and event streams."""
    project_id = project.id
    await preview.stop(project_id)
    await publisher.forget(project_id)
    await ProjectStore(db).delete(project)
    await sandbox.delete_project(project_id)
    get_project_locks().discard(project_id)

    return {"status": "deleted", "project_id": project_id}
