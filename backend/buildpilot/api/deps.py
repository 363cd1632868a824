"""
Shared API dependencies.

Each collaborator is a FastAPI dependency so tests can override it.
"""
from fastapi import Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, settings
from ..database import get_db
from ..engine.orchestrator import BuildOrchestrator
from ..events import EventPublisher, get_event_publisher
from ..models.project import Project
from ..preview import PreviewRegistry, get_preview_registry
from ..sandbox import SandboxFileStore, SandboxPathError
from ..store import ProjectStore


def get_settings() -> Settings:
    return settings


def get_sandbox(cfg: Settings = Depends(get_settings)) -> SandboxFileStore:
    return SandboxFileStore(cfg)


def get_preview() -> PreviewRegistry:
    return get_preview_registry()


def get_publisher() -> EventPublisher:
    return get_event_publisher()


def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    cfg: Settings = Depends(get_settings),
    sandbox: SandboxFileStore = Depends(get_sandbox),
    publisher: EventPublisher = Depends(get_publisher),
) -> BuildOrchestrator:
    return BuildOrchestrator(db, settings=cfg, sandbox=sandbox, publisher=publisher)


def valid_project_id(
    project_id: str,
    sandbox: SandboxFileStore = Depends(get_sandbox),
) -> str:
    """Reject ids that cannot name a sandbox directory."""
    try:
        sandbox.project_root(project_id)
    except SandboxPathError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return project_id


async def get_project_or_404(
    project_id: str = Depends(valid_project_id),
    db: AsyncSession = Depends(get_db),
) -> Project:
    project = await ProjectStore(db).get(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project
