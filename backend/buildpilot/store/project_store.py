"""
Project State Store

Durable per-project build metadata. Every mutation writes whole new values
(JSON columns are replaced, never edited in place) and commits.
"""
import logging
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.project import Project, generate_project_id

logger = logging.getLogger(__name__)


class ProjectExistsError(ValueError):
    """A project with the requested id already exists."""
    pass


def default_title(project_id: str) -> str:
    return f"Project {project_id}"


class ProjectStore:
    """Async access to Project rows for one database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, project_id: str) -> Optional[Project]:
        stmt = select(Project).where(Project.id == project_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, title: Optional[str] = None, project_id: Optional[str] = None) -> Project:
        pid = (project_id or "").strip() or generate_project_id()
        if await self.get(pid) is not None:
            raise ProjectExistsError(f"A project with id {pid} already exists")

        project = Project(
            id=pid,
            title=(title or "").strip() or default_title(pid),
            files=[],
            images=[],
            memory="",
            version=0,
            built=False,
        )
        self.db.add(project)
        await self.db.commit()
        await self.db.refresh(project)
        logger.info(f"Created project {pid}")
        return project

    async def get_or_create(self, project_id: str) -> Project:
        """Fetch a project, creating a fresh record on first contact."""
        project = await self.get(project_id)
        if project is not None:
            return project
        return await self.create(project_id=project_id)

    async def list_projects(self) -> List[Project]:
        stmt = select(Project).order_by(Project.updated_at.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def update(self, project: Project, **changes: Any) -> Project:
        """Apply field changes, bump updated_at and commit."""
        for field, value in changes.items():
            if not hasattr(Project, field):
                raise AttributeError(f"Project has no field {field!r}")
            setattr(project, field, value)
        project.updated_at = datetime.utcnow()
        await self.db.commit()
        await self.db.refresh(project)
        return project

    async def delete(self, project: Project) -> None:
        await self.db.delete(project)
        await self.db.commit()
        logger.info(f"Deleted project {project.id}")
