# API Routes
from .projects import router as projects_router
from .run import router as run_router
from .files import router as files_router
from .preview import router as preview_router
from .events import router as events_router

__all__ = [
    "projects_router",
    "run_router",
    "files_router",
    "preview_router",
    "events_router",
]
