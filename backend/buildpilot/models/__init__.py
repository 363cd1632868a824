# BuildPilot Models
from .project import Project, generate_project_id
from .chat import ChatTurn

__all__ = [
    "Project",
    "ChatTurn",
    "generate_project_id",
]
