# Durable stores
from .project_store import ProjectStore, ProjectExistsError, default_title
from .chat_store import ChatStore

__all__ = [
    "ProjectStore",
    "ProjectExistsError",
    "default_title",
    "ChatStore",
]
