# Preview process registry
from .registry import PreviewRegistry, get_preview_registry, preview_port

__all__ = [
    "PreviewRegistry",
    "get_preview_registry",
    "preview_port",
]
