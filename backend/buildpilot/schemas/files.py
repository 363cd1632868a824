"""
File Schemas

Sandbox file tree and file content responses.
"""
from typing import Optional, List, Literal
from pydantic import BaseModel


class FileNode(BaseModel):
    """A file or directory in the project tree."""
    type: Literal["file", "dir"]
    name: str
    path: str
    children: Optional[List["FileNode"]] = None


class FileTreeResponse(BaseModel):
    built: bool
    tree: List[FileNode]


class FileContentResponse(BaseModel):
    path: str
    content: str
