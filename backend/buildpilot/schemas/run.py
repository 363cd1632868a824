"""
Run Schemas

Pydantic models for the run entry point, chat history and build summary.
Response field names follow the workspace UI contract (camelCase aliases).
"""
from datetime import datetime
from typing import Optional, List, Literal
from pydantic import BaseModel, Field

from .project import BuildInfo, ImageRecord


RunType = Literal["chat", "build", "image", "clarify"]


class RunRequest(BaseModel):
    """A user message for the project. `text` is accepted as an alias of `message`."""
    message: Optional[str] = None
    text: Optional[str] = None

    model_config = {"extra": "forbid"}

    @property
    def content(self) -> str:
        return (self.message or self.text or "").strip()


class RunResponse(BaseModel):
    """Structured outcome of one run; always renderable by the caller."""
    ok: bool
    type: RunType = "chat"
    reply: str = ""
    files_written: Optional[List[str]] = Field(None, alias="filesWritten")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    image_data_url: Optional[str] = Field(None, alias="imageDataUrl")
    error: Optional[str] = None
    error_code: Optional[str] = Field(None, alias="errorCode")

    model_config = {"populate_by_name": True}


class ChatTurnInfo(BaseModel):
    """A turn in the project chat log."""
    role: Literal["user", "assistant"]
    content: str
    image_url: Optional[str] = Field(None, alias="imageUrl")
    image_data_url: Optional[str] = Field(None, alias="imageDataUrl")
    created_at: datetime = Field(alias="createdAt")

    model_config = {"from_attributes": True, "populate_by_name": True}


class ChatHistoryResponse(BaseModel):
    """Ordered chat turns, oldest first."""
    turns: List[ChatTurnInfo]
    total: int


class BuildSummary(BaseModel):
    """Build state overview for the workspace header."""
    project_id: str = Field(alias="projectId")
    build_info: Optional[BuildInfo] = Field(None, alias="buildInfo")
    built: bool = False
    entry: Optional[str] = None
    version: int = 0
    last_build_at: Optional[datetime] = Field(None, alias="lastBuildAt")
    files_count: int = Field(0, alias="filesCount")
    files_preview: List[str] = Field(default_factory=list, alias="filesPreview")

    model_config = {"populate_by_name": True}


class GalleryResponse(BaseModel):
    """Generated mockups, newest first."""
    images: List[ImageRecord]
    last_image: Optional[ImageRecord] = Field(None, alias="lastImage")

    model_config = {"populate_by_name": True}
