"""
Project Schemas

Pydantic models for project lifecycle requests and build metadata.
"""
from datetime import datetime
from typing import Optional, List, Literal
from pydantic import BaseModel, Field


PlatformName = Literal["web", "ios", "android", "ios_android"]


class BuildInfo(BaseModel):
    """
    Source-of-truth build constraints for every generation call.

    platform/framework/language/app_name never change once set;
    only core_features evolves.
    """
    platform: PlatformName
    framework: str
    language: str
    app_name: str
    one_liner: str = Field("", max_length=140)
    core_features: List[str] = []


class ImageRecord(BaseModel):
    """A generated mockup in the project gallery."""
    id: str
    created_at: str
    prompt: str = ""
    url: Optional[str] = None
    data_url: Optional[str] = None


class ProjectCreate(BaseModel):
    """Request to create a new project."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    id: Optional[str] = Field(None, min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_-]+$")

    model_config = {"extra": "forbid"}


class ProjectUpdate(BaseModel):
    """Request to update a project."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)

    model_config = {"extra": "forbid"}


class ProjectResponse(BaseModel):
    """Project data returned from API."""
    id: str
    title: str
    built: bool = False
    version: int = 0
    build_info: Optional[BuildInfo] = None
    awaiting_platform: bool = False
    created_at: datetime
    updated_at: datetime
    last_build_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProjectListResponse(BaseModel):
    """List of projects."""
    projects: list[ProjectResponse]
    total: int
