"""
Preview Schemas
"""
from typing import Optional, Literal
from pydantic import BaseModel, Field


PreviewState = Literal["loading", "running", "error"]


class PreviewStatus(BaseModel):
    """Preview state for one platform, as shown by the workspace overlay."""
    state: PreviewState
    message: Optional[str] = None
    mode: Optional[Literal["static", "next-dev", "expo-web"]] = None
    port: Optional[int] = None
    direct_url: Optional[str] = Field(None, alias="directUrl")

    model_config = {"populate_by_name": True}
