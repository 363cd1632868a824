"""
Project Model

Projects are the top-level container for build state and conversation.
All tables are scoped by project_id; the sandbox directory uses the same id.
"""
from datetime import datetime
from sqlalchemy import String, Text, DateTime, Integer, Boolean, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import Any, Optional, List
import uuid

from ..database import Base


def generate_project_id() -> str:
    return f"p_{uuid.uuid4().hex[:12]}"


class Project(Base):
    """
    Durable per-project build metadata.

    Holds:
    - build_info: platform/framework/language/app identity (immutable once set,
      except core_features)
    - pending_platform_prompt: the message that triggered the platform question
    - memory: rolling conversation digest (advisory)
    - built/version/files: build counters and the last-known file listing
    - images: generated mockup gallery, newest first

    JSON columns are always replaced with a new value, never mutated in place.
    """
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=generate_project_id,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)

    build_info: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    pending_platform_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    memory: Mapped[str] = mapped_column(Text, default="", nullable=False)

    built: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    entry: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    files: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

    images: Mapped[List[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    last_image: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )
    last_build_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    chat_turns: Mapped[List["ChatTurn"]] = relationship(
        "ChatTurn",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, title={self.title}, version={self.version})>"
