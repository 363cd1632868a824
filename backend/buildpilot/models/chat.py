"""
Chat Turn Model

Append-only conversation log per project.
The autoincrement id is the arrival order; timestamps may collide.
"""
from datetime import datetime
from sqlalchemy import String, Text, DateTime, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import Optional

from ..database import Base


class ChatTurn(Base):
    """
    A single user or assistant turn.

    Turns are never edited. The log is only truncated by the retention
    cap applied when a new turn is written.
    """
    __tablename__ = "chat_turns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False
    )  # "user" or "assistant"

    content: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_data_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )

    # Relationship
    project: Mapped["Project"] = relationship(
        "Project",
        back_populates="chat_turns"
    )

    def __repr__(self) -> str:
        return f"<ChatTurn(id={self.id}, role={self.role})>"
