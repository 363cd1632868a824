"""
Rolling Memory Updater

Keeps a short factual digest of the project thread in Project.memory.
The digest grounds later generation prompts but never overrides build info.
"""
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, settings as default_settings
from ..llm import LLMProvider, get_model_for_task
from ..models.chat import ChatTurn
from ..models.project import Project
from ..prompts.memory import MEMORY_SYSTEM, MEMORY_PROMPT
from ..store import ChatStore, ProjectStore
from ..tracer import trace_call, trace_result, trace_step

logger = logging.getLogger(__name__)

TURN_PREVIEW_CHARS = 2000


class RollingMemoryUpdater:
    """
    Refreshes the digest on every build or chat turn.

    Failure is non-fatal: the previous digest is kept and the turn continues.
    """

    def __init__(self, db: AsyncSession, llm: LLMProvider, settings: Optional[Settings] = None):
        self.db = db
        self.llm = llm
        self.settings = settings or default_settings
        self.projects = ProjectStore(db)
        self.chat = ChatStore(db, retention=self.settings.chat_retention)

    def _format_transcript(self, turns: List[ChatTurn]) -> str:
        return "\n".join(
            f"{t.role.upper()}: {t.content[:TURN_PREVIEW_CHARS]}" for t in turns
        )

    async def refresh(self, project: Project) -> Project:
        turns = await self.chat.recent(project.id, self.settings.memory_history_turns)
        if not turns:
            return project

        prompt = MEMORY_PROMPT.format(
            previous=project.memory or "(none)",
            transcript=self._format_transcript(turns),
        )

        try:
            trace_call("engine.memory", "LLM.generate_text", f"{len(turns)} turns")
            digest = await self.llm.generate_text(
                prompt=prompt,
                model=get_model_for_task("memory_summary", self.settings),
                system_prompt=MEMORY_SYSTEM,
                max_tokens=800,
                temperature=0.2,
            )
        except Exception as e:
            logger.warning(f"Memory refresh failed for {project.id}, keeping previous digest: {e}")
            trace_result("engine.memory", "LLM.generate_text", False, str(e))
            return project

        digest = (digest or "").strip()
        if not digest:
            trace_step("engine.memory", "Empty digest, keeping previous memory")
            return project

        trace_result("engine.memory", "LLM.generate_text", True, digest)
        try:
            return await self.projects.update(project, memory=digest)
        except Exception as e:
            logger.warning(f"Could not persist memory for {project.id}: {e}")
            await self.db.rollback()
            return project
