"""
Chat Responder

Answers conversational turns grounded in the project's files, build info,
memory and recent history.
"""
import logging
from typing import List, Optional

from ..config import Settings, settings as default_settings
from ..llm import LLMProvider, get_model_for_task
from ..models.chat import ChatTurn
from ..prompts.chat import CHAT_SYSTEM, CHAT_PROMPT
from .content_generator import format_build_info

logger = logging.getLogger(__name__)

FILE_LIST_LIMIT = 400


class ChatResponder:
    def __init__(self, llm: LLMProvider, settings: Optional[Settings] = None):
        self.llm = llm
        self.settings = settings or default_settings

    async def answer(
        self,
        file_paths: List[str],
        build_info: Optional[dict],
        memory: str,
        history: List[ChatTurn],
    ) -> str:
        """Raw model reply; callers sanitize it. LLM errors propagate."""
        paths = file_paths[:FILE_LIST_LIMIT]
        prompt = CHAT_PROMPT.format(
            file_list="\n".join(f"- {p}" for p in paths) if paths else "(no files yet)",
            build_info=format_build_info(build_info),
            memory=memory or "(none)",
            history="\n".join(f"{t.role.upper()}: {t.content}" for t in history) or "(none)",
        )

        return await self.llm.generate_text(
            prompt=prompt,
            model=get_model_for_task("chat_response", self.settings),
            system_prompt=CHAT_SYSTEM,
            max_tokens=1200,
            temperature=0.5,
        )
