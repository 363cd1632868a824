"""
Content Generator

Turns a build request into a set of file changes plus a short summary.
Never raises: failures come back as GenerationResult(ok=False, reason=...).
"""
import json
import logging
from typing import List, Optional

from pydantic import BaseModel

from ..config import Settings, settings as default_settings
from ..llm import LLMProvider, LLMError, get_model_for_task
from ..prompts.builder import BUILDER_SYSTEM, BUILDER_PROMPT
from ..sandbox import SandboxFile
from ..tracer import trace_call, trace_result

logger = logging.getLogger(__name__)

EXISTING_FILES_LIMIT = 180_000
CONTEXT_LIMIT = 12_000


class BuilderFile(BaseModel):
    path: str = ""
    content: str = ""


class BuilderOutput(BaseModel):
    """JSON shape the builder model must return."""
    assistant_message: str = ""
    files: List[BuilderFile] = []


class ContextMessage(BaseModel):
    role: str
    text: str


class GenerationRequest(BaseModel):
    user_message: str
    context: List[ContextMessage] = []
    existing_files: List[SandboxFile] = []
    build_info: Optional[dict] = None
    instructions: str = ""


class GenerationResult(BaseModel):
    ok: bool
    assistant_message: str = ""
    files: List[dict] = []
    reason: Optional[str] = None


def format_build_info(build_info: Optional[dict]) -> str:
    return json.dumps(build_info, indent=2) if build_info else "(not set yet)"


def format_existing_files(files: List[SandboxFile]) -> str:
    joined = "\n\n".join(f"--- {f.path} ---\n{f.content}" for f in files)
    return joined[:EXISTING_FILES_LIMIT] or "(none)"


def format_context(context: List[ContextMessage]) -> str:
    joined = "\n".join(f"{m.role.upper()}: {m.text}" for m in context)
    # Keep the most recent part of the thread
    return joined[-CONTEXT_LIMIT:] or "(none)"


class ContentGenerator:
    """Builder call: prompt assembly, strict JSON extraction, failure capture."""

    def __init__(self, llm: LLMProvider, settings: Optional[Settings] = None):
        self.llm = llm
        self.settings = settings or default_settings

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        prompt = BUILDER_PROMPT.format(
            user_message=request.user_message,
            build_info=format_build_info(request.build_info),
            existing_files=format_existing_files(request.existing_files),
            context=format_context(request.context),
            instructions=request.instructions or "(none)",
        )

        model = get_model_for_task("file_generation", self.settings)
        try:
            trace_call("engine.content", "LLM.extract_json", f"model={model}")
            raw = await self.llm.extract_json(
                prompt=prompt,
                schema=BuilderOutput,
                model=model,
                system_prompt=BUILDER_SYSTEM,
                max_tokens=16_000,
                temperature=0.2,
            )
        except LLMError as e:
            logger.error(f"Builder call failed: {e}")
            trace_result("engine.content", "LLM.extract_json", False, str(e))
            return GenerationResult(ok=False, reason=f"Build failed: {e}")
        except Exception as e:
            logger.exception("Unexpected builder failure")
            return GenerationResult(ok=False, reason=f"Build failed: {e}")

        output = BuilderOutput.model_validate(raw)
        trace_result("engine.content", "LLM.extract_json", True, f"{len(output.files)} files")

        return GenerationResult(
            ok=True,
            assistant_message=output.assistant_message.strip() or "Updated project files.",
            files=[f.model_dump() for f in output.files],
        )
