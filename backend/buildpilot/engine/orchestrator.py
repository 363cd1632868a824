"""
Build Orchestrator

Single entry point for a user message. Runs the platform gate, classifies
intent and drives exactly one of: clarify, image, build, chat.

States per project:
    UNINITIALIZED -> AWAITING_PLATFORM -> CONFIGURED -> BUILT

run() never raises: every failure comes back as RunResponse(ok=False).
"""
import asyncio
import contextlib
import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, settings as default_settings
from ..events import EventPublisher, EventType, get_event_publisher
from ..llm import LLMProvider, LLMError, get_llm_provider, get_image_provider
from ..models.project import Project
from ..prompts.builder import BUILD_INSTRUCTIONS, FALLBACK_README
from ..prompts.image import MOCKUP_PROMPT
from ..sandbox import SandboxFile, SandboxFileStore, normalize_files
from ..schemas.run import (
    RunResponse,
    ChatTurnInfo,
    ChatHistoryResponse,
    BuildSummary,
)
from ..store import ChatStore, ProjectStore
from ..tracer import (
    trace_section,
    trace_input,
    trace_step,
    trace_transition,
    trace_output,
)
from .content_generator import (
    ContentGenerator,
    ContextMessage,
    GenerationRequest,
    format_build_info,
)
from .image_generator import ImageGenerator
from .intent_router import IntentRouter, Action
from .memory_updater import RollingMemoryUpdater
from .platform import (
    Platform,
    PLATFORM_QUESTION,
    infer_platform,
    resolve_platform_answer,
    build_info_for,
)
from .responder import ChatResponder
from .sanitizer import sanitize_assistant_message, sanitize_chat_reply

logger = logging.getLogger(__name__)

MISSING_API_KEY = "MISSING_API_KEY"
INVALID_MESSAGE = "INVALID_MESSAGE"
MISSING_IMAGE_KEY = "Mockup images need an OpenAI API key. Set OPENAI_API_KEY in .env and restart."

IMAGE_ACK = "Mockup image generated."
CHAT_FALLBACK = "I'm here. Tell me what you'd like to build or change next."
FEATURE_LINE_LIMIT = 80
IMAGE_PROMPT_LIMIT = 2000
FILES_PREVIEW_LIMIT = 40

# First present path wins
ENTRY_CANDIDATES = (
    "index.html",
    "dist/index.html",
    "app/page.js",
    "app/page.jsx",
    "pages/index.js",
    "App.js",
)


class BuildState(str, Enum):
    UNINITIALIZED = "uninitialized"
    AWAITING_PLATFORM = "awaiting_platform"
    CONFIGURED = "configured"
    BUILT = "built"


def build_state(project: Project) -> BuildState:
    if project.build_info:
        return BuildState.BUILT if project.built else BuildState.CONFIGURED
    if project.pending_platform_prompt:
        return BuildState.AWAITING_PLATFORM
    return BuildState.UNINITIALIZED


def merge_core_features(existing: List[str], message: str, limit: int = 8) -> List[str]:
    """
    Put the message's first line at the front of the feature list.

    Case-insensitive duplicates are not re-added; the list is capped at `limit`.
    """
    features = [f for f in (existing or []) if isinstance(f, str) and f.strip()]
    line = (message or "").strip().splitlines()[0].strip() if (message or "").strip() else ""
    line = line[:FEATURE_LINE_LIMIT]
    if not line or line.lower() in {f.lower() for f in features}:
        return features[:limit]
    return ([line] + features)[:limit]


def pick_entry(paths: List[str], current: Optional[str]) -> str:
    for candidate in ENTRY_CANDIDATES:
        if candidate in paths:
            return candidate
    return current or "index.html"


class ProjectLocks:
    """One asyncio.Lock per project id; at most one run in flight per project."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, project_id: str) -> asyncio.Lock:
        lock = self._locks.get(project_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[project_id] = lock
        return lock

    def discard(self, project_id: str) -> None:
        lock = self._locks.get(project_id)
        if lock is not None and not lock.locked():
            del self._locks[project_id]


_project_locks: Optional[ProjectLocks] = None


def get_project_locks() -> ProjectLocks:
    """Get or create the global lock registry."""
    global _project_locks
    if _project_locks is None:
        _project_locks = ProjectLocks()
    return _project_locks


class BuildOrchestrator:
    """
    Routes one message per call against a project's durable state.

    Collaborators are injectable; anything not passed in is resolved from
    settings on first use.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Optional[Settings] = None,
        llm: Optional[LLMProvider] = None,
        image_llm: Optional[LLMProvider] = None,
        sandbox: Optional[SandboxFileStore] = None,
        publisher: Optional[EventPublisher] = None,
        locks: Optional[ProjectLocks] = None,
    ):
        self.db = db
        self.settings = settings or default_settings
        self._llm = llm
        self._image_llm = image_llm
        self.sandbox = sandbox or SandboxFileStore(self.settings)
        self.publisher = publisher or get_event_publisher()
        self.locks = locks or get_project_locks()
        self.projects = ProjectStore(db)
        self.chat = ChatStore(db, retention=self.settings.chat_retention)
        self.router = IntentRouter()

    @property
    def llm(self) -> LLMProvider:
        if self._llm is None:
            self._llm = get_llm_provider(self.settings)
        return self._llm

    @property
    def image_llm(self) -> Optional[LLMProvider]:
        if self._image_llm is None:
            self._image_llm = get_image_provider(self.settings)
        return self._image_llm

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, project_id: str, message: Optional[str]) -> RunResponse:
        text = (message or "").strip()
        if not text:
            return RunResponse(
                ok=False,
                error="Message is required.",
                error_code=INVALID_MESSAGE,
            )

        if not self.settings.has_provider_key():
            provider = self.settings.llm_provider
            return RunResponse(
                ok=False,
                error=f"No API key configured for provider '{provider}'. Set it in .env and restart.",
                error_code=MISSING_API_KEY,
            )

        turn_id = str(uuid.uuid4())[:8]
        trace_section(f"RUN {project_id} [{turn_id}]")
        trace_input("engine.orchestrator", "message", text)

        guard = (
            self.locks.get(project_id)
            if self.settings.serialize_project_runs
            else contextlib.nullcontext()
        )
        async with guard:
            try:
                missing = await self._check_image_credential(project_id, text)
                if missing is not None:
                    return missing
                return await self._run(project_id, text, turn_id)
            except Exception as e:
                logger.exception(f"Run failed for project {project_id}")
                await self.db.rollback()
                await self.publisher.publish(project_id, EventType.ERROR, str(e), turn_id)
                return RunResponse(ok=False, error=f"Something went wrong: {e}")

    async def _check_image_credential(self, project_id: str, text: str) -> Optional[RunResponse]:
        """
        Mockups need an OpenAI key even when text runs on another provider.

        Routing is pure, so a mockup request without that key is refused
        before the user turn or any build info is recorded.
        """
        project = await self.projects.get(project_id)
        state = build_state(project) if project is not None else BuildState.UNINITIALIZED

        if state is BuildState.UNINITIALIZED and infer_platform(text) is Platform.UNKNOWN:
            # The platform question comes first
            return None
        if state is BuildState.AWAITING_PLATFORM:
            text = f"{project.pending_platform_prompt}\n{text}"

        built = project is not None and project.built
        if self.router.classify(text, built=built).action is not Action.IMAGE:
            return None
        if self.image_llm is not None:
            return None

        trace_step("engine.orchestrator", "Mockup requested without an image credential")
        return RunResponse(
            ok=False,
            type="image",
            error=MISSING_IMAGE_KEY,
            error_code=MISSING_API_KEY,
        )

    async def _run(self, project_id: str, text: str, turn_id: str) -> RunResponse:
        project = await self.projects.get_or_create(project_id)
        await self.chat.append(project_id, "user", text)
        await self.publisher.publish(project_id, EventType.RUN_STARTED, "Processing message", turn_id)

        state = build_state(project)
        effective = text

        if state is BuildState.UNINITIALIZED:
            platform = infer_platform(text)
            trace_step("engine.orchestrator", f"Inferred platform: {platform.value}")
            if platform is Platform.UNKNOWN:
                return await self._clarify(project, text, turn_id)
            project = await self._configure(project, platform, text, turn_id, state)

        elif state is BuildState.AWAITING_PLATFORM:
            pending = project.pending_platform_prompt
            platform = resolve_platform_answer(text)
            trace_step("engine.orchestrator", f"Platform answer: {platform.value}")
            project = await self._configure(project, platform, pending, turn_id, state)
            # Re-evaluate the original request together with the answer
            effective = f"{pending}\n{text}"

        classification = self.router.classify(effective, built=project.built)
        trace_step(
            "engine.orchestrator",
            f"Intent {classification.intent.value} -> {classification.action.value} ({classification.rule})",
        )
        await self.publisher.publish(
            project_id,
            EventType.INTENT_CLASSIFIED,
            f"Intent: {classification.intent.value}",
            turn_id,
            data=classification.model_dump(mode="json"),
        )

        if classification.action is Action.IMAGE:
            return await self._image(project, effective, turn_id)
        if classification.action is Action.BUILD:
            return await self._build(project, effective, turn_id)
        return await self._chat(project, turn_id)

    # ------------------------------------------------------------------
    # Platform gate
    # ------------------------------------------------------------------

    async def _clarify(self, project: Project, text: str, turn_id: str) -> RunResponse:
        await self.projects.update(project, pending_platform_prompt=text)
        await self.chat.append(project.id, "assistant", PLATFORM_QUESTION)
        trace_transition(
            "engine.orchestrator",
            project.id,
            BuildState.UNINITIALIZED.value,
            BuildState.AWAITING_PLATFORM.value,
        )
        await self.publisher.publish(project.id, EventType.CLARIFYING, PLATFORM_QUESTION, turn_id)
        return RunResponse(ok=True, type="clarify", reply=PLATFORM_QUESTION)

    async def _configure(
        self,
        project: Project,
        platform: Platform,
        request: str,
        turn_id: str,
        from_state: BuildState,
    ) -> Project:
        build_info = build_info_for(platform, project.title, request)
        project = await self.projects.update(
            project,
            build_info=build_info,
            pending_platform_prompt=None,
        )
        trace_transition(
            "engine.orchestrator",
            project.id,
            from_state.value,
            BuildState.CONFIGURED.value,
        )
        await self.publisher.publish(
            project.id,
            EventType.BUILD_INFO_SET,
            f"Platform set to {platform.value}",
            turn_id,
            data=build_info,
        )
        return project

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _image(self, project: Project, text: str, turn_id: str) -> RunResponse:
        prompt = MOCKUP_PROMPT.format(
            user_message=text,
            build_info=format_build_info(project.build_info),
            memory=project.memory or "(none)",
        )

        try:
            image = await ImageGenerator(self.image_llm, self.settings).generate(prompt)
        except LLMError as e:
            reason = str(e)
            await self.chat.append(project.id, "assistant", reason)
            await self.publisher.publish(project.id, EventType.ERROR, reason, turn_id)
            return RunResponse(ok=False, type="image", reply=reason, error=reason)

        record = {
            "id": uuid.uuid4().hex,
            "created_at": datetime.utcnow().isoformat(),
            "prompt": text[:IMAGE_PROMPT_LIMIT],
            "url": image.url,
            "data_url": image.data_url,
        }
        images = [record] + list(project.images or [])
        images = images[: self.settings.image_gallery_limit]
        await self.projects.update(project, images=images, last_image=record)

        # Inline base64 stays in the gallery, never in the chat log
        await self.chat.append(project.id, "assistant", IMAGE_ACK, image_url=image.url)
        await self.publisher.publish(
            project.id,
            EventType.IMAGE_GENERATED,
            IMAGE_ACK,
            turn_id,
            data={"id": record["id"], "url": image.url},
        )
        await self.publisher.publish(project.id, EventType.COMPLETE, IMAGE_ACK, turn_id)
        trace_output("engine.orchestrator", "image", image.url or "base64")

        return RunResponse(
            ok=True,
            type="image",
            reply=IMAGE_ACK,
            image_url=image.url,
            image_data_url=image.data_url,
        )

    async def _build(self, project: Project, text: str, turn_id: str) -> RunResponse:
        project = await self._refresh_memory(project, turn_id)

        history = await self.chat.recent(project.id, self.settings.chat_context_turns)
        context = [ContextMessage(role=t.role, text=t.content) for t in history]

        paths = (await self.sandbox.list_files(project.id))[: self.settings.snapshot_max_files]
        existing = await self.sandbox.read_snapshot(
            project.id, paths, max_chars=self.settings.snapshot_max_chars
        )

        await self.publisher.publish(project.id, EventType.GENERATING, "Generating project files", turn_id)
        result = await ContentGenerator(self.llm, self.settings).generate(
            GenerationRequest(
                user_message=text,
                context=context,
                existing_files=existing,
                build_info=project.build_info,
                instructions=BUILD_INSTRUCTIONS.format(memory=project.memory or "(none)"),
            )
        )

        if not result.ok:
            reason = result.reason or "Build failed."
            await self.chat.append(project.id, "assistant", reason)
            await self.publisher.publish(project.id, EventType.ERROR, reason, turn_id)
            return RunResponse(ok=False, type="build", reply=reason, error=reason)

        files = normalize_files(result.files, max_file_chars=self.settings.max_file_chars)
        if not files:
            trace_step("engine.orchestrator", "Generator returned no usable files, writing scaffold")
            files = [SandboxFile(path="README.md", content=FALLBACK_README.format(request=text))]

        written = await self.sandbox.write_files(project.id, files)
        listing = await self.sandbox.list_files(project.id)
        await self.publisher.publish(
            project.id,
            EventType.FILES_WRITTEN,
            f"Wrote {len(written)} file(s)",
            turn_id,
            data={"files": written},
        )

        build_info = dict(project.build_info or {})
        build_info["core_features"] = merge_core_features(
            build_info.get("core_features", []),
            text,
            limit=self.settings.feature_limit,
        )
        from_state = build_state(project)
        project = await self.projects.update(
            project,
            build_info=build_info,
            built=True,
            version=project.version + 1,
            files=listing,
            entry=pick_entry(listing, project.entry),
            last_build_at=datetime.utcnow(),
        )
        if from_state is not BuildState.BUILT:
            trace_transition("engine.orchestrator", project.id, from_state.value, BuildState.BUILT.value)

        reply = sanitize_assistant_message(
            result.assistant_message,
            fallback=f"Built project and wrote {len(written)} file(s) to the project folder.",
            max_chars=self.settings.summary_max_chars,
        )
        await self.chat.append(project.id, "assistant", reply)
        await self.publisher.publish(
            project.id,
            EventType.COMPLETE,
            reply,
            turn_id,
            data={"version": project.version},
        )
        trace_output("engine.orchestrator", "files_written", written)

        return RunResponse(ok=True, type="build", reply=reply, files_written=written)

    async def _chat(self, project: Project, turn_id: str) -> RunResponse:
        project = await self._refresh_memory(project, turn_id)

        history = await self.chat.recent(project.id, self.settings.chat_context_turns)
        paths = await self.sandbox.list_files(project.id)

        try:
            raw = await ChatResponder(self.llm, self.settings).answer(
                file_paths=paths,
                build_info=project.build_info,
                memory=project.memory,
                history=history,
            )
        except LLMError as e:
            reason = f"Chat failed: {e}"
            await self.chat.append(project.id, "assistant", reason)
            await self.publisher.publish(project.id, EventType.ERROR, reason, turn_id)
            return RunResponse(ok=False, type="chat", reply=reason, error=reason)

        reply = sanitize_chat_reply(
            raw,
            fallback=CHAT_FALLBACK,
            max_chars=self.settings.chat_reply_max_chars,
        )
        await self.chat.append(project.id, "assistant", reply)
        await self.publisher.publish(project.id, EventType.COMPLETE, reply, turn_id)

        return RunResponse(ok=True, type="chat", reply=reply)

    async def _refresh_memory(self, project: Project, turn_id: str) -> Project:
        previous = project.memory
        project = await RollingMemoryUpdater(self.db, self.llm, self.settings).refresh(project)
        if project.memory != previous:
            await self.publisher.publish(project.id, EventType.MEMORY_UPDATED, "Memory refreshed", turn_id)
        return project

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def get_chat_history(self, project_id: str, limit: int = 200) -> Optional[ChatHistoryResponse]:
        if await self.projects.get(project_id) is None:
            return None
        turns = await self.chat.recent(project_id, limit)
        return ChatHistoryResponse(
            turns=[ChatTurnInfo.model_validate(t) for t in turns],
            total=await self.chat.count(project_id),
        )

    async def get_build_summary(self, project_id: str) -> Optional[BuildSummary]:
        project = await self.projects.get(project_id)
        if project is None:
            return None
        paths = await self.sandbox.list_files(project_id)
        return BuildSummary(
            project_id=project.id,
            build_info=project.build_info,
            built=project.built,
            entry=project.entry,
            version=project.version,
            last_build_at=project.last_build_at,
            files_count=len(paths),
            files_preview=paths[:FILES_PREVIEW_LIMIT],
        )
