"""
Pytest configuration for the BuildPilot test suite.

Every test gets its own SQLite file and sandbox directory under tmp_path,
and a scripted FakeLLM in place of the external generators.
"""
import json
from typing import Any, Dict, List, Optional, Union

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from buildpilot.config import Settings
from buildpilot.database import build_engine, init_db
from buildpilot.engine.orchestrator import BuildOrchestrator, ProjectLocks
from buildpilot.events import EventPublisher
from buildpilot.llm import LLMProvider, LLMError, GeneratedImage
from buildpilot.prompts.chat import CHAT_SYSTEM
from buildpilot.prompts.memory import MEMORY_SYSTEM
from buildpilot.sandbox import SandboxFileStore


DEFAULT_BUILD = {
    "assistant_message": "Created the app shell with a home page.",
    "files": [{"path": "index.html", "content": "<!doctype html><h1>Recipes</h1>"}],
}


class FakeLLM(LLMProvider):
    """
    Scripted provider.

    Builder calls pop from `builder_outputs` (dict, raw string or exception)
    and fall back to DEFAULT_BUILD; memory and chat calls return fixed text.
    """

    def __init__(self):
        self.builder_outputs: List[Union[dict, str, Exception]] = []
        self.chat_reply: Union[str, Exception] = "You can ask me to add features or change the design."
        self.memory_digest: Union[str, Exception] = "Goal: recipe app. Platform: web."
        self.image = GeneratedImage(url="https://images.example/mockup.png")
        self.image_errors: Dict[str, Exception] = {}
        self.calls: List[Dict[str, Any]] = []

    def count(self, kind: str) -> int:
        return sum(1 for c in self.calls if c["kind"] == kind)

    def last(self, kind: str) -> Optional[Dict[str, Any]]:
        matching = [c for c in self.calls if c["kind"] == kind]
        return matching[-1] if matching else None

    async def generate_text(
        self,
        prompt: str,
        model: str,
        max_tokens: int = 2048,
        temperature: float = 0.7,
        system_prompt: Optional[str] = None,
        json_mode: bool = False,
    ) -> str:
        if system_prompt == MEMORY_SYSTEM:
            kind, result = "memory", self.memory_digest
        elif system_prompt == CHAT_SYSTEM:
            kind, result = "chat", self.chat_reply
        else:
            kind = "build"
            result = self.builder_outputs.pop(0) if self.builder_outputs else DEFAULT_BUILD

        self.calls.append({"kind": kind, "prompt": prompt, "model": model})

        if isinstance(result, Exception):
            raise result
        if isinstance(result, dict):
            return json.dumps(result)
        return result

    async def generate_image(self, prompt: str, model: str, size: str = "1024x1024") -> GeneratedImage:
        self.calls.append({"kind": "image", "prompt": prompt, "model": model})
        if model in self.image_errors:
            raise self.image_errors[model]
        return self.image


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        llm_provider="openai",
        openai_api_key="sk-test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        sandbox_dir=str(tmp_path / "sandbox"),
        follow_through=False,
    )


@pytest_asyncio.fixture
async def engine(settings):
    test_engine = build_engine(settings.database_url)
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def sandbox(settings) -> SandboxFileStore:
    return SandboxFileStore(settings)


@pytest.fixture
def publisher() -> EventPublisher:
    return EventPublisher()


@pytest.fixture
def locks() -> ProjectLocks:
    return ProjectLocks()


@pytest.fixture
def make_orchestrator(settings, llm, sandbox, publisher, locks):
    """Factory so tests can build orchestrators on other sessions or settings."""
    def _make(session: AsyncSession, **overrides) -> BuildOrchestrator:
        kwargs = dict(
            settings=settings,
            llm=llm,
            image_llm=llm,
            sandbox=sandbox,
            publisher=publisher,
            locks=locks,
        )
        kwargs.update(overrides)
        return BuildOrchestrator(session, **kwargs)
    return _make


@pytest.fixture
def orchestrator(db, make_orchestrator) -> BuildOrchestrator:
    return make_orchestrator(db)


@pytest.fixture
def builder_error():
    return LLMError("upstream unavailable")
