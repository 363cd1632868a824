"""
Tests for the generator boundaries: JSON recovery, builder output handling,
image fallback and model routing.
"""
import json

import pytest

from buildpilot.engine.content_generator import (
    BuilderOutput,
    ContentGenerator,
    ContextMessage,
    GenerationRequest,
    format_context,
)
from buildpilot.engine.image_generator import ImageGenerator
from buildpilot.llm import LLMConfigurationError, LLMError, LLMInvalidResponseError
from buildpilot.llm.base import parse_json_payload
from buildpilot.llm.router import get_model_for_task


class TestParseJsonPayload:

    def test_plain(self):
        assert parse_json_payload('{"a": 1}') == {"a": 1}

    def test_fenced(self):
        assert parse_json_payload('```json\n{"a": 1}\n```') == {"a": 1}

    def test_wrapped_in_prose(self):
        assert parse_json_payload('Here it is: {"a": {"b": 2}} done') == {"a": {"b": 2}}

    def test_no_object(self):
        with pytest.raises(json.JSONDecodeError):
            parse_json_payload("no json here")


class TestExtractJson:

    async def test_retries_then_fails(self, llm):
        llm.builder_outputs.extend(["not json", "still not json"])
        with pytest.raises(LLMInvalidResponseError):
            await llm.extract_json("prompt", BuilderOutput, model="m", max_retries=2)
        assert llm.count("build") == 2

    async def test_recovers_on_retry(self, llm):
        llm.builder_outputs.extend(["oops", {"assistant_message": "ok", "files": []}])
        result = await llm.extract_json("prompt", BuilderOutput, model="m", max_retries=2)
        assert result == {"assistant_message": "ok", "files": []}


class TestContentGenerator:

    async def test_success(self, llm, settings):
        result = await ContentGenerator(llm, settings).generate(
            GenerationRequest(user_message="Build a web app", build_info={"platform": "web"})
        )
        assert result.ok
        assert result.files == [{"path": "index.html", "content": "<!doctype html><h1>Recipes</h1>"}]
        assert llm.last("build")["model"] == settings.openai_heavy_model

    async def test_invalid_json_is_a_failure(self, llm, settings):
        llm.builder_outputs.extend(["garbage", "more garbage"])
        result = await ContentGenerator(llm, settings).generate(GenerationRequest(user_message="x"))

        assert not result.ok
        assert result.reason.startswith("Build failed:")

    async def test_provider_error_is_a_failure(self, llm, settings):
        llm.builder_outputs.append(LLMError("boom"))
        result = await ContentGenerator(llm, settings).generate(GenerationRequest(user_message="x"))

        assert not result.ok
        assert "boom" in result.reason

    async def test_blank_summary_gets_default(self, llm, settings):
        llm.builder_outputs.append({"assistant_message": "  ", "files": []})
        result = await ContentGenerator(llm, settings).generate(GenerationRequest(user_message="x"))
        assert result.assistant_message == "Updated project files."

    def test_context_keeps_most_recent(self):
        context = [ContextMessage(role="user", text="a" * 20_000), ContextMessage(role="assistant", text="latest")]
        formatted = format_context(context)
        assert formatted.endswith("ASSISTANT: latest")
        assert len(formatted) == 12_000


class TestImageGenerator:

    async def test_without_provider(self, settings):
        with pytest.raises(LLMConfigurationError):
            await ImageGenerator(None, settings).generate("a dashboard")

    async def test_primary_model(self, llm, settings):
        image = await ImageGenerator(llm, settings).generate("a dashboard")
        assert image.url == "https://images.example/mockup.png"
        assert image.data_url is None

    async def test_all_models_fail(self, llm, settings):
        llm.image_errors = {
            settings.openai_image_model: LLMError("a"),
            settings.openai_image_fallback_model: LLMError("b"),
        }
        with pytest.raises(LLMError, match="Image generation failed"):
            await ImageGenerator(llm, settings).generate("a dashboard")

    async def test_empty_payload_falls_through(self, llm, settings):
        llm.image = llm.image.model_copy(update={"url": None, "b64_json": None})
        with pytest.raises(LLMError, match="No image returned"):
            await ImageGenerator(llm, settings).generate("a dashboard")


class TestModelRouting:

    @pytest.mark.parametrize("task,attr", [
        ("memory_summary", "openai_cheap_model"),
        ("chat_response", "openai_mid_model"),
        ("file_generation", "openai_heavy_model"),
        ("something_else", "openai_mid_model"),
    ])
    def test_openai_tiers(self, settings, task, attr):
        assert get_model_for_task(task, settings) == getattr(settings, attr)

    def test_gemini_tiers(self, settings):
        gemini = settings.model_copy(update={"llm_provider": "gemini"})
        assert get_model_for_task("file_generation", gemini) == gemini.gemini_heavy_model
