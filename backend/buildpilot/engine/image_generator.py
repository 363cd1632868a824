"""
Image Generator

Mockup generation with a primary and a fallback image model.
"""
import logging
from typing import Optional

from pydantic import BaseModel

from ..config import Settings, settings as default_settings
from ..llm import LLMProvider, LLMError, LLMConfigurationError
from ..tracer import trace_call, trace_result

logger = logging.getLogger(__name__)


class ImageResult(BaseModel):
    url: Optional[str] = None
    data_url: Optional[str] = None


class ImageGenerator:
    """Calls the image provider; raises LLMError when no image comes back."""

    def __init__(self, llm: Optional[LLMProvider], settings: Optional[Settings] = None):
        self.llm = llm
        self.settings = settings or default_settings

    def _models(self) -> list[str]:
        models = [self.settings.openai_image_model]
        fallback = self.settings.openai_image_fallback_model
        if fallback and fallback not in models:
            models.append(fallback)
        return models

    async def generate(self, prompt: str) -> ImageResult:
        if self.llm is None:
            raise LLMConfigurationError("Mockup images need an OpenAI API key.")

        last_error: Optional[Exception] = None
        for model in self._models():
            try:
                trace_call("engine.image", "LLM.generate_image", f"model={model}")
                image = await self.llm.generate_image(
                    prompt=prompt,
                    model=model,
                    size=self.settings.image_size,
                )
            except LLMConfigurationError:
                raise
            except LLMError as e:
                logger.warning(f"Image model {model} failed: {e}")
                trace_result("engine.image", "LLM.generate_image", False, str(e))
                last_error = e
                continue

            data_url = f"data:image/png;base64,{image.b64_json}" if image.b64_json else None
            if image.url or data_url:
                trace_result("engine.image", "LLM.generate_image", True, image.url or "base64")
                return ImageResult(url=image.url, data_url=data_url)
            last_error = LLMError("No image returned")

        raise LLMError(f"Image generation failed: {last_error}")
