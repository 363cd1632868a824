"""
LLM Provider Base Class

Abstract interface that all LLM providers must implement.
Includes JSON recovery, schema validation, and error handling.
"""
from abc import ABC, abstractmethod
from typing import Any, Optional
import json
import logging

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base exception for LLM errors."""
    pass


class LLMRateLimitError(LLMError):
    """Rate limit exceeded."""
    pass


class LLMInvalidResponseError(LLMError):
    """Invalid response from LLM."""
    pass


class LLMConfigurationError(LLMError):
    """Provider is missing a credential or does not support the call."""
    pass


class GeneratedImage(BaseModel):
    """Raw image payload returned by a provider."""
    url: Optional[str] = None
    b64_json: Optional[str] = None


def parse_json_payload(raw: str) -> Any:
    """
    Parse a JSON object from model output.

    Strips markdown fences, then falls back to the outermost {...} span
    when the model wrapped the object in prose.
    """
    cleaned = (raw or "").strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    if cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    cleaned = cleaned.strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start == -1 or end <= start:
            raise
        return json.loads(cleaned[start:end + 1])


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    All generator calls go through this interface, allowing
    provider switching without changing orchestration logic.
    """

    @abstractmethod
    async def generate_text(
        self,
        prompt: str,
        model: str,
        max_tokens: int = 2048,
        temperature: float = 0.7,
        system_prompt: Optional[str] = None,
        json_mode: bool = False,
    ) -> str:
        """
        Generate text from a prompt.

        Args:
            prompt: The user prompt
            model: Model name to use
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature
            system_prompt: Optional system prompt
            json_mode: Ask the provider for a strict JSON object

        Returns:
            Generated text
        """
        pass

    async def generate_image(
        self,
        prompt: str,
        model: str,
        size: str = "1024x1024",
    ) -> GeneratedImage:
        """Generate a single image. Providers without image support raise."""
        raise LLMConfigurationError(
            f"{type(self).__name__} does not support image generation"
        )

    async def extract_json(
        self,
        prompt: str,
        schema: type[BaseModel],
        model: str,
        max_tokens: int = 2048,
        temperature: float = 0.3,
        system_prompt: Optional[str] = None,
        max_retries: int = 2,
    ) -> dict[str, Any]:
        """
        Extract structured JSON from a prompt.

        Uses retry logic to handle invalid JSON responses.
        Validates against the provided Pydantic schema.

        Args:
            prompt: The user prompt
            schema: Pydantic model to validate against
            model: Model name to use
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature (lower for structured output)
            system_prompt: Optional system prompt
            max_retries: Number of retries for invalid JSON

        Returns:
            Validated dictionary matching the schema
        """
        json_system = (system_prompt or "") + """

You must respond with valid JSON only. No markdown, no explanations.
The JSON must match this schema:
""" + json.dumps(schema.model_json_schema(), indent=2)

        last_error = None
        for attempt in range(max_retries):
            try:
                response = await self.generate_text(
                    prompt=prompt,
                    model=model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    system_prompt=json_system,
                    json_mode=True,
                )

                parsed = parse_json_payload(response)

                validated = schema.model_validate(parsed)
                return validated.model_dump()

            except json.JSONDecodeError as e:
                last_error = LLMInvalidResponseError(f"Invalid JSON: {e}")
                logger.warning(f"JSON parse error on attempt {attempt + 1}: {e}")
                continue

            except ValidationError as e:
                last_error = LLMInvalidResponseError(f"Schema validation failed: {e}")
                logger.warning(f"Schema validation error on attempt {attempt + 1}: {e}")
                continue

        raise last_error or LLMInvalidResponseError("Failed to extract valid JSON")

    @staticmethod
    def create_retry_decorator(max_attempts: int = 3):
        """Create a retry decorator for API calls."""
        return retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((LLMRateLimitError,)),
            reraise=True,
        )
