"""
BuildPilot Configuration

Environment-based configuration. Credentials are never hardcoded; a missing
credential is reported per request rather than crashing the process, so the
UI can prompt for remediation.
"""
from typing import Literal
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # LLM Provider Selection
    llm_provider: Literal["openai", "gemini"] = "openai"

    # API Keys - Required based on provider
    openai_api_key: str = ""
    gemini_api_key: str = ""

    # Database
    database_url: str = "sqlite+aiosqlite:///./buildpilot.db"

    # Debug mode (verbose low-level logging)
    debug: bool = False

    # Follow-through mode (structured step-by-step execution tracing)
    follow_through: bool = False

    # Model configurations
    openai_heavy_model: str = "gpt-4o"
    openai_mid_model: str = "gpt-4o"
    openai_cheap_model: str = "gpt-4o-mini"
    openai_image_model: str = "gpt-image-1"
    openai_image_fallback_model: str = "dall-e-3"

    gemini_heavy_model: str = "gemini-2.5-pro"
    gemini_mid_model: str = "gemini-2.5-flash"
    gemini_cheap_model: str = "gemini-2.0-flash"

    image_size: str = "1024x1024"

    # Sandbox
    sandbox_dir: str = "./sandbox"
    snapshot_max_files: int = 200
    snapshot_max_chars: int = 120_000
    max_file_chars: int = 500_000

    # Retention and context windows
    chat_retention: int = 200
    chat_context_turns: int = 80
    memory_history_turns: int = 120
    image_gallery_limit: int = 20
    feature_limit: int = 8

    # Chat surface limits
    summary_max_chars: int = 900
    chat_reply_max_chars: int = 1400

    # Preview
    preview_base_port: int = 4300
    preview_port_span: int = 700
    preview_start_timeout: float = 8.0
    preview_install_timeout: float = 240.0
    preview_max_attempts: int = 2

    # At most one run in flight per project
    serialize_project_runs: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @field_validator("openai_api_key", "gemini_api_key", mode="before")
    @classmethod
    def validate_not_placeholder(cls, v: str) -> str:
        """Ensure API keys are not placeholder values."""
        if v and "your-" in v.lower():
            return ""
        return v

    def has_provider_key(self) -> bool:
        """Whether the credential for the selected provider is present."""
        if self.llm_provider == "openai":
            return bool(self.openai_api_key)
        return bool(self.gemini_api_key)

    def validate_provider_key(self) -> None:
        """Validate that the required API key for the selected provider is set."""
        if self.llm_provider == "openai" and not self.openai_api_key:
            raise ValueError(
                "OPENAI_API_KEY environment variable is required when LLM_PROVIDER=openai. "
                "Please set it in your .env file or environment."
            )
        if self.llm_provider == "gemini" and not self.gemini_api_key:
            raise ValueError(
                "GEMINI_API_KEY environment variable is required when LLM_PROVIDER=gemini. "
                "Please set it in your .env file or environment."
            )

    def get_model(self, tier: Literal["cheap", "mid", "heavy"]) -> str:
        """Get the model name for the specified tier and current provider."""
        if self.llm_provider == "openai":
            return {
                "cheap": self.openai_cheap_model,
                "mid": self.openai_mid_model,
                "heavy": self.openai_heavy_model,
            }[tier]
        else:
            return {
                "cheap": self.gemini_cheap_model,
                "mid": self.gemini_mid_model,
                "heavy": self.gemini_heavy_model,
            }[tier]


# Global settings instance
settings = Settings()
