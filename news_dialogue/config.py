"""Configuration management."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Application
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    debug: bool = Field(default=False, alias="DEBUG")

    # Gemini API configuration
    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    gemini_api_endpoint: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/models",
        alias="GEMINI_API_ENDPOINT"
    )
    model: str = Field(default="gemini-2.0-flash", alias="GEMINI_MODEL")

    # Default generation parameters handed out by LanguageModel.params()
    temperature: float = Field(default=0.7, alias="MODEL_TEMPERATURE")
    top_k: int = Field(default=40, alias="MODEL_TOP_K")
    max_output_tokens: int = Field(default=4096, alias="MAX_OUTPUT_TOKENS")
    request_timeout: int = Field(default=60, alias="REQUEST_TIMEOUT")  # seconds
    api_rate_limit: int = Field(default=3, alias="RPS")  # Requests per second

    # Extraction
    site_rules_file: Optional[str] = Field(default=None, alias="SITE_RULES_FILE")
    max_content_length: int = Field(default=2500, alias="MAX_CONTENT_LENGTH")

    # Dialogue
    assistant_name: str = Field(default="HotTea", alias="ASSISTANT_NAME")
    default_user_name: str = Field(default="User", alias="DEFAULT_USER_NAME")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    @field_validator('gemini_api_key', 'site_rules_file', mode='before')
    @classmethod
    def empty_str_to_none(cls, v):
        """Convert empty strings to None for optional fields."""
        if v == '' or v is None:
            return None
        return v


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
