from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

KNOWN_PROVIDERS = ("deepseek", "openai", "stub")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="forbid",
        validate_by_name=True,
        populate_by_name=True,
    )

    ai_provider: str = ""
    enable_ai_overrides: bool = False

    deepseek_api_key: str = ""
    deepseek_model: str = "deepseek-chat"
    openai_api_key: str = ""
    openai_vision_model: str = "gpt-4o"

    ai_temperature: float = 0.0
    ai_max_tokens: int = 1000
    ai_timeout_seconds: float = 60.0
    ai_debug_raw_responses: bool = False

    ai_coach_provider: str = ""
    ai_coach_max_tokens: int = 350
    ai_coach_temperature: float = 0.6

    receipt_image_max_dimension: int = Field(default=1600, ge=0)
    receipt_image_quality: int = Field(default=80, ge=1, le=95)
    receipt_max_payload_chars: int = Field(default=4_000_000, ge=1)

    budget_alert_threshold: float = Field(default=0.85, gt=0, lt=1)
    budget_monitor_release_delay_seconds: float = Field(default=2.0, ge=0)

    @field_validator("ai_provider", "ai_coach_provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value):
        if value is None:
            return ""
        return str(value).strip().lower()

    @property
    def has_deepseek_credentials(self) -> bool:
        return bool(self.deepseek_api_key.strip())

    @property
    def has_openai_credentials(self) -> bool:
        return bool(self.openai_api_key.strip())


@lru_cache

def get_settings() -> Settings:
    return Settings()
