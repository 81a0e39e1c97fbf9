from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Generation collaborator (OpenAI chat completions)
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.2
    # Disable for models that reject response_format=json_object.
    openai_json_mode: bool = True
    generation_timeout_seconds: float = 60.0

    # Durable snapshot of the client-side plan store
    store_path: str = "data/goal-architect-store.json"
    store_key: str = "goal-architect-store"

    log_level: str = "INFO"

    @field_validator("openai_api_key", mode="before")
    @classmethod
    def _empty_to_none(cls, v):
        if v in ("", None, "null", "None"):
            return None
        return v


settings = Settings()
