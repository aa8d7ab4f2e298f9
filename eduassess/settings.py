"""Application settings loaded from environment variables."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/"


class Settings(BaseSettings):
    """Runtime configuration for the EduAssess backend."""

    model_config = SettingsConfigDict(env_prefix="EDUASSESS_", extra="ignore")

    app_name: str = "EduAssess API"

    # A missing key is not a startup failure; the service rejects the calls instead.
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("EDUASSESS_GEMINI_API_KEY", "GEMINI_API_KEY"),
    )
    gemini_base_url: str = Field(
        default=DEFAULT_GEMINI_BASE_URL,
        validation_alias=AliasChoices("EDUASSESS_GEMINI_BASE_URL", "GEMINI_BASE_URL"),
    )

    # In-process session store limits
    max_sessions: int = 200
    session_ttl_seconds: int = 6 * 3600

    # CORS configuration
    cors_allow_origins: str = Field(
        default="*",
        validation_alias=AliasChoices("EDUASSESS_CORS_ALLOW_ORIGINS", "CORS_ALLOW_ORIGINS"),
    )

    @property
    def gemini_configured(self) -> bool:
        return bool(self.gemini_api_key.strip())

    @property
    def cors_origin_list(self) -> list[str]:
        if self.cors_allow_origins.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


settings = Settings()
