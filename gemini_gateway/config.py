# Configuration for OpenAI-compatible gateway to Gemini

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings loaded from environment variables only.
    The gateway holds no credentials of its own: callers' keys are forwarded upstream.
    """
    model_config = SettingsConfigDict(
        case_sensitive=True,
        extra="ignore",
    )

    # Upstream Gemini API
    GEMINI_BASE_URL: str = Field("https://generativelanguage.googleapis.com", alias="GEMINI_BASE_URL")
    GEMINI_API_VERSION: str = Field("v1beta", alias="GEMINI_API_VERSION")
    GEMINI_API_CLIENT: str = Field("genai-js/0.21.0", description="Value of x-goog-api-client header", alias="GEMINI_API_CLIENT")
    GEMINI_TIMEOUT: int = Field(30, description="Connect/write/pool timeout in seconds", alias="GEMINI_TIMEOUT")

    # Remote images referenced by image_url parts
    IMAGE_FETCH_TIMEOUT: int = Field(30, alias="IMAGE_FETCH_TIMEOUT")

    # Model defaults
    DEFAULT_MODEL: str = Field("gemini-1.5-pro-latest", alias="DEFAULT_MODEL")
    DEFAULT_EMBEDDINGS_MODEL: str = Field("text-embedding-004", alias="DEFAULT_EMBEDDINGS_MODEL")

    # Server
    HOST: str = Field("0.0.0.0", alias="HOST")
    PORT: int = Field(8081, alias="PORT")

    # Logging
    LOG_LEVEL: str = Field("INFO", alias="LOG_LEVEL")
    LOG_REQUEST_BODY_MAX_LENGTH: int = Field(40000, alias="LOG_REQUEST_BODY_MAX_LENGTH")

    @property
    def api_root(self) -> str:
        return f"{self.GEMINI_BASE_URL.rstrip('/')}/{self.GEMINI_API_VERSION}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def extract_api_key(auth_header: Optional[str]) -> Optional[str]:
    """
    Take the key out of an Authorization: Bearer <key> header.
    The key is not checked here; Gemini rejects bad keys itself.
    """
    if not auth_header:
        return None
    parts = auth_header.split()
    if len(parts) != 2:
        return None
    return parts[1]
