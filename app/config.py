import json
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load env values for components that read os.environ directly (e.g., the OpenAI client).
_root = Path(__file__).resolve().parents[1]
load_dotenv(_root / ".env", override=False)


def _coerce_json(value: str):
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


class Settings(BaseSettings):
    DATABASE_URL: str
    DB_POOL_PRE_PING: bool = True

    CLERK_JWT_ISSUER: str
    CLERK_JWKS_URL: str
    CLERK_AUDIENCE: str

    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    LLM_REQUEST_TIMEOUT: int = 120
    LLM_REQUEST_RETRIES: int = 2
    TEXT_MODEL: str = "gpt-4o"
    REFINE_MODEL: str = "gpt-4o-mini"
    VISION_MODEL: str = "gpt-4o"
    IMAGE_EDIT_MODEL: str = "gpt-image-1"
    IMAGE_REFINE_EDIT_MODEL: str = "dall-e-2"
    IMAGE_REFINE_GENERATE_MODEL: str = "dall-e-3"

    MEDIA_STORAGE_BUCKET: str | None = None
    MEDIA_STORAGE_ENDPOINT: str | None = None
    MEDIA_STORAGE_REGION: str | None = None
    MEDIA_STORAGE_ACCESS_KEY: str | None = None
    MEDIA_STORAGE_SECRET_KEY: str | None = None
    MEDIA_STORAGE_PREFIX: str | None = None
    MEDIA_STORAGE_PRESIGN_TTL_SECONDS: int = 3600
    MEDIA_STORAGE_USE_SSL: bool = True
    MEDIA_STORAGE_FORCE_PATH_STYLE: bool = True
    MEDIA_STORAGE_PUBLIC_BASE_URL: str | None = None

    CANVAS_SAVE_DEBOUNCE_SECONDS: float = 2.0
    CANVAS_VIEWPORT_DEBOUNCE_SECONDS: float = 1.0
    LISTING_API_BASE_URL: str = "http://localhost:8000"
    LISTING_API_TIMEOUT_SECONDS: float = 180.0

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    model_config = SettingsConfigDict(env_file=".env", env_json_loads=_coerce_json, extra="ignore")


settings = Settings()
