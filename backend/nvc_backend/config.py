import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

PLACEHOLDER_SERVICE_KEY = "your_service_role_key_here"


class Settings(BaseSettings):
    supabase_url: Optional[str] = Field(None, alias="SUPABASE_URL")
    supabase_service_key: Optional[str] = Field(None, alias="SUPABASE_SERVICE_KEY")
    profile_table: str = Field("user_profiles", alias="PROFILE_TABLE")
    profile_store_timeout_seconds: float = Field(10.0, gt=0, alias="PROFILE_STORE_TIMEOUT_SECONDS")
    profile_users_limit: int = Field(100, ge=1, alias="PROFILE_USERS_LIMIT")
    cors_origins: str = Field("*", alias="NVC_CORS_ORIGINS")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
