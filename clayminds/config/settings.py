# clayminds/config/settings.py
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

BackupStrategy = Literal["blob", "sentinel", "both", "none"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # master credentials baked in at build time
    supabase_url: str = ""
    supabase_key: str = ""

    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    local_db_url: str = "sqlite:///./clayminds_local.db"

    diary_backup_strategy: BackupStrategy = "both"
    # any bucket other than the public evidences one is read with the API key
    diary_backup_bucket: str = "evidences"
    http_timeout: float = 15.0


settings = Settings()
