from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "CRM ACL"
    app_env: str = "local"
    database_url: str = "sqlite+pysqlite:///./crm_acl.db"
    log_level: str = "INFO"
    otel_enabled: bool = False
    acl_policy_backend: str = "auto"
    acl_default_level: str = "no"
    acl_exempt_parent_types: list[str] = Field(default_factory=lambda: ["Settings"])
    acl_max_cascade_depth: int = 3

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    return Settings()
