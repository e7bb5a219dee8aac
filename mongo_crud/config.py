"""Configuration management using Pydantic settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # "json" for production, "console" for dev

    # Document store
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_database: str = "app"
    mongo_server_selection_timeout_ms: int = 5000
    mongo_ping_on_connect: bool = True

    # Record timestamps
    creation_date_field: str = "createdAt"
    modification_date_field: str = "lastModifiedAt"

    # Auditing
    audit_collection_name: str = "audits"
    audit_anonymous_actor: str = "Anonymous"
    # "raise": audit-write errors reach the caller (the data mutation is kept)
    # "log": audit-write errors are logged and the mutation result is returned
    audit_failure_policy: Literal["raise", "log"] = "raise"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()
