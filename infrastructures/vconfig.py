# -*- coding: utf-8 -*-
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _project_root() -> Path:
    return Path(__file__).resolve().parents[1]


STORE_BACKENDS = ("memory", "local", "redis")


class VConfig(BaseSettings):
    """Conversation engine configuration loaded from env / .env."""

    model_config = SettingsConfigDict(
        env_file=str(_project_root() / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ---------- App & Logging ----------
    app_env: str = Field("dev", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")

    # ---------- Identity ----------
    current_user_id: str = Field("currentUser", validation_alias="CURRENT_USER_ID", min_length=1)
    current_user_name: str = Field("You", validation_alias="CURRENT_USER_NAME", min_length=1)

    # ---------- Lifecycle ----------
    sent_delay_ms: int = Field(300, validation_alias="SENT_DELAY_MS", ge=0)
    delivered_delay_ms: int = Field(500, validation_alias="DELIVERED_DELAY_MS", ge=0)
    typing_ttl_ms: int = Field(3000, validation_alias="TYPING_TTL_MS", ge=1)

    # ---------- Storage ----------
    store_backend: str = Field("memory", validation_alias="STORE_BACKEND")
    store_dir: str = Field("./data/blobs", validation_alias="STORE_DIR")
    redis_url: str = Field("redis://localhost:6379/0", validation_alias="REDIS_URL")
    redis_timeout_seconds: float = Field(3.0, validation_alias="REDIS_TIMEOUT_SECONDS", gt=0)

    chats_key: str = Field("@love_connect_chats", validation_alias="CHATS_KEY", min_length=1)
    messages_key: str = Field("@love_connect_messages", validation_alias="MESSAGES_KEY", min_length=1)

    # ---------- Demo ----------
    seed_demo_data: bool = Field(False, validation_alias="SEED_DEMO_DATA")

    @field_validator("store_backend", mode="before")
    @classmethod
    def _normalize_store_backend(cls, v):
        # "" -> memory
        if v is None or (isinstance(v, str) and not v.strip()):
            return "memory"
        v = str(v).strip().lower()
        if v not in STORE_BACKENDS:
            raise ValueError(f"STORE_BACKEND must be one of {STORE_BACKENDS}")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, v: Optional[str]):
        if v is None or not str(v).strip():
            return "INFO"
        return str(v).strip().upper()


@lru_cache(maxsize=1)
def get_config() -> VConfig:
    return VConfig()


vconfig = get_config()
