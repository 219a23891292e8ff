from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from quick_delivery.models import Platform

MODULE_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_DB_PATH = MODULE_ROOT / "data" / "quick_delivery.sqlite"
DEFAULT_SESSION_DIR = MODULE_ROOT / "data" / "sessions"


class Settings(BaseModel):
    db_path: Path = Field(default=DEFAULT_DB_PATH)
    session_dir: Path = Field(default=DEFAULT_SESSION_DIR)
    request_timeout_seconds: float = Field(default=20.0, gt=0.0)
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/126.0 Safari/537.36"
    )
    http_retry_attempts: int = Field(default=3, ge=1)
    batch_max_workers: int = Field(default=1, ge=1)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL must be a logging level name, got {value!r}")
        return normalized

    def session_path(self, platform: Platform) -> Path:
        return self.session_dir / f"{platform.code}_storage_state.json"


def _env_value(environ: Mapping[str, str], key: str) -> str:
    return environ.get(key, "").strip()


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    source = os.environ if environ is None else environ
    try:
        payload = {
            "db_path": Path(_env_value(source, "QUICK_DELIVERY_DB_PATH") or DEFAULT_DB_PATH),
            "session_dir": Path(_env_value(source, "SESSION_DIR") or DEFAULT_SESSION_DIR),
            "request_timeout_seconds": float(_env_value(source, "REQUEST_TIMEOUT_SECONDS") or "20"),
            "http_retry_attempts": int(_env_value(source, "HTTP_RETRY_ATTEMPTS") or "3"),
            "batch_max_workers": int(_env_value(source, "BATCH_MAX_WORKERS") or "1"),
            "log_level": _env_value(source, "LOG_LEVEL") or "INFO",
        }
        user_agent = _env_value(source, "USER_AGENT")
        if user_agent:
            payload["user_agent"] = user_agent
        return Settings(**payload)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


def mask_secret(value: str, visible_prefix: int = 3, visible_suffix: int = 2) -> str:
    if not value:
        return ""
    if len(value) <= visible_prefix + visible_suffix:
        return "*" * len(value)
    hidden = "*" * (len(value) - visible_prefix - visible_suffix)
    return f"{value[:visible_prefix]}{hidden}{value[-visible_suffix:]}"
