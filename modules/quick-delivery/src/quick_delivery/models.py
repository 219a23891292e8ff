from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Platform(Enum):
    BOSS_ZHIPIN = ("boss", "BOSS Zhipin")
    ZHILIAN_ZHAOPIN = ("zhilian", "Zhilian Zhaopin")
    JOB_51 = ("51job", "51job")
    LIEPIN = ("liepin", "Liepin")

    def __init__(self, code: str, display_name: str) -> None:
        self.code = code
        self.display_name = display_name

    @classmethod
    def from_code(cls, code: str) -> Platform:
        normalized = (code or "").strip().casefold()
        for platform in cls:
            if platform.code == normalized:
                return platform
        raise ValueError(f"unknown platform code: {code!r}")


class DeliveryErrorKind(str, Enum):
    INVALID_ARGUMENT = "invalid_argument"
    UNSUPPORTED_PLATFORM = "unsupported_platform"
    CONFIG_NOT_FOUND = "config_not_found"
    LOGIN_FAILED = "login_failed"
    BACKEND_FAULT = "backend_fault"


@dataclass(frozen=True)
class JobPosting:
    platform: str
    job_id: str
    title: str
    company: str
    url: str
    salary: str | None
    location: str | None
    fetched_at_utc: str


@dataclass(frozen=True)
class ConfigEntity:
    platform_code: str
    payload: dict[str, Any]
    updated_at: str


class PlatformConfig(BaseModel):
    recommend_jobs: bool = False
    keywords: list[str] = Field(default_factory=list)
    city_code: str | None = None
    blacklist_companies: list[str] = Field(default_factory=list)
    blacklist_keywords: list[str] = Field(default_factory=list)
    max_deliveries: int = Field(default=50, ge=0)
    greeting: str = ""


@dataclass(frozen=True)
class DeliveryResult:
    platform: Platform | None
    started_at: datetime
    ended_at: datetime
    duration: timedelta
    success: bool
    total_scanned: int | None = None
    skipped_count: int | None = None
    success_count: int | None = None
    failed_count: int | None = None
    error_kind: DeliveryErrorKind | None = None
    error_message: str | None = None
    remark: str | None = None

    @property
    def filtered_count(self) -> int | None:
        if self.total_scanned is None or self.skipped_count is None:
            return None
        return self.total_scanned - self.skipped_count

    @property
    def duration_ms(self) -> int:
        return int(self.duration.total_seconds() * 1000)

    @property
    def formatted_duration(self) -> str:
        millis = self.duration_ms
        if millis < 1000:
            return f"{millis}ms"
        seconds, millis = divmod(millis, 1000)
        minutes, seconds = divmod(seconds, 60)
        if minutes:
            return f"{minutes}m {seconds}s"
        return f"{seconds}.{millis // 100}s"


@dataclass(frozen=True)
class BatchOutcome:
    results: dict[Platform, DeliveryResult] = field(default_factory=dict)
    total_success: int = 0
    total_failed: int = 0
    total_skipped: int = 0

    @property
    def succeeded_platforms(self) -> list[Platform]:
        return [platform for platform, result in self.results.items() if result.success]

    @property
    def failed_platforms(self) -> list[Platform]:
        return [platform for platform, result in self.results.items() if not result.success]
