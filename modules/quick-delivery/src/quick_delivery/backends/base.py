"""Capability every platform backend exposes to the delivery pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from quick_delivery.models import ConfigEntity, JobPosting, Platform, PlatformConfig


class RecruitmentBackend(ABC):
    """Automation unit for one recruitment platform.

    Calls block until the platform answers. The pipeline invokes them in the
    order login, collect, filter, deliver and never concurrently for the same
    backend.
    """

    platform: Platform

    @abstractmethod
    def login(self) -> bool:
        """Return True when an authenticated session is available."""

    @abstractmethod
    def collect_jobs(self) -> Sequence[JobPosting]:
        """Collect postings from the platform's search results."""

    @abstractmethod
    def collect_recommend_jobs(self) -> Sequence[JobPosting]:
        """Collect postings from the platform's recommendation feed."""

    @abstractmethod
    def filter_jobs(self, jobs: Sequence[JobPosting]) -> Sequence[JobPosting]:
        """Return the deliverable subset of ``jobs``, keeping their order."""

    @abstractmethod
    def deliver_jobs(self, jobs: Sequence[JobPosting]) -> int:
        """Deliver to ``jobs`` and return how many were confirmed."""

    def convert_config(self, entity: ConfigEntity) -> PlatformConfig:
        return PlatformConfig.model_validate(entity.payload)

    def close(self) -> None:
        """Release resources held by the backend."""
