from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Protocol

import httpx

from quick_delivery.backends.base import RecruitmentBackend
from quick_delivery.backends.board import BoardBackend
from quick_delivery.backends.platforms import PLATFORM_ENDPOINTS
from quick_delivery.config import Settings
from quick_delivery.models import ConfigEntity, Platform, PlatformConfig
from quick_delivery.storage import ConfigStore

logger = logging.getLogger(__name__)


class ConfigSource(Protocol):
    def load_by_platform_code(self, platform_code: str) -> ConfigEntity | None: ...


class PlatformRegistry:
    """Fixed platform to backend table, built once at startup."""

    def __init__(self, backends: Mapping[Platform, RecruitmentBackend]):
        self._backends = MappingProxyType(dict(backends))

    def resolve(self, platform: Platform | None) -> RecruitmentBackend | None:
        if platform is None:
            return None
        return self._backends.get(platform)

    def platforms(self) -> list[Platform]:
        return [platform for platform in Platform if platform in self._backends]

    def close(self) -> None:
        for backend in self._backends.values():
            backend.close()


class ConfigResolver:
    def __init__(self, registry: PlatformRegistry, source: ConfigSource):
        self._registry = registry
        self._source = source

    def resolve(self, platform: Platform) -> PlatformConfig | None:
        try:
            entity = self._source.load_by_platform_code(platform.code)
            if entity is None:
                logger.warning("no stored configuration for %s", platform.display_name)
                return None
            backend = self._registry.resolve(platform)
            if backend is None:
                logger.warning("no backend to convert configuration for %s", platform.display_name)
                return None
            return backend.convert_config(entity)
        except Exception:
            logger.exception("failed to load configuration for %s", platform.display_name)
            return None


def build_default_registry(
    settings: Settings,
    store: ConfigStore,
    *,
    transport: httpx.BaseTransport | None = None,
) -> PlatformRegistry:
    return PlatformRegistry(
        {
            platform: BoardBackend(platform, endpoints, settings, store, transport=transport)
            for platform, endpoints in PLATFORM_ENDPOINTS.items()
        }
    )
