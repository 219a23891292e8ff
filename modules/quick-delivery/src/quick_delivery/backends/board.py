from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

import httpx
from tenacity import Retrying, stop_after_attempt, wait_fixed

from quick_delivery.backends.base import RecruitmentBackend
from quick_delivery.backends.common import parse_job_cards
from quick_delivery.backends.platforms import BoardEndpoints
from quick_delivery.config import Settings, mask_secret
from quick_delivery.keywords import build_term_set, matches_any, parse_csv
from quick_delivery.models import ConfigEntity, JobPosting, Platform, PlatformConfig
from quick_delivery.storage import ConfigStore

logger = logging.getLogger(__name__)

_LIST_FIELDS = ("keywords", "blacklist_companies", "blacklist_keywords")


def load_session_cookies(client: httpx.Client, storage_state: dict[str, Any]) -> int:
    loaded = 0
    for cookie in storage_state.get("cookies", []):
        name = cookie.get("name")
        if not name:
            continue
        client.cookies.set(
            name,
            cookie.get("value", ""),
            domain=cookie.get("domain", ""),
            path=cookie.get("path", "/"),
        )
        loaded += 1
    return loaded


def _is_confirmed(response: httpx.Response) -> bool:
    try:
        body = response.json()
    except ValueError:
        return True
    if isinstance(body, dict):
        if "success" in body:
            return bool(body["success"])
        if "code" in body:
            return body["code"] in (0, 200, "0", "200")
    return True


class BoardBackend(RecruitmentBackend):
    """HTTP backend driving a platform's web endpoints with a saved browser session.

    The session comes from ``bootstrap-session``; this backend never performs
    the interactive login itself.
    """

    def __init__(
        self,
        platform: Platform,
        endpoints: BoardEndpoints,
        settings: Settings,
        store: ConfigStore,
        *,
        transport: httpx.BaseTransport | None = None,
        retry_wait_seconds: float = 1.0,
    ) -> None:
        self.platform = platform
        self._endpoints = endpoints
        self._settings = settings
        self._store = store
        self._retry_wait_seconds = retry_wait_seconds
        self._client = httpx.Client(
            timeout=settings.request_timeout_seconds,
            headers={"User-Agent": settings.user_agent},
            follow_redirects=True,
            transport=transport,
        )
        self._config: PlatformConfig | None = None

    def convert_config(self, entity: ConfigEntity) -> PlatformConfig:
        payload = dict(entity.payload)
        for key in _LIST_FIELDS:
            if isinstance(payload.get(key), str):
                payload[key] = parse_csv(payload[key])
        # The resolved config is the one this run uses.
        self._config = PlatformConfig.model_validate(payload)
        return self._config

    def _current_config(self) -> PlatformConfig:
        if self._config is None:
            entity = self._store.load_by_platform_code(self.platform.code)
            self._config = self.convert_config(entity) if entity else PlatformConfig()
        return self._config

    def _get_html(self, url: str, params: dict[str, str] | None) -> str:
        response = self._client.get(url, params=params)
        response.raise_for_status()
        return response.text

    def _fetch_html(self, url: str, params: dict[str, str] | None = None) -> str:
        retrying = Retrying(
            stop=stop_after_attempt(self._settings.http_retry_attempts),
            wait=wait_fixed(self._retry_wait_seconds),
            reraise=True,
        )
        return retrying(self._get_html, url, params)

    def _parse(self, html: str, base_url: str) -> list[JobPosting]:
        return parse_job_cards(
            html,
            base_url=base_url,
            platform=self.platform,
            link_tokens=self._endpoints.link_tokens,
        )

    def login(self) -> bool:
        session_path = self._settings.session_path(self.platform)
        if not session_path.exists():
            logger.warning(
                "%s: no saved session at %s; run bootstrap-session first",
                self.platform.display_name,
                session_path,
            )
            return False

        storage_state = json.loads(session_path.read_text(encoding="utf-8"))
        loaded = load_session_cookies(self._client, storage_state)
        logger.debug("%s: loaded %d session cookies", self.platform.display_name, loaded)

        response = self._client.get(self._endpoints.profile_url)
        landed_on = str(response.url)
        if not response.is_success or landed_on.startswith(self._endpoints.login_url):
            logger.warning(
                "%s: session rejected (status=%s, landed on %s)",
                self.platform.display_name,
                response.status_code,
                landed_on,
            )
            return False

        for cookie in self._client.cookies.jar:
            logger.debug(
                "%s: session cookie %s=%s",
                self.platform.display_name,
                cookie.name,
                mask_secret(cookie.value or ""),
            )
        return True

    def _search_params(self, keyword: str | None) -> dict[str, str]:
        config = self._current_config()
        params: dict[str, str] = {}
        if keyword:
            params[self._endpoints.keyword_param] = keyword
        if config.city_code:
            params[self._endpoints.city_param] = config.city_code
        return params

    def collect_jobs(self) -> Sequence[JobPosting]:
        config = self._current_config()
        jobs: list[JobPosting] = []
        for keyword in config.keywords or [None]:
            html = self._fetch_html(self._endpoints.search_url, self._search_params(keyword))
            jobs.extend(self._parse(html, self._endpoints.search_url))
        return jobs

    def collect_recommend_jobs(self) -> Sequence[JobPosting]:
        html = self._fetch_html(self._endpoints.recommend_url, self._search_params(None))
        return self._parse(html, self._endpoints.recommend_url)

    def filter_jobs(self, jobs: Sequence[JobPosting]) -> Sequence[JobPosting]:
        """Dedupe, drop blacklisted jobs, then keep at most ``max_deliveries``."""
        config = self._current_config()
        blocked_companies = build_term_set(config.blacklist_companies)
        blocked_keywords = build_term_set(config.blacklist_keywords, include_defaults=True)

        survivors: list[JobPosting] = []
        seen_ids: set[str] = set()
        for job in jobs:
            if job.job_id in seen_ids:
                continue
            seen_ids.add(job.job_id)
            if blocked_companies and matches_any(job.company, blocked_companies):
                logger.debug("skip %s: blacklisted company %s", job.job_id, job.company)
                continue
            if matches_any(job.title, blocked_keywords):
                logger.debug("skip %s: blacklisted title %s", job.job_id, job.title)
                continue
            if len(survivors) >= config.max_deliveries:
                logger.debug("skip %s: max_deliveries=%d reached", job.job_id, config.max_deliveries)
                continue
            survivors.append(job)
        return survivors

    def deliver_jobs(self, jobs: Sequence[JobPosting]) -> int:
        config = self._current_config()
        delivered = 0
        for job in jobs:
            try:
                response = self._client.post(
                    self._endpoints.deliver_url,
                    data={"jobId": job.job_id, "greeting": config.greeting},
                )
                response.raise_for_status()
            except httpx.HTTPError as exc:
                logger.warning("%s: delivery to %s failed: %s", self.platform.display_name, job.job_id, exc)
                continue
            if _is_confirmed(response):
                delivered += 1
            else:
                logger.info("%s: delivery to %s not confirmed", self.platform.display_name, job.job_id)
        return delivered

    def close(self) -> None:
        self._client.close()
