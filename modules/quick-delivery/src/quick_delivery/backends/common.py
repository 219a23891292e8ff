from __future__ import annotations

import hashlib
import re
from datetime import datetime, timezone
from urllib.parse import parse_qs, urljoin, urlparse

from bs4 import BeautifulSoup

from quick_delivery.models import JobPosting, Platform

_JOB_QUERY_KEYS = ("jobId", "job_id", "jid", "id")
_COMPANY_SELECTORS = ("[class*='company-name']", "[class*='company']", "[class*='cname']")
_SALARY_SELECTORS = ("[class*='salary']", "[class*='sal']")
_LOCATION_SELECTORS = ("[class*='area']", "[class*='location']", "[class*='city']")


def _clean_spaces(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def infer_job_id(url: str) -> str:
    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    for key in _JOB_QUERY_KEYS:
        values = query.get(key)
        if values and values[0].strip():
            return values[0].strip()

    path_match = re.search(r"/([\w~-]{4,})(?:\.s?html?)?/?$", parsed.path)
    if path_match:
        return path_match.group(1)

    return hashlib.sha1(url.encode("utf-8")).hexdigest()[:16]


def _first_text(container, selectors: tuple[str, ...]) -> str | None:
    for selector in selectors:
        node = container.select_one(selector)
        if node is not None:
            text = _clean_spaces(node.get_text(" ", strip=True))
            if text:
                return text
    return None


def parse_job_cards(
    html: str,
    *,
    base_url: str,
    platform: Platform,
    link_tokens: tuple[str, ...],
    limit: int = 100,
) -> list[JobPosting]:
    soup = BeautifulSoup(html, "html.parser")
    fetched_at = datetime.now(timezone.utc).replace(microsecond=0).isoformat()
    jobs: list[JobPosting] = []
    seen_urls: set[str] = set()

    for anchor in soup.select("a[href]"):
        title = _clean_spaces(anchor.get_text(" ", strip=True))
        if len(title) < 2:
            continue

        href = urljoin(base_url, anchor.get("href", ""))
        if not href.startswith(("http://", "https://")):
            continue
        if link_tokens and not any(token in href for token in link_tokens):
            continue
        if href in seen_urls:
            continue

        container = anchor.find_parent(["li", "article", "div"]) or anchor
        jobs.append(
            JobPosting(
                platform=platform.code,
                job_id=infer_job_id(href),
                title=title,
                company=_first_text(container, _COMPANY_SELECTORS) or "",
                url=href,
                salary=_first_text(container, _SALARY_SELECTORS),
                location=_first_text(container, _LOCATION_SELECTORS),
                fetched_at_utc=fetched_at,
            )
        )
        seen_urls.add(href)

        if len(jobs) >= limit:
            break

    return jobs
