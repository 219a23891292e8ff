from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable

# Titles that are almost never a real delivery target on any platform.
DEFAULT_BLACKLIST_KEYWORDS = (
    "实习",
    "兼职",
    "销售",
    "外包",
    "internship",
    "part time",
)


def normalize_text(value: str) -> str:
    normalized = unicodedata.normalize("NFKC", value or "").casefold()
    normalized = re.sub(r"[\W_]+", " ", normalized)
    normalized = re.sub(r"\s+", " ", normalized).strip()
    return normalized


def parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in re.split(r"[,，]", value) if item.strip()]


def build_term_set(terms: Iterable[str], *, include_defaults: bool = False) -> list[str]:
    combined = list(DEFAULT_BLACKLIST_KEYWORDS) if include_defaults else []
    combined.extend(terms)
    normalized = {normalize_text(term) for term in combined if normalize_text(term)}
    return sorted(normalized)


def matches_any(text: str, terms: list[str]) -> bool:
    haystack = normalize_text(text)
    return any(term in haystack for term in terms)
