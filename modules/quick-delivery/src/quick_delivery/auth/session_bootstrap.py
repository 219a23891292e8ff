from __future__ import annotations

import json
from pathlib import Path

from quick_delivery.backends.platforms import PLATFORM_ENDPOINTS
from quick_delivery.models import Platform


def bootstrap_platform_session(
    platform: Platform,
    storage_path: Path,
    *,
    login_url: str | None = None,
    headed: bool = True,
) -> Path:
    from playwright.sync_api import sync_playwright

    url = login_url or PLATFORM_ENDPOINTS[platform].login_url
    storage_path.parent.mkdir(parents=True, exist_ok=True)

    with sync_playwright() as playwright:
        browser = playwright.chromium.launch(headless=not headed, slow_mo=50 if headed else 0)
        context = browser.new_context()
        page = context.new_page()
        page.goto(url, wait_until="domcontentloaded", timeout=60_000)

        print(f"Finish {platform.display_name} login in the browser (QR code or SMS).")
        input("Press Enter after successful login: ")

        context.storage_state(path=str(storage_path))
        context.close()
        browser.close()

    return storage_path


def count_session_cookies(storage_path: Path) -> int:
    if not storage_path.exists():
        return 0
    state = json.loads(storage_path.read_text(encoding="utf-8"))
    return len(state.get("cookies", []))
