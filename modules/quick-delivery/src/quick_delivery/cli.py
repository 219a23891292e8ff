from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from quick_delivery.auth.session_bootstrap import bootstrap_platform_session, count_session_cookies
from quick_delivery.config import Settings, load_settings
from quick_delivery.delivery import execute_all_platforms_quick_delivery, execute_quick_delivery
from quick_delivery.models import DeliveryResult, Platform
from quick_delivery.registry import ConfigResolver, build_default_registry
from quick_delivery.storage import ConfigStore

PLATFORM_CODES = [platform.code for platform in Platform]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quick-delivery")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run login + collect + filter + deliver")
    run_parser.add_argument(
        "--platform",
        choices=PLATFORM_CODES,
        default=None,
        help="Run a single platform instead of all of them",
    )
    run_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Platforms to run in parallel (default: BATCH_MAX_WORKERS)",
    )

    subparsers.add_parser("healthcheck", help="Validate config, store and saved sessions")

    import_parser = subparsers.add_parser(
        "import-config",
        help="Store a platform configuration from a JSON file",
    )
    import_parser.add_argument("--platform", choices=PLATFORM_CODES, required=True)
    import_parser.add_argument("file", type=Path)

    bootstrap_parser = subparsers.add_parser(
        "bootstrap-session",
        help="Open browser, complete platform login, and save Playwright storage state",
    )
    bootstrap_parser.add_argument("--platform", choices=PLATFORM_CODES, required=True)
    bootstrap_parser.add_argument("--headless", action="store_true", default=False)
    bootstrap_parser.add_argument(
        "--login-url",
        default=None,
        help="Override the login URL to open",
    )
    bootstrap_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Override storage state output path",
    )

    return parser


def _format_result(result: DeliveryResult) -> str:
    name = result.platform.display_name if result.platform else "-"
    if not result.success:
        return f"{name}: failed ({result.error_message}) in {result.formatted_duration}"
    return (
        f"{name}: scanned={result.total_scanned} skipped={result.skipped_count} "
        f"success={result.success_count} failed={result.failed_count} "
        f"({result.remark}) in {result.formatted_duration}"
    )


def _cmd_run(settings: Settings, platform_code: str | None, workers: int | None) -> int:
    with ConfigStore(settings.db_path) as store:
        registry = build_default_registry(settings, store)
        resolver = ConfigResolver(registry, store)
        outcome = None
        try:
            if platform_code:
                results = [
                    execute_quick_delivery(
                        Platform.from_code(platform_code),
                        registry=registry,
                        resolver=resolver,
                    )
                ]
            else:
                outcome = execute_all_platforms_quick_delivery(
                    registry=registry,
                    resolver=resolver,
                    max_workers=workers or settings.batch_max_workers,
                )
                results = list(outcome.results.values())
        finally:
            registry.close()

        for result in results:
            store.log_delivery(result)
            print(_format_result(result))

    if outcome is not None:
        print(
            "run summary:",
            f"total_success={outcome.total_success}",
            f"total_failed={outcome.total_failed}",
            f"total_skipped={outcome.total_skipped}",
            f"failed_platforms={len(outcome.failed_platforms)}",
        )

    if not any(result.success for result in results):
        return 1
    return 0


def _cmd_healthcheck(settings: Settings) -> int:
    try:
        with ConfigStore(settings.db_path) as store:
            configured = set(store.list_platform_codes())
    except Exception as exc:
        print(f"config store check failed: {exc}")
        return 1

    for platform in Platform:
        cookies = count_session_cookies(settings.session_path(platform))
        config_state = "configured" if platform.code in configured else "no config"
        session_state = f"{cookies} session cookies" if cookies else "no session"
        print(f"{platform.display_name}: {config_state}, {session_state}")

    if not configured:
        print("no platform configuration stored; use import-config first")
        return 1
    print("healthcheck passed")
    return 0


def _cmd_import_config(settings: Settings, platform_code: str, path: Path) -> int:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ValueError(f"cannot read config file {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError(f"config file {path} must contain a JSON object")

    platform = Platform.from_code(platform_code)
    with ConfigStore(settings.db_path) as store:
        registry = build_default_registry(settings, store)
        try:
            resolver = ConfigResolver(registry, store)
            store.save_config(platform.code, payload)
            if resolver.resolve(platform) is None:
                print(f"warning: stored config for {platform.display_name} does not validate")
                return 1
        finally:
            registry.close()

    print(f"stored config for {platform.display_name}")
    return 0


def _cmd_bootstrap(settings: Settings, args: argparse.Namespace) -> int:
    platform = Platform.from_code(args.platform)
    output_path = args.output or settings.session_path(platform)

    saved_path = bootstrap_platform_session(
        platform,
        output_path,
        login_url=args.login_url,
        headed=not args.headless,
    )
    print(f"saved storage state to: {saved_path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
        logging.basicConfig(
            level=settings.log_level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        if args.command == "run":
            return _cmd_run(settings, args.platform, args.workers)
        if args.command == "healthcheck":
            return _cmd_healthcheck(settings)
        if args.command == "import-config":
            return _cmd_import_config(settings, args.platform, args.file)
        if args.command == "bootstrap-session":
            return _cmd_bootstrap(settings, args)
    except ValueError as exc:
        print(exc)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
