from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from functools import partial

from quick_delivery.backends.base import RecruitmentBackend
from quick_delivery.models import (
    BatchOutcome,
    DeliveryErrorKind,
    DeliveryResult,
    Platform,
    PlatformConfig,
)
from quick_delivery.registry import ConfigResolver, PlatformRegistry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Runner = Callable[[Platform], DeliveryResult]

REMARK_NO_JOBS_COLLECTED = "no jobs collected"
REMARK_NO_DELIVERABLE_JOBS = "no deliverable jobs after filtering"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Stage(Enum):
    INIT = "init"
    AUTHENTICATED = "authenticated"
    COLLECTED = "collected"
    FILTERED = "filtered"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class _Counters:
    scanned: int | None = None
    survivors: int | None = None
    delivered: int | None = None


def _build_result(
    platform: Platform | None,
    terminal: Stage,
    counters: _Counters,
    started_at: datetime,
    ended_at: datetime,
    *,
    error_kind: DeliveryErrorKind | None = None,
    error_message: str | None = None,
    remark: str | None = None,
) -> DeliveryResult:
    """Assemble the one immutable result of a run from its terminal state."""
    ended_at = max(ended_at, started_at)
    skipped = None
    if counters.scanned is not None and counters.survivors is not None:
        skipped = counters.scanned - counters.survivors
    failed = None
    if counters.survivors is not None and counters.delivered is not None:
        failed = counters.survivors - counters.delivered
    return DeliveryResult(
        platform=platform,
        started_at=started_at,
        ended_at=ended_at,
        duration=ended_at - started_at,
        success=terminal is Stage.DONE,
        total_scanned=counters.scanned,
        skipped_count=skipped,
        success_count=counters.delivered,
        failed_count=failed,
        error_kind=error_kind,
        error_message=error_message,
        remark=remark,
    )


def _rejected(
    platform: Platform | None,
    kind: DeliveryErrorKind,
    message: str,
    now: Clock,
) -> DeliveryResult:
    instant = now()
    return _build_result(
        platform,
        Stage.FAILED,
        _Counters(),
        instant,
        instant,
        error_kind=kind,
        error_message=message,
    )


def _run_stages(
    platform: Platform,
    backend: RecruitmentBackend,
    config: PlatformConfig,
    now: Clock,
) -> DeliveryResult:
    name = platform.display_name
    stage = Stage.INIT
    counters = _Counters()
    started_at = now()

    def finish(terminal: Stage, **details) -> DeliveryResult:
        return _build_result(platform, terminal, counters, started_at, now(), **details)

    try:
        logger.info("step 1: checking %s login state", name)
        if not backend.login():
            message = f"{name} login failed, please log in first"
            logger.error(message)
            return finish(Stage.FAILED, error_kind=DeliveryErrorKind.LOGIN_FAILED, error_message=message)
        stage = Stage.AUTHENTICATED

        logger.info("step 2: collecting %s jobs", name)
        scanned = list(backend.collect_jobs() or [])
        if config.recommend_jobs:
            scanned.extend(backend.collect_recommend_jobs() or [])
        counters = replace(counters, scanned=len(scanned))
        stage = Stage.COLLECTED
        logger.info("%s: collected %d jobs", name, len(scanned))
        if not scanned:
            logger.warning("%s: no jobs collected, stopping", name)
            counters = replace(counters, survivors=0, delivered=0)
            return finish(Stage.DONE, remark=REMARK_NO_JOBS_COLLECTED)

        logger.info("step 3: filtering %s jobs", name)
        survivors = list(backend.filter_jobs(scanned) or [])
        if len(survivors) > len(scanned):
            raise ValueError(
                f"filter returned {len(survivors)} jobs from {len(scanned)} collected"
            )
        counters = replace(counters, survivors=len(survivors))
        stage = Stage.FILTERED
        logger.info(
            "%s: %d jobs left after filtering, %d skipped",
            name,
            len(survivors),
            len(scanned) - len(survivors),
        )
        if not survivors:
            logger.warning("%s: no deliverable jobs after filtering, stopping", name)
            counters = replace(counters, delivered=0)
            return finish(Stage.DONE, remark=REMARK_NO_DELIVERABLE_JOBS)

        logger.info("step 4: delivering %d %s jobs", len(survivors), name)
        delivered = backend.deliver_jobs(survivors)
        if (
            isinstance(delivered, bool)
            or not isinstance(delivered, int)
            or not 0 <= delivered <= len(survivors)
        ):
            raise ValueError(
                f"delivery reported {delivered!r} successes for {len(survivors)} jobs"
            )
        counters = replace(counters, delivered=delivered)
        result = finish(Stage.DONE, remark=f"delivered {delivered} jobs")
    except Exception as exc:
        logger.exception("%s quick delivery failed after stage %s", name, stage.value)
        return finish(
            Stage.FAILED,
            error_kind=DeliveryErrorKind.BACKEND_FAULT,
            error_message=f"execution error: {exc}",
        )

    logger.info(
        "%s quick delivery done: scanned=%d filtered=%d success=%d failed=%d skipped=%d took %s",
        name,
        result.total_scanned,
        result.filtered_count,
        result.success_count,
        result.failed_count,
        result.skipped_count,
        result.formatted_duration,
    )
    return result


def execute_quick_delivery(
    platform: Platform | None,
    *,
    registry: PlatformRegistry,
    resolver: ConfigResolver,
    now: Clock = _utc_now,
) -> DeliveryResult:
    """Run login, collect, filter and deliver for one platform.

    Never raises; every failure is reported on the returned result.
    """
    if not isinstance(platform, Platform):
        logger.error("quick delivery requested without a valid platform: %r", platform)
        return _rejected(
            None,
            DeliveryErrorKind.INVALID_ARGUMENT,
            f"platform must be a Platform, got {platform!r}",
            now,
        )

    logger.info("===== quick delivery for %s started =====", platform.display_name)
    try:
        backend = registry.resolve(platform)
        if backend is None:
            message = f"unsupported platform: {platform.display_name}"
            logger.error(message)
            return _rejected(platform, DeliveryErrorKind.UNSUPPORTED_PLATFORM, message, now)

        config = resolver.resolve(platform)
        if config is None:
            message = f"no configuration found for platform: {platform.display_name}"
            logger.warning(message)
            return _rejected(platform, DeliveryErrorKind.CONFIG_NOT_FOUND, message, now)
    except Exception as exc:
        logger.exception("failed to prepare quick delivery for %s", platform.display_name)
        return _rejected(platform, DeliveryErrorKind.BACKEND_FAULT, f"execution error: {exc}", now)

    return _run_stages(platform, backend, config, now)


def _run_isolated(run: Runner, platform: Platform, now: Clock) -> DeliveryResult:
    try:
        return run(platform)
    except Exception as exc:
        logger.exception("quick delivery for %s raised", platform.display_name)
        return _rejected(platform, DeliveryErrorKind.BACKEND_FAULT, f"execution error: {exc}", now)


def summarize(results: dict[Platform, DeliveryResult]) -> BatchOutcome:
    return BatchOutcome(
        results=results,
        total_success=sum(result.success_count or 0 for result in results.values()),
        total_failed=sum(result.failed_count or 0 for result in results.values()),
        total_skipped=sum(result.skipped_count or 0 for result in results.values()),
    )


def execute_all_platforms_quick_delivery(
    *,
    registry: PlatformRegistry,
    resolver: ConfigResolver,
    platforms: Sequence[Platform] | None = None,
    max_workers: int = 1,
    run_one: Runner | None = None,
    now: Clock = _utc_now,
) -> BatchOutcome:
    """Run quick delivery for every platform, one isolated run each.

    With ``max_workers > 1`` platforms run on a thread pool. Each platform
    owns one pre-allocated slot, filled from the coordinating thread, and
    totals are summed only once every slot is filled.
    """
    targets = tuple(Platform) if platforms is None else tuple(dict.fromkeys(platforms))
    run = run_one or partial(execute_quick_delivery, registry=registry, resolver=resolver, now=now)
    slots: dict[Platform, DeliveryResult | None] = dict.fromkeys(targets)

    logger.info("===== quick delivery for all platforms started =====")
    if max_workers <= 1 or len(targets) <= 1:
        for platform in targets:
            slots[platform] = _run_isolated(run, platform, now)
    else:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(targets))) as executor:
            futures = {
                executor.submit(_run_isolated, run, platform, now): platform
                for platform in targets
            }
            for future in as_completed(futures):
                slots[futures[future]] = future.result()

    results = {platform: result for platform, result in slots.items() if result is not None}
    outcome = summarize(results)
    logger.info("===== quick delivery for all platforms done =====")
    logger.info(
        "totals: success=%d failed=%d skipped=%d",
        outcome.total_success,
        outcome.total_failed,
        outcome.total_skipped,
    )
    return outcome
