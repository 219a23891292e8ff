import threading

from quick_delivery.delivery import (
    execute_all_platforms_quick_delivery,
    execute_quick_delivery,
    summarize,
)
from quick_delivery.models import DeliveryErrorKind, Platform
from quick_delivery.registry import ConfigResolver, PlatformRegistry

from fakes import DictConfigSource, FakeBackend, make_job


def _all_configured(backends: list[FakeBackend]):
    registry = PlatformRegistry({backend.platform: backend for backend in backends})
    payloads = {backend.platform.code: {} for backend in backends}
    return registry, ConfigResolver(registry, DictConfigSource(payloads))


def _four_backends() -> list[FakeBackend]:
    return [
        FakeBackend(
            Platform.BOSS_ZHIPIN,
            search_jobs=[make_job("b1"), make_job("b2"), make_job("b3")],
            keep_ids={"b1", "b3"},
            delivered=1,
        ),
        FakeBackend(Platform.ZHILIAN_ZHAOPIN, search_jobs=[]),
        FakeBackend(
            Platform.JOB_51,
            search_jobs=[make_job("j1"), make_job("j2")],
            keep_ids={"j1", "j2"},
            delivered=2,
        ),
        FakeBackend(Platform.LIEPIN, login_ok=False),
    ]


def test_batch_has_one_entry_per_platform_in_declared_order() -> None:
    registry, resolver = _all_configured(_four_backends())

    outcome = execute_all_platforms_quick_delivery(registry=registry, resolver=resolver)

    assert list(outcome.results) == list(Platform)
    assert outcome.results[Platform.BOSS_ZHIPIN].success
    assert outcome.results[Platform.ZHILIAN_ZHAOPIN].remark == "no jobs collected"
    assert outcome.results[Platform.LIEPIN].error_kind is DeliveryErrorKind.LOGIN_FAILED
    assert outcome.failed_platforms == [Platform.LIEPIN]


def test_batch_totals_sum_per_platform_counts() -> None:
    registry, resolver = _all_configured(_four_backends())

    outcome = execute_all_platforms_quick_delivery(registry=registry, resolver=resolver)

    assert outcome.total_success == 3
    assert outcome.total_failed == 1
    assert outcome.total_skipped == 1
    assert outcome.total_success == sum(r.success_count or 0 for r in outcome.results.values())


def test_batch_covers_unregistered_platforms() -> None:
    backend = FakeBackend(Platform.JOB_51, search_jobs=[make_job("1")])
    registry, resolver = _all_configured([backend])

    outcome = execute_all_platforms_quick_delivery(registry=registry, resolver=resolver)

    assert list(outcome.results) == list(Platform)
    assert outcome.results[Platform.JOB_51].success
    for platform in (Platform.BOSS_ZHIPIN, Platform.ZHILIAN_ZHAOPIN, Platform.LIEPIN):
        assert outcome.results[platform].error_kind is DeliveryErrorKind.UNSUPPORTED_PLATFORM
    assert outcome.total_success == 1


def test_backend_fault_in_one_platform_does_not_affect_others() -> None:
    backends = _four_backends()
    backends[0].fail_on = "filter_jobs"
    registry, resolver = _all_configured(backends)

    outcome = execute_all_platforms_quick_delivery(registry=registry, resolver=resolver)

    boss = outcome.results[Platform.BOSS_ZHIPIN]
    assert not boss.success
    assert boss.error_kind is DeliveryErrorKind.BACKEND_FAULT
    assert boss.total_scanned == 3
    assert outcome.results[Platform.JOB_51].success_count == 2
    assert outcome.total_success == 2


def test_escaping_fault_is_isolated_to_its_platform() -> None:
    registry, resolver = _all_configured(_four_backends())
    seen: list[Platform] = []

    def run_one(platform: Platform):
        seen.append(platform)
        if platform is Platform.ZHILIAN_ZHAOPIN:
            raise RuntimeError("orchestrator blew up")
        return execute_quick_delivery(platform, registry=registry, resolver=resolver)

    outcome = execute_all_platforms_quick_delivery(
        registry=registry,
        resolver=resolver,
        run_one=run_one,
    )

    assert seen == list(Platform)
    assert list(outcome.results) == list(Platform)
    zhilian = outcome.results[Platform.ZHILIAN_ZHAOPIN]
    assert not zhilian.success
    assert zhilian.error_kind is DeliveryErrorKind.BACKEND_FAULT
    assert zhilian.error_message == "execution error: orchestrator blew up"
    assert outcome.results[Platform.JOB_51].success


def test_concurrent_batch_matches_sequential_outcome() -> None:
    registry, resolver = _all_configured(_four_backends())
    sequential = execute_all_platforms_quick_delivery(registry=registry, resolver=resolver)

    registry, resolver = _all_configured(_four_backends())
    concurrent = execute_all_platforms_quick_delivery(
        registry=registry,
        resolver=resolver,
        max_workers=4,
    )

    assert list(concurrent.results) == list(Platform)
    assert concurrent.total_success == sequential.total_success
    assert concurrent.total_failed == sequential.total_failed
    assert concurrent.total_skipped == sequential.total_skipped
    for platform in Platform:
        assert concurrent.results[platform].success == sequential.results[platform].success


def test_concurrent_batch_runs_each_platform_exactly_once() -> None:
    registry, resolver = _all_configured(_four_backends())
    lock = threading.Lock()
    counts: dict[Platform, int] = {}

    def run_one(platform: Platform):
        with lock:
            counts[platform] = counts.get(platform, 0) + 1
        if platform is Platform.LIEPIN:
            raise RuntimeError("boom")
        return execute_quick_delivery(platform, registry=registry, resolver=resolver)

    outcome = execute_all_platforms_quick_delivery(
        registry=registry,
        resolver=resolver,
        max_workers=3,
        run_one=run_one,
    )

    assert counts == {platform: 1 for platform in Platform}
    assert list(outcome.results) == list(Platform)
    assert outcome.results[Platform.LIEPIN].error_kind is DeliveryErrorKind.BACKEND_FAULT


def test_explicit_platform_subset_is_deduplicated() -> None:
    registry, resolver = _all_configured(_four_backends())

    outcome = execute_all_platforms_quick_delivery(
        registry=registry,
        resolver=resolver,
        platforms=[Platform.JOB_51, Platform.BOSS_ZHIPIN, Platform.JOB_51],
    )

    assert list(outcome.results) == [Platform.JOB_51, Platform.BOSS_ZHIPIN]


def test_summarize_treats_missing_counts_as_zero() -> None:
    registry, resolver = _all_configured(_four_backends())
    outcome = execute_all_platforms_quick_delivery(registry=registry, resolver=resolver)
    liepin = outcome.results[Platform.LIEPIN]

    assert liepin.success_count is None
    summary = summarize({Platform.LIEPIN: liepin})
    assert (summary.total_success, summary.total_failed, summary.total_skipped) == (0, 0, 0)
