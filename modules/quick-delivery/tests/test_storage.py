from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from quick_delivery.models import DeliveryErrorKind, DeliveryResult, Platform
from quick_delivery.storage import ConfigStore


def _result(success: bool = True) -> DeliveryResult:
    instant = datetime(2026, 2, 19, 9, 0, tzinfo=timezone.utc)
    return DeliveryResult(
        platform=Platform.LIEPIN,
        started_at=instant,
        ended_at=instant,
        duration=instant - instant,
        success=success,
        total_scanned=4 if success else None,
        skipped_count=1 if success else None,
        success_count=2 if success else None,
        failed_count=1 if success else None,
        error_kind=None if success else DeliveryErrorKind.LOGIN_FAILED,
        error_message=None if success else "Liepin login failed, please log in first",
    )


def test_load_by_platform_code_returns_none_when_missing(tmp_path) -> None:
    with ConfigStore(tmp_path / "state.sqlite") as store:
        assert store.load_by_platform_code("boss") is None


def test_save_config_upserts_payload(tmp_path) -> None:
    db_path = tmp_path / "state.sqlite"

    with ConfigStore(db_path) as store:
        store.save_config("boss", {"keywords": ["python"]}, updated_at_utc="2026-02-19T00:00:00+00:00")
        store.save_config("boss", {"keywords": ["后端"], "recommend_jobs": True})

    with ConfigStore(db_path) as store:
        entity = store.load_by_platform_code("boss")
        assert entity is not None
        assert entity.platform_code == "boss"
        assert entity.payload == {"keywords": ["后端"], "recommend_jobs": True}
        assert entity.updated_at != "2026-02-19T00:00:00+00:00"
        assert store.list_platform_codes() == ["boss"]


def test_log_delivery_records_success_and_failure(tmp_path) -> None:
    with ConfigStore(tmp_path / "state.sqlite") as store:
        store.log_delivery(_result(success=True))
        store.log_delivery(_result(success=False))

        assert store.count_delivery_logs() == 2
        assert store.count_delivery_logs("liepin") == 2
        assert store.count_delivery_logs("boss") == 0


def test_store_is_usable_from_worker_threads(tmp_path) -> None:
    with ConfigStore(tmp_path / "state.sqlite") as store:
        store.save_config("liepin", {"keywords": ["python"]})

        def work(index: int) -> int:
            store.log_delivery(_result(success=index % 2 == 0))
            store.save_config(f"platform-{index}", {"max_deliveries": index})
            assert store.load_by_platform_code("liepin") is not None
            return store.count_delivery_logs("liepin")

        with ThreadPoolExecutor(max_workers=4) as executor:
            counts = list(executor.map(work, range(20)))

        assert store.count_delivery_logs() == 20
        assert len(store.list_platform_codes()) == 21
        assert all(1 <= count <= 20 for count in counts)
