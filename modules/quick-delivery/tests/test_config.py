from pathlib import Path

import pytest

from quick_delivery.config import DEFAULT_DB_PATH, load_settings, mask_secret
from quick_delivery.models import Platform


def test_load_settings_defaults_from_empty_environment() -> None:
    settings = load_settings(environ={})

    assert settings.db_path == DEFAULT_DB_PATH
    assert settings.batch_max_workers == 1
    assert settings.http_retry_attempts == 3
    assert settings.log_level == "INFO"


def test_load_settings_reads_overrides() -> None:
    settings = load_settings(
        environ={
            "QUICK_DELIVERY_DB_PATH": "/tmp/qd.sqlite",
            "SESSION_DIR": "/tmp/sessions",
            "BATCH_MAX_WORKERS": "4",
            "LOG_LEVEL": "debug",
            "USER_AGENT": "quick-delivery-test",
        }
    )

    assert settings.db_path == Path("/tmp/qd.sqlite")
    assert settings.batch_max_workers == 4
    assert settings.log_level == "DEBUG"
    assert settings.user_agent == "quick-delivery-test"
    assert settings.session_path(Platform.JOB_51) == Path("/tmp/sessions/51job_storage_state.json")


def test_invalid_settings_raise_value_error() -> None:
    with pytest.raises(ValueError):
        load_settings(environ={"BATCH_MAX_WORKERS": "0"})
    with pytest.raises(ValueError):
        load_settings(environ={"LOG_LEVEL": "chatty"})


def test_mask_secret_keeps_edges_only() -> None:
    assert mask_secret("abcdefgh") == "abc***gh"
    assert mask_secret("abc") == "***"
    assert mask_secret("") == ""
