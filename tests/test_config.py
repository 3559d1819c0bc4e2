from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from tidyscan.core.config import Settings
from tidyscan.core.logging import configure_logging


def test_defaults_and_database_url(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TIDYSCAN_STATE_ROOT", (tmp_path / "state").as_posix())
    monkeypatch.setenv("TIDYSCAN_LOG_LEVEL", "debug")

    settings = Settings()

    assert settings.state_root.is_dir()
    assert settings.log_level == "DEBUG"
    assert settings.duplicate_time_window_seconds == 60
    assert settings.similar_time_window_seconds == 5
    assert settings.min_phone_digits == 6
    assert settings.effective_database_url.endswith("/state/tidyscan.sqlite3")


@pytest.mark.parametrize("state_root", ["relative/state", "~/state", "/tmp/$HOME/state"])
def test_state_root_must_be_plain_absolute_path(state_root: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TIDYSCAN_STATE_ROOT", state_root)
    with pytest.raises(ValidationError):
        Settings()


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("TIDYSCAN_LOG_LEVEL", "chatty"),
        ("TIDYSCAN_SIMILAR_TIME_WINDOW_SECONDS", "120"),
        ("TIDYSCAN_SIMILAR_NAME_MAX_RATIO", "0"),
        ("TIDYSCAN_SCAN_WORKER_THREADS", "0"),
    ],
)
def test_invalid_runtime_settings_rejected(
    name: str,
    value: str,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("TIDYSCAN_STATE_ROOT", (tmp_path / "state").as_posix())
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        Settings()


def test_configure_logging_installs_one_handler() -> None:
    root = logging.getLogger()
    original_level = root.level
    try:
        configure_logging("warning")
        configure_logging("info")
        names = [handler.get_name() for handler in root.handlers]
        assert names.count("tidyscan-stream") == 1
        assert root.level == logging.INFO
    finally:
        for handler in list(root.handlers):
            if handler.get_name() == "tidyscan-stream":
                root.removeHandler(handler)
        root.setLevel(original_level)
