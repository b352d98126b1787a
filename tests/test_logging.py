"""structlog setup."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest
import structlog

from tradeframe.core.logging import get_logger, setup_logging, tick_context


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


def test_json_logs(monkeypatch, capsys):
    monkeypatch.setenv("JSON_LOGS", "1")
    setup_logging("INFO")

    get_logger("tests").info("controller.post_init", mode="framework")

    line = capsys.readouterr().err.strip().splitlines()[-1]
    record = json.loads(line)
    assert record["event"] == "controller.post_init"
    assert record["mode"] == "framework"
    assert record["level"] == "info"


def test_level_filtering(monkeypatch, capsys):
    monkeypatch.delenv("JSON_LOGS", raising=False)
    setup_logging("WARNING")

    log = get_logger("tests")
    log.info("universe.refresh")
    log.warning("algorithm.error", message="cash account")

    err = capsys.readouterr().err
    assert "universe.refresh" not in err
    assert "algorithm.error" in err


def test_json_flag_overrides_env(monkeypatch, capsys):
    monkeypatch.setenv("JSON_LOGS", "0")
    setup_logging("INFO", json_logs=True)

    get_logger("tests").info("replay.complete", ticks=3)

    record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
    assert record["ticks"] == 3


def test_tick_context_binds_tick_time(capsys):
    setup_logging("INFO", json_logs=True)
    now = datetime(2024, 1, 2, 15, 0, tzinfo=timezone.utc)
    log = get_logger("tests")

    with tick_context(now):
        log.info("universe.refresh")
    log.info("replay.complete")

    inside, outside = [json.loads(line) for line in capsys.readouterr().err.strip().splitlines()[-2:]]
    assert inside["tick"] == now.isoformat()
    assert "tick" not in outside
