import logging

import pytest

from shared.logging.logger import get_logger, reset_loggers

RUNTIME = "logger-test"


@pytest.fixture(autouse=True)
def isolated_runtime():
    reset_loggers(RUNTIME)
    yield
    reset_loggers(RUNTIME)


def test_loggers_of_a_runtime_share_one_run_file(tmp_path, monkeypatch):
    monkeypatch.setenv("KIROGPT_LOG_DIR", str(tmp_path))

    first = get_logger("relay.pipeline", runtime=RUNTIME)
    second = get_logger("discord.client", runtime=RUNTIME)
    first.info("first line")
    second.warning("second line")
    for handler in first.handlers:
        handler.flush()

    files = list(tmp_path.glob(f"{RUNTIME}-*.log"))
    assert len(files) == 1
    text = files[0].read_text(encoding="utf-8")
    assert f"INFO | {RUNTIME}:relay.pipeline | first line" in text
    assert f"WARNING | {RUNTIME}:discord.client | second line" in text


def test_same_name_returns_cached_logger(tmp_path, monkeypatch):
    monkeypatch.setenv("KIROGPT_LOG_DIR", str(tmp_path))

    logger = get_logger("relay.pipeline", runtime=RUNTIME)

    assert get_logger("relay.pipeline", runtime=RUNTIME) is logger
    assert len(logger.handlers) == 2
    assert logger.propagate is False


def test_empty_log_dir_logs_to_console_only(monkeypatch):
    monkeypatch.setenv("KIROGPT_LOG_DIR", "")

    logger = get_logger("relay.pipeline", runtime=RUNTIME)

    assert len(logger.handlers) == 1
    assert not isinstance(logger.handlers[0], logging.FileHandler)


def test_level_comes_from_environment(monkeypatch):
    monkeypatch.setenv("KIROGPT_LOG_DIR", "")
    monkeypatch.setenv("KIROGPT_LOG_LEVEL", "warning")

    logger = get_logger("relay.pipeline", runtime=RUNTIME)

    assert logger.level == logging.WARNING
    assert logger.handlers[0].level == logging.WARNING


def test_unknown_level_falls_back_to_debug(monkeypatch):
    monkeypatch.setenv("KIROGPT_LOG_DIR", "")
    monkeypatch.setenv("KIROGPT_LOG_LEVEL", "chatty")

    assert get_logger("relay.pipeline", runtime=RUNTIME).level == logging.DEBUG


def test_reset_detaches_handlers(monkeypatch):
    monkeypatch.setenv("KIROGPT_LOG_DIR", "")
    logger = get_logger("relay.pipeline", runtime=RUNTIME)

    reset_loggers(RUNTIME)

    assert logger.handlers == []
    assert get_logger("relay.pipeline", runtime=RUNTIME).handlers
