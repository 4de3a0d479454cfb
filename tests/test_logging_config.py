"""Test unified logging configuration.

Tests for src.utils.logging_config:
    - setup_logging is idempotent (no duplicate handlers)
    - JSON and human formats carry context fields and the thread name
    - push_context / pop_context
    - Context copied into a worker thread follows its records

Run:
    pytest tests/test_logging_config.py -v
"""

import contextvars
import json
import logging
import logging.handlers
import sys
import threading

import pytest

from src.utils import logging_config


@pytest.fixture(autouse=True)
def restore_root_logger(monkeypatch):
    """Restore root logger, excepthook and context after each test."""
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    logging_config.pop_context()
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging.captureWarnings(False)
    logging_config.pop_context()


def _json_lines(path):
    return [json.loads(line) for line in path.read_text().strip().splitlines()]


# ============================================================================
# SETUP
# ============================================================================

def test_logging_idempotency(tmp_path):
    """Test repeated setup does not duplicate records."""
    log_path = tmp_path / "arm.log"

    for _ in range(2):
        logging_config.setup_logging(
            log_level="INFO",
            log_file=str(log_path),
            json=True,
            to_stderr=False,
            context={"app": "test"},
        )
    logging_config.get_logger("utils_test").info("hello")

    lines = _json_lines(log_path)
    assert len(lines) == 1
    assert lines[0]["msg"] == "hello"
    assert lines[0]["app"] == "test"
    assert lines[0]["lvl"] == "INFO"


def test_log_file_directory_created(tmp_path):
    """Test missing log directory is created."""
    log_path = tmp_path / "outputs" / "logs" / "arm.log"
    logging_config.setup_logging(log_file=str(log_path), to_stderr=False)
    logging_config.get_logger("utils_test").warning("x")
    assert log_path.exists()


def test_unknown_level_rejected():
    """Test an unknown level name raises."""
    with pytest.raises(ValueError):
        logging_config.setup_logging(log_level="LOUD", to_stderr=False)


def test_unknown_rotation_rejected(tmp_path):
    """Test an unknown rotation mode raises."""
    with pytest.raises(ValueError, match="rotation"):
        logging_config.setup_logging(
            log_file=str(tmp_path / "a.log"),
            rotate={"mode": "hourly"},
            to_stderr=False,
        )


def test_size_rotation(tmp_path):
    """Test size rotation installs a RotatingFileHandler."""
    handlers = logging_config.setup_logging(
        log_file=str(tmp_path / "a.log"),
        rotate={"mode": "size", "max_bytes": 1000, "backup_count": 2},
        to_stderr=False,
    )
    assert any(
        isinstance(h, logging.handlers.RotatingFileHandler) for h in handlers
    )


def test_set_level(tmp_path):
    """Test runtime level change."""
    log_path = tmp_path / "arm.log"
    logging_config.setup_logging(
        log_level="INFO", log_file=str(log_path), json=True, to_stderr=False,
    )
    logger = logging_config.get_logger("utils_test")
    logger.debug("hidden")
    logging_config.set_level("debug")
    logger.debug("shown")

    assert [r["msg"] for r in _json_lines(log_path)] == ["shown"]


# ============================================================================
# FORMAT AND CONTEXT
# ============================================================================

def test_human_format_fields(tmp_path):
    """Test human lines carry level, thread name and context."""
    log_path = tmp_path / "arm.log"
    logging_config.setup_logging(log_file=str(log_path), to_stderr=False)
    logging_config.push_context(robot="10.0.0.5", handle=42)
    logging_config.get_logger("utils_test").info("Connected")

    line = log_path.read_text().strip()
    assert "| INFO" in line
    assert "| MainThread |" in line
    assert "robot=10.0.0.5 handle=42" in line
    assert line.endswith("| Connected")


def test_push_and_pop_context():
    """Test context fields are merged and removed."""
    logging_config.push_context(app="monitor", robot="10.0.0.5")
    logging_config.push_context(handle=42)
    assert logging_config.get_context() == {
        "app": "monitor", "robot": "10.0.0.5", "handle": 42,
    }

    logging_config.pop_context(keys=["handle", "missing"])
    assert logging_config.get_context() == {"app": "monitor", "robot": "10.0.0.5"}

    logging_config.pop_context()
    assert logging_config.get_context() == {}


def test_context_follows_copied_thread(tmp_path):
    """Test a thread started in a copied context logs its starter's fields."""
    log_path = tmp_path / "arm.log"
    logging_config.setup_logging(
        log_file=str(log_path), json=True, to_stderr=False,
    )
    logging_config.push_context(robot="10.0.0.5")

    def work():
        logging_config.get_logger("utils_test").info("from worker")

    ctx = contextvars.copy_context()
    t = threading.Thread(target=ctx.run, args=(work,), name="telemetry-poll-7")
    t.start()
    t.join(timeout=5.0)

    rec = _json_lines(log_path)[0]
    assert rec["robot"] == "10.0.0.5"
    assert rec["thread"] == "telemetry-poll-7"


def test_exception_in_json(tmp_path):
    """Test tracebacks are included in JSON records."""
    log_path = tmp_path / "arm.log"
    logging_config.setup_logging(
        log_file=str(log_path), json=True, to_stderr=False,
    )
    try:
        raise RuntimeError("driver glitch")
    except RuntimeError:
        logging_config.get_logger("utils_test").exception("cycle failed")

    rec = _json_lines(log_path)[0]
    assert "driver glitch" in rec["exc"]


def test_install_excepthook(tmp_path):
    """Test uncaught exceptions are logged at CRITICAL."""
    log_path = tmp_path / "arm.log"
    logging_config.setup_logging(
        log_file=str(log_path), json=True, to_stderr=False,
    )
    logging_config.install_excepthook()
    try:
        raise ValueError("boom")
    except ValueError:
        sys.excepthook(*sys.exc_info())

    rec = _json_lines(log_path)[0]
    assert rec["lvl"] == "CRITICAL"
    assert "boom" in rec["exc"]
