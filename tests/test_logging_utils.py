import logging
import sys
import threading
from collections.abc import Iterator
from pathlib import Path

import pytest

from specscope import logging_utils


@pytest.fixture
def isolated_logging(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    pil_level = logging.getLogger("PIL").level
    monkeypatch.setattr(logging_utils, "_run_log_dir", None)
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(threading, "excepthook", threading.excepthook)
    monkeypatch.delenv("SPECSCOPE_LOG_DIR", raising=False)
    monkeypatch.delenv("SPECSCOPE_LOG_LEVEL", raising=False)
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging.getLogger("PIL").setLevel(pil_level)
    logging.captureWarnings(False)


def _flush_root() -> None:
    for handler in logging.getLogger().handlers:
        handler.flush()


def test_dev_mode_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SPECSCOPE_DEV", raising=False)
    assert not logging_utils.is_dev_mode()
    monkeypatch.setenv("SPECSCOPE_DEV", "true")
    assert logging_utils.is_dev_mode()


def test_log_level_resolution(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SPECSCOPE_LOG_LEVEL", raising=False)
    assert logging_utils.resolve_log_level(dev_mode=True) == logging.DEBUG
    assert logging_utils.resolve_log_level(dev_mode=False) == logging.INFO
    monkeypatch.setenv("SPECSCOPE_LOG_LEVEL", "warning")
    assert logging_utils.resolve_log_level(dev_mode=True) == logging.WARNING
    monkeypatch.setenv("SPECSCOPE_LOG_LEVEL", "chatty")
    assert logging_utils.resolve_log_level(dev_mode=False) == logging.INFO


def test_log_root_location(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("SPECSCOPE_LOG_DIR", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    assert logging_utils.log_root("specscope", dev_mode=False) == tmp_path / "home" / ".specscope" / "logs"
    assert logging_utils.log_root("specscope", dev_mode=True) == tmp_path / "logs"
    monkeypatch.setenv("SPECSCOPE_LOG_DIR", str(tmp_path / "elsewhere"))
    assert logging_utils.log_root("specscope", dev_mode=True) == tmp_path / "elsewhere"


def test_configure_logging_writes_run_log(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, isolated_logging: None
) -> None:
    monkeypatch.setenv("SPECSCOPE_DEV", "1")
    monkeypatch.chdir(tmp_path)

    log_path = logging_utils.configure_logging()
    logging.getLogger("specscope.renderer").debug("render start")
    _flush_root()

    assert log_path.parent.parent == tmp_path / "logs"
    assert log_path.name == "specscope.log"
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("PIL").level == logging.INFO
    text = log_path.read_text(encoding="utf-8")
    assert "logging initialized" in text
    assert "[MainThread] specscope.renderer render start" in text

    # 二回目の呼び出しでハンドラは増えない
    count = len(logging.getLogger().handlers)
    assert logging_utils.configure_logging() == log_path
    assert len(logging.getLogger().handlers) == count


def test_configure_logging_without_console(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, isolated_logging: None
) -> None:
    monkeypatch.setenv("SPECSCOPE_LOG_DIR", str(tmp_path))
    before = [handler for handler in logging.getLogger().handlers if type(handler) is logging.StreamHandler]

    log_path = logging_utils.configure_logging(console=False)

    after = [handler for handler in logging.getLogger().handlers if type(handler) is logging.StreamHandler]
    assert after == before
    assert log_path.parent.parent == tmp_path


def test_uncaught_errors_are_logged(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, isolated_logging: None) -> None:
    monkeypatch.setenv("SPECSCOPE_LOG_DIR", str(tmp_path))
    log_path = logging_utils.configure_logging(console=False)

    try:
        raise RuntimeError("escaped")
    except RuntimeError as exc:
        sys.excepthook(type(exc), exc, exc.__traceback__)

    def _fail() -> None:
        raise ValueError("worker blew up")

    worker = threading.Thread(target=_fail, name="specscope-render-test")
    worker.start()
    worker.join()
    _flush_root()

    text = log_path.read_text(encoding="utf-8")
    assert "uncaught exception" in text
    assert "RuntimeError: escaped" in text
    assert "uncaught exception in thread specscope-render-test" in text
    assert "ValueError: worker blew up" in text
