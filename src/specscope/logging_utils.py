"""Process-wide logging for specscope tools.

Each process writes to its own timestamped directory under the log root:
``~/.specscope/logs/<stamp>/`` normally, ``./logs/<stamp>/`` when
``SPECSCOPE_DEV`` is set, or ``$SPECSCOPE_LOG_DIR/<stamp>/`` when that is given.
Render sessions run on worker threads, so records carry the thread name.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
import warnings
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3

# PNG/JPEG エンコードのたびに DEBUG を吐くので開発モードでも抑える
_NOISY_LOGGERS = ("PIL",)

_run_log_dir: Path | None = None


def is_dev_mode() -> bool:
    return os.environ.get("SPECSCOPE_DEV", "").lower() in {"1", "true", "yes"}


def resolve_log_level(dev_mode: bool | None = None) -> int:
    """``SPECSCOPE_LOG_LEVEL`` if set to a known level name, else DEBUG in dev mode and INFO otherwise."""
    name = os.environ.get("SPECSCOPE_LOG_LEVEL", "").strip().upper()
    level = logging.getLevelNamesMapping().get(name) if name else None
    if level is not None:
        return level
    if dev_mode is None:
        dev_mode = is_dev_mode()
    return logging.DEBUG if dev_mode else logging.INFO


def log_root(app_name: str, dev_mode: bool | None = None) -> Path:
    override = os.environ.get("SPECSCOPE_LOG_DIR")
    if override:
        return Path(override)
    if dev_mode is None:
        dev_mode = is_dev_mode()
    return Path.cwd() / "logs" if dev_mode else Path.home() / f".{app_name}" / "logs"


def run_log_dir(app_name: str, dev_mode: bool | None = None) -> Path:
    """Log directory of this process; fixed on first call."""
    global _run_log_dir
    if _run_log_dir is None:
        _run_log_dir = log_root(app_name, dev_mode) / datetime.now().strftime("%Y%m%d-%H%M%S")
    return _run_log_dir


def configure_logging(app_name: str = "specscope", console: bool = True) -> Path:
    """Install file (and optionally console) handlers on the root logger.

    Safe to call more than once; handlers are not duplicated. Returns the
    path of the log file.
    """
    dev_mode = is_dev_mode()
    level = resolve_log_level(dev_mode)
    log_dir = run_log_dir(app_name, dev_mode)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"{app_name}.log"
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)
    if str(log_path) not in {getattr(handler, "baseFilename", None) for handler in root.handlers}:
        file_handler = RotatingFileHandler(
            log_path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    if console and not any(type(handler) is logging.StreamHandler for handler in root.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))

    logging.captureWarnings(True)
    warnings.simplefilter("default")
    _install_excepthooks(root)
    root.info("logging initialized at %s (level=%s)", log_path, logging.getLevelName(level))
    return log_path


def _install_excepthooks(root: logging.Logger) -> None:
    def _excepthook(exc_type, exc_value, exc_traceback) -> None:  # type: ignore[no-untyped-def]
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        root.exception("uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))

    def _thread_excepthook(args: threading.ExceptHookArgs) -> None:
        if args.exc_type is SystemExit:
            return
        thread_name = args.thread.name if args.thread is not None else "?"
        root.error(
            "uncaught exception in thread %s",
            thread_name,
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )

    sys.excepthook = _excepthook
    threading.excepthook = _thread_excepthook
