"""
Process-wide logging for the relay.

Every module asks for its logger through get_logger(name, runtime=...).
Loggers of the same runtime share one console handler and one log
file per process run, so a restart never interleaves with the previous
run's file.

Environment:
- KIROGPT_LOG_LEVEL: threshold for every handler (default DEBUG)
- KIROGPT_LOG_DIR: directory for run files (default "logs");
  set it to an empty string to log to the console only
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_RUNTIME = "kirogpt"

_RUN_STAMP = datetime.now().strftime("%Y%m%d-%H%M%S")

_LOGGERS: Dict[str, logging.Logger] = {}
_HANDLERS: Dict[str, List[logging.Handler]] = {}


def _log_level() -> int:
    raw = os.getenv("KIROGPT_LOG_LEVEL", "DEBUG").strip().upper()
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else logging.DEBUG


def _log_dir() -> Optional[Path]:
    raw = os.getenv("KIROGPT_LOG_DIR", "logs")
    return Path(raw) if raw else None


def _runtime_handlers(runtime: str) -> List[logging.Handler]:
    """
    Handlers are built once per runtime and shared by its loggers.
    """
    if runtime in _HANDLERS:
        return _HANDLERS[runtime]

    formatter = logging.Formatter(LOG_FORMAT)
    level = _log_level()

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console.setLevel(level)
    handlers: List[logging.Handler] = [console]

    log_dir = _log_dir()
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        logfile = log_dir / f"{runtime}-{_RUN_STAMP}.log"
        file_handler = logging.FileHandler(logfile, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        handlers.append(file_handler)

    _HANDLERS[runtime] = handlers
    return handlers


def get_logger(
    name: str,
    *,
    runtime: str = DEFAULT_RUNTIME,
) -> logging.Logger:
    """
    Create or retrieve a named logger.

    Parameters:
    - name: logger namespace (e.g. relay.pipeline, discord.client)
    - runtime: log file prefix (kirogpt | discord)
    """
    cache_key = f"{runtime}:{name}"
    if cache_key in _LOGGERS:
        return _LOGGERS[cache_key]

    logger = logging.getLogger(cache_key)
    logger.setLevel(_log_level())
    for handler in _runtime_handlers(runtime):
        logger.addHandler(handler)

    logger.propagate = False
    _LOGGERS[cache_key] = logger

    return logger


def reset_loggers(runtime: Optional[str] = None) -> None:
    """
    Detach and close the handlers of one runtime, or of all of them.
    """
    runtimes = [runtime] if runtime is not None else list(_HANDLERS)

    for key in [k for k in _LOGGERS if k.split(":", 1)[0] in runtimes]:
        logger = _LOGGERS.pop(key)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)

    for name in runtimes:
        for handler in _HANDLERS.pop(name, []):
            handler.close()
