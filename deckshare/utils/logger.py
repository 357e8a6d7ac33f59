# deckshare/utils/logger.py
# File loggers: logs/access.log for activity, logs/error.log for exceptions

import logging
import os
import traceback

from deckshare import config

os.makedirs(config.LOGS_PATH, exist_ok=True)

_FORMAT = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S")


def _file_logger(name: str, filename: str, level: int) -> logging.Logger:
    lg = logging.getLogger(name)
    lg.setLevel(level)
    lg.propagate = False
    # repeated imports (reload, tests) must not stack handlers
    if not lg.handlers:
        handler = logging.FileHandler(os.path.join(config.LOGS_PATH, filename), encoding="utf-8")
        handler.setFormatter(_FORMAT)
        lg.addHandler(handler)
    return lg


access_logger = _file_logger("access", "access.log", logging.INFO)
error_logger = _file_logger("error", "error.log", logging.ERROR)


def log_info(message: str) -> None:
    access_logger.info(message)


def log_exception(e: BaseException, context: str = "") -> None:
    tb = "".join(traceback.format_exception(type(e), e, e.__traceback__))
    error_logger.error(f"Exception in {context}: {type(e).__name__}: {e}\n{tb}")
