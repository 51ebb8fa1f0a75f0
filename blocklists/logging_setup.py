"""
logging_setup.py - Process-wide logging configuration.

Configures the root logger once with a stream handler. The level comes from
the caller, then the LOG_LEVEL environment variable, then INFO.
"""
from __future__ import annotations

import logging
import os


_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _get_log_level(level: str | None) -> int:
    name = (level or os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    return getattr(logging, name, logging.INFO)


def setup_logging(level: str | None = None) -> None:
    root_logger = logging.getLogger()
    if getattr(root_logger, "_blocklists_logging_configured", False):
        return

    log_level = _get_log_level(level)
    root_logger.setLevel(log_level)

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    for logger_name in ("aiohttp.access", "aiohttp.server", "aiohttp.web"):
        logging.getLogger(logger_name).setLevel(log_level)

    root_logger._blocklists_logging_configured = True
