# -*- coding: utf-8 -*-
from __future__ import annotations
import logging, logging.handlers
from pathlib import Path

LOG_FILENAME = "gtin_pool.log"


def _has_pool_handler(lg: logging.Logger) -> bool:
    return any(str(getattr(h, "baseFilename", "")).endswith(LOG_FILENAME) for h in lg.handlers)


def setup_logging(settings) -> Path:
    """Configure rotating file logging under GTIN_DATA_ROOT/logs/gtin_pool.log"""
    log_dir = Path(settings.GTIN_DATA_ROOT).expanduser() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME
    level = logging.getLevelName(str(settings.LOG_LEVEL).upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=settings.LOG_MAX_BYTES, backupCount=3, encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s"))
    handler.setLevel(level)

    root = logging.getLogger()
    root.setLevel(level)
    if not _has_pool_handler(root):
        root.addHandler(handler)

    # uvicorn/fastapi loggers don't always propagate to root
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        lg = logging.getLogger(name)
        lg.setLevel(level)
        if not _has_pool_handler(lg):
            lg.addHandler(handler)

    return log_path
