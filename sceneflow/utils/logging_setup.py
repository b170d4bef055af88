"""Logging initialization for the `sceneflow` logger tree."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from sceneflow.config import LoggingSettings, Settings

ROOT_LOGGER = "sceneflow"
_CONFIGURED_ATTR = "_sceneflow_configured"


def _log_file_path(cfg: LoggingSettings) -> Path | None:
    if not cfg.file:
        return None
    path = Path(str(cfg.file))
    return path if path.is_absolute() else Path(cfg.log_dir) / path


def _build_handlers(cfg: LoggingSettings, level: int) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt=str(cfg.format), datefmt=str(cfg.datefmt))
    handlers: list[logging.Handler] = []
    if cfg.console:
        handlers.append(logging.StreamHandler())

    path = _log_file_path(cfg)
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path,
                maxBytes=int(cfg.max_bytes),
                backupCount=int(cfg.backup_count),
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def setup_logging(settings: Settings) -> None:
    """Configure the `sceneflow` logger and its children from Settings.

    Host application loggers are left alone and records do not propagate to
    the root logger. Calling this again is a no-op until `reset_logging()`.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    if getattr(logger, _CONFIGURED_ATTR, False):
        return

    cfg = settings.logging
    level = getattr(logging, str(cfg.level or "INFO").upper(), logging.INFO)
    logger.setLevel(level)
    logger.handlers = _build_handlers(cfg, level)
    logger.propagate = False
    setattr(logger, _CONFIGURED_ATTR, True)
    logger.debug("logging configured (level=%s, file=%s)", logging.getLevelName(level), _log_file_path(cfg))


def reset_logging() -> None:
    """Close handlers and hand the `sceneflow` tree back to the root logger."""
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers = []
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    if hasattr(logger, _CONFIGURED_ATTR):
        delattr(logger, _CONFIGURED_ATTR)
