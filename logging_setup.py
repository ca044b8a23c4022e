"""Logging configuration helpers."""

from __future__ import annotations

import logging

from config import LoggingConfig


def configure_logging(config: LoggingConfig) -> None:
    """Setup Python logging according to provided configuration."""

    log_level = getattr(logging, config.level.upper(), logging.WARNING)

    handlers: list = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(_build_formatter())
    handlers.append(console_handler)

    if config.filepath is not None:
        log_path = config.filepath
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(_build_formatter())
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)


def _build_formatter() -> logging.Formatter:
    fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    return logging.Formatter(fmt=fmt, datefmt=datefmt)
