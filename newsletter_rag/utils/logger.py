"""Structured logging setup using Loguru."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

# SDK loggers that emit one INFO line per HTTP request
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "google_genai")


def setup_logger(
    log_level: str = "INFO",
    log_file: Optional[str] = "logs/newsletter_rag.log",
) -> None:
    """
    Configure loguru for the pipeline.

    - Console: coloured, human-readable
    - File: rotating, compressed (skipped when log_file is None)
    """
    logger.remove()

    logger.add(
        sys.stderr,
        level=log_level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
    )

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=log_level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} - {message}",
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            enqueue=True,
        )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"Logger initialised | level={log_level} | file={log_file or '-'}")
