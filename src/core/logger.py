"""
日志模块

统一使用 loguru，其他模块只需要 `from src.core.logger import logger`。
"""

from __future__ import annotations

import sys

from loguru import logger

from src.config.settings import config

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logger(level: str | None = None, *, serialize: bool | None = None) -> None:
    """(Re)configure the global sink."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or config.log_level).upper(),
        format=_CONSOLE_FORMAT,
        serialize=config.log_json if serialize is None else serialize,
        backtrace=False,
        diagnose=False,
    )


setup_logger()

__all__ = ["logger", "setup_logger"]
