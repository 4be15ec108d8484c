"""
Loguru configuration shared by the API and the CLI.
"""

import sys
from loguru import logger
from .config import settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level> {extra}"
)


def setup_logging(level: str | None = None):
    """
    Replace loguru's default sink with a single stderr sink.

    Records are serialized as JSON outside the dev environment so that
    keyword context (tenant_id, attempts, ...) stays queryable.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
        serialize=settings.app_env != "dev",
        backtrace=False,
        diagnose=False,
    )
    return logger
