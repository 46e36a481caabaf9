"""Logging configuration using loguru."""

import sys

from loguru import logger


def format_record(record: dict) -> str:
    """Format a log record for terminal output.

    Debug records carry their origin so ``--verbose`` output can be traced.
    """
    if record["level"].no <= 10:
        return (
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>\n"
            "{exception}"
        )
    return "<level>{level: <8}</level> | <level>{message}</level>\n{exception}"


def setup_logging(log_level: str = "WARNING") -> None:
    """Configure loguru for the CLI.

    Args:
        log_level: Minimum log level to output
    """
    # Remove default handler
    logger.remove()

    # stdout is reserved for command output
    logger.add(
        sys.stderr,
        format=format_record,
        level=log_level.upper(),
        colorize=None,
    )


__all__ = ["logger", "setup_logging"]
