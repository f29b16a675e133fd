"""
Logging setup for the sync engine.

Module loggers (``logging.getLogger(__name__)``) all sit under the
``nyc_compliance`` logger, so configuring it once covers every fetcher,
the resolver and the scheduler.
"""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional


LOGGER_NAME = "nyc_compliance"
LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Third-party loggers that are only useful when debugging the engine itself
NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")

_logger: Optional[logging.Logger] = None


def get_logger() -> logging.Logger:
    global _logger
    if _logger is None:
        _logger = logging.getLogger(LOGGER_NAME)
    return _logger


def log_banner(title: str, char: str = "=", width: int = 60) -> None:
    """Log ``title`` between two rule lines."""
    logger = get_logger()
    logger.info(char * width)
    logger.info(title)
    logger.info(char * width)


def setup_logging(
    output_dir: Path,
    verbose: bool = False,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """
    Send engine logs to stdout and to ``<output_dir>/sync.log``.

    Args:
        output_dir: Directory for sync.log (created if missing)
        verbose: DEBUG on the console instead of INFO
        quiet: Logger names capped at WARNING unless verbose

    Returns:
        The package logger
    """
    logger = get_logger()
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(formatter)

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    log_file = output_dir / "sync.log"
    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    if not verbose:
        for name in quiet:
            logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug(f"Log file: {log_file}")
    return logger
