"""
Logging setup.

Log records are plain `logging` records from module-level loggers; this
module only decides where they go.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from docsync.config.models import LoggingConfig

LOGGER_NAME = "docsync"


def configure_logging(
    config: LoggingConfig,
    verbose: bool = False,
    console: Console | None = None,
) -> logging.Logger:
    """Configure the docsync logger.

    Args:
        config: Logging configuration
        verbose: Force DEBUG level
        console: Console for rich output (stderr by default)

    Returns:
        The configured package logger
    """
    level = logging.DEBUG if verbose else getattr(logging, config.level.value)

    handlers: list[logging.Handler] = []
    if config.rich:
        handlers.append(
            RichHandler(
                console=console or Console(stderr=True),
                show_path=False,
                rich_tracebacks=True,
            )
        )
    else:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        handlers.append(stream)

    if config.file:
        file_handler = logging.FileHandler(config.file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(level=logging.WARNING, format="%(message)s", handlers=handlers, force=True)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    return logger
