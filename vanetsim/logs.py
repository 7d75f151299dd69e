"""
Run logger lifecycle

The CLI builds one logger at process start and hands it to each
component; ``close_logging`` flushes and detaches the handlers at exit.
"""

import logging
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler


LOGGER_NAME = "vanetsim"
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: str = "INFO",
                      log_file: Optional[Path] = None,
                      name: str = LOGGER_NAME) -> logging.Logger:
    """
    Create the run logger

    Args:
        level: Log level name
        log_file: Optional file that receives a plain-text copy of the log
        name: Logger name (children such as ``vanetsim.traces`` propagate to it)

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())
    logger.propagate = False

    console_handler = RichHandler(show_path=False, markup=False)
    console_handler.setFormatter(logging.Formatter('%(message)s'))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    # Route ParseWarning/EmptyTraceWarning/ArithmeticGuard into the log
    logging.captureWarnings(True)
    warnings_logger = logging.getLogger("py.warnings")
    for handler in logger.handlers:
        warnings_logger.addHandler(handler)
    warnings_logger.propagate = False

    return logger


def close_logging(logger: logging.Logger):
    """Flush and remove every handler attached by ``configure_logging``"""
    warnings_logger = logging.getLogger("py.warnings")
    for handler in list(logger.handlers):
        handler.flush()
        handler.close()
        logger.removeHandler(handler)
        if handler in warnings_logger.handlers:
            warnings_logger.removeHandler(handler)
    logger.propagate = True
    warnings_logger.propagate = True
    logging.captureWarnings(False)
