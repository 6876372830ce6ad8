"""
Logging Configuration
Sets up the 'snowsim' logger for the CLI and for embedding applications.
"""
import logging
import sys
from typing import Optional

LOGGER_NAME = "snowsim"

# Frame diagnostics arrive many times a second; keep milliseconds
LOG_FORMAT = '%(asctime)s.%(msecs)03d %(levelname)-7s %(name)s: %(message)s'
DATE_FORMAT = '%H:%M:%S'


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None,
                  propagate: bool = False) -> logging.Logger:
    """
    Configures the logger for the 'snowsim' namespace.

    Args:
        level: Logging level (e.g. logging.DEBUG for per-frame diagnostics)
        log_file: Optional path to save logs to a file.
        propagate: Also hand records to the root logger (e.g. for pytest's caplog).

    Only handlers installed by a previous call are replaced; handlers added
    by other code are left alone.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = propagate

    for handler in [h for h in logger.handlers if getattr(h, "_snowsim", False)]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w', encoding='utf-8'))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler._snowsim = True
        logger.addHandler(handler)

    logger.info("Logging initialized at %s", logging.getLevelName(level))
    return logger
