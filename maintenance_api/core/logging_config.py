import logging
import sys

from maintenance_api.core.config import settings


def setup_logging() -> logging.Logger:
    """
    Configure the service logger once; repeated calls return the same logger.
    """
    logger = logging.getLogger("maintenance_api")
    if logger.handlers:
        return logger
    logger.setLevel(settings.LOG_LEVEL.upper())

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    logger.addHandler(console_handler)
    return logger


logger = setup_logging()
