import logging
import sys

import config


def setup_logger(name: str = "drive_api"):
    logger = logging.getLogger(name)
    logger.setLevel(config.LOG_LEVEL.upper())

    # Reloads (uvicorn --reload, test imports) must not stack handlers
    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s'
        ))
        logger.addHandler(console_handler)

    return logger


logger = setup_logger()
