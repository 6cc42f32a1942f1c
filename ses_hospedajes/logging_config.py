import logging
import sys

ROOT_LOGGER = "ses_hospedajes"

# Console-only; the hosting platform collects stdout
formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(name)s - %(message)s')


def configure_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level.upper())

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level.upper())
    console_handler.setFormatter(formatter)

    # Remove any pre-existing handlers to avoid duplicates
    if logger.hasHandlers():
        logger.handlers.clear()

    logger.addHandler(console_handler)
    logger.propagate = False
    return logger
