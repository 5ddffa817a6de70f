"""
Logging configuration for the application
"""
import logging
import os

from config.settings import LOG_DIR, LOG_LEVEL

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_file="bot.log"):
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(os.path.join(LOG_DIR, log_file)))
    logging.basicConfig(level=getattr(logging, LOG_LEVEL.upper(), logging.INFO), format=LOG_FORMAT, handlers=handlers)
    logger = logging.getLogger(__name__)
    return logger
