import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(family)s] %(message)s"


class TagFamilyFilter(logging.Filter):
    def __init__(self, family: str):
        super().__init__()
        self.family = family

    def filter(self, record: logging.LogRecord) -> bool:
        record.family = self.family
        return True


def setup_logger(family: str, level: int = logging.INFO) -> logging.Logger:
    """Configure the ``tag_pose`` package logger.

    Module loggers (``tag_pose.detect``, ``tag_pose.worker``, ...) propagate
    here, so one handler covers the whole package.
    """
    logger = logging.getLogger("tag_pose")
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(TagFamilyFilter(family))
        logger.addHandler(handler)

    return logger


def add_file_handler(logger: logging.Logger, family: str, log_path: str, level: Optional[int] = None) -> logging.FileHandler:
    handler = logging.FileHandler(log_path)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(TagFamilyFilter(family))
    if level is not None:
        handler.setLevel(level)
    logger.addHandler(handler)
    return handler
