import logging
from logging.handlers import RotatingFileHandler

from common import hexlify


# below DEBUG, used for raw frame dumps
VERBOSE = 5
DEFAULT_LOGGER_NAME = "xbtlib"
LOG_FORMAT = "%(levelname)s %(asctime)s: %(message)s"


def get_logger(logger_name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    logger = logging.getLogger(logger_name)
    if not logger.hasHandlers():
        logger.addHandler(logging.NullHandler())

    return logger


def log_frame(logger: logging.Logger, direction: str, command: str, frame: bytes) -> None:
    if logger.isEnabledFor(VERBOSE):
        logger.log(VERBOSE, "%s %s (%d bytes): %s" % (direction, command, len(frame), hexlify(frame)))


def setup_logger(logger: logging.Logger, level: int = VERBOSE, file_name: str = None) -> None:
    """Attach console output, and a rotating log file when file_name is given."""
    logging.addLevelName(VERBOSE, "VERBOSE")

    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if file_name:
        f = RotatingFileHandler(f"{file_name}.log", mode="a", maxBytes=(50 * 5000), backupCount=1)
        f.setLevel(level)
        f.setFormatter(formatter)
        logger.addHandler(f)


def get_logging_level_from_int(verbosity: int) -> int:
    levels = [logging.WARNING, logging.INFO, logging.DEBUG]
    if verbosity < len(levels):
        return levels[max(verbosity, 0)]
    return VERBOSE
