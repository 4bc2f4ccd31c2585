"""
Logging setup for the API process.

One stream handler on the root logger; every module logs through
``logging.getLogger(__name__)``.
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that are too chatty at INFO
NOISY_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger. Safe to call more than once: the handler
    installed by a previous call is replaced, not duplicated.

    Args:
        level: Log level name, e.g. "DEBUG" or "INFO"
    """
    root = logging.getLogger()
    root.setLevel(level)

    for handler in list(root.handlers):
        if getattr(handler, "_chatly", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler._chatly = True
    root.addHandler(handler)

    if level != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
