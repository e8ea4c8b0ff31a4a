import logging
import os
import sys


def _build_logger():
    logger = logging.getLogger("twofa")

    # Prevent creation of handlers more than once
    if logger.handlers:
        return logger

    logger.setLevel(os.getenv("LOG_LEVEL", "DEBUG").upper())

    formatter = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] %(name)s "
        "%(message)s  (in %(filename)s:%(lineno)d)"
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    logger.addHandler(console_handler)

    return logger


log = _build_logger()

def handle_global_exception(exc_type, exc_value, exc_traceback):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    log.critical(
        "UNCAUGHT EXCEPTION",
        exc_info=(exc_type, exc_value, exc_traceback),
    )

sys.excepthook = handle_global_exception
