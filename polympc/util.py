import logging
import sys


def setup_logging(level: int = logging.INFO, main_logger: logging.Logger = None) -> logging.Handler:
    """Send log records to stdout with the project's format.

    Args:
        level: Level for the root logger (and ``main_logger`` if given).
        main_logger: Optional application logger to configure alongside root.

    Returns:
        The installed console handler.
    """
    # Add %(asctime)s for time
    logging.getLogger("casadi").setLevel(logging.INFO)

    log_formatter = logging.Formatter("[%(threadName)-10.10s:%(name)-20.20s] [%(levelname)-6.6s]  %(message)s")
    console_handler = logging.StreamHandler(stream=sys.stdout)
    console_handler.setFormatter(log_formatter)
    root_logger = logging.getLogger("")
    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    if main_logger is not None:
        main_logger.setLevel(level)
        main_logger.addHandler(console_handler)

    return console_handler
