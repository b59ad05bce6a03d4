"""
Logging configuration for the slideshow server

Every module logs through a child of the ``slideshow`` logger
(``get_logger('watcher')`` -> ``slideshow.watcher``), so one call to
setup_logger() at startup routes the server, watcher, connection manager
and rotation messages to the same console and rotating log file.
"""

import logging
import logging.handlers
import os
from datetime import datetime

LOGGER_NAME = 'slideshow'

MODULE_LOGGERS = ('server', 'managers', 'watcher', 'rotation')

# Per-request and per-packet chatter from the web stack
NOISY_LOGGERS = ('werkzeug', 'engineio.server', 'socketio.server', 'watchdog', 'apscheduler')

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'


def _file_handler(log_dir):
    log_file = os.path.join(log_dir, f'slideshow_{datetime.now().strftime("%Y%m%d")}.log')
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    return handler


def _console_handler():
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
    return handler


def setup_logger(log_dir='logs', level=logging.INFO):
    """
    Attach the console and file handlers to the slideshow logger

    Args:
        log_dir: Directory for log files, created if missing
        level: Level of the slideshow logger and its module loggers

    Returns:
        The configured ``slideshow`` logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    for module_name in MODULE_LOGGERS:
        get_logger(module_name).setLevel(logging.NOTSET)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # A second setup in the same process keeps the existing handlers
    if logger.handlers:
        return logger

    os.makedirs(log_dir, exist_ok=True)
    logger.addHandler(_file_handler(log_dir))
    logger.addHandler(_console_handler())
    return logger


def get_logger(module_name):
    """Get a logger for a specific module"""
    return logging.getLogger(f'{LOGGER_NAME}.{module_name}')
