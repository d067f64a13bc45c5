import logging
import sys
from logging.handlers import RotatingFileHandler

from app import config

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that flood the logs at INFO
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "openai")


def _file_handler(filename: str, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        config.LOGS_DIR / filename,
        maxBytes=config.LOG_MAX_BYTES,
        backupCount=config.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def setup_logging():
    """
    Configure application logging.

    - development: console shows everything down to LOG_LEVEL
    - production: console only WARNING and above, details go to the files
    - app.log keeps every record, errors.log only ERROR and above
    """
    config.LOGS_DIR.mkdir(parents=True, exist_ok=True)

    console_level = logging.WARNING if config.IS_PRODUCTION else logging.DEBUG
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)

    handlers = [
        console_handler,
        _file_handler("app.log", logging.DEBUG),
        _file_handler("errors.log", logging.ERROR),
    ]

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    root_logger = logging.getLogger()
    root_logger.setLevel(config.LOG_LEVEL)

    # setup_logging may run more than once (reload, tests)
    for old in list(root_logger.handlers):
        root_logger.removeHandler(old)
        old.close()

    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured: environment=%s level=%s dir=%s", config.ENVIRONMENT, config.LOG_LEVEL, config.LOGS_DIR
    )
    return root_logger
