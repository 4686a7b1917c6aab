import logging
import sys
import json
import copy
import traceback
from pathlib import Path
from logging.handlers import RotatingFileHandler

from core.config import settings

LOGS_DIR = Path(settings.LOG_DIR)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


class ColoredFormatter(logging.Formatter):
    """Coloured level names for the terminal."""

    COLORS = {
        'DEBUG': '\033[36m',  # cyan
        'INFO': '\033[32m',  # green
        'WARNING': '\033[33m',  # yellow
        'ERROR': '\033[31m',  # red
        'CRITICAL': '\033[35m',  # magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        # the same record also reaches the file handler
        record = copy.copy(record)
        log_color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        record.levelname = f"{log_color}{record.levelname}{self.COLORS['RESET']}"
        return super().format(record)


def setup_logger(
        name: str,
        log_file: str = None,
        level: int = None,
        max_bytes: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5
) -> logging.Logger:
    """
    Build a logger writing to the console and, optionally, to a rotating file.

    Args:
        name: logger name
        log_file: file name under LOG_DIR (console only when None)
        level: DEBUG, INFO, ... (defaults to LOG_LEVEL)
        max_bytes: size of a log file before it is rotated
        backup_count: number of rotated files to keep
    """
    if level is None:
        level = logging.getLevelName(settings.LOG_LEVEL.upper())

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    log_format = '%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s'
    date_format = '%Y-%m-%d %H:%M:%S'

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(log_format, datefmt=date_format))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = RotatingFileHandler(
            LOGS_DIR / log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
        logger.addHandler(file_handler)

    return logger


class StoreLogger:
    """Logs writes against the record store, the mirror and the image bucket."""

    def __init__(self, logger_name: str = "store"):
        self.logger = setup_logger(
            name=logger_name,
            log_file=f"{logger_name}.log"
        )

    def log_create(self, store: str, data: dict):
        self.logger.info(
            f"CREATE {store}:\n{json.dumps(data, ensure_ascii=False, indent=2, default=str)}"
        )

    def log_update(self, store: str, record_id: str, changes: dict):
        self.logger.info(
            f"UPDATE {store} (id={record_id}):\n{json.dumps(changes, ensure_ascii=False, indent=2, default=str)}"
        )

    def log_delete(self, store: str, record_id: str):
        self.logger.warning(f"DELETE {store} (id={record_id})")

    def log_error(self, operation: str, error: Exception):
        self.logger.error(
            f"STORE ERROR in {operation}:\n"
            f"Error Type: {type(error).__name__}\n"
            f"Error Message: {str(error)}\n"
            f"Traceback:\n{traceback.format_exc()}"
        )


class DeviceLogger:
    """Logs traffic with watering devices on the local network."""

    def __init__(self, logger_name: str = "device"):
        self.logger = setup_logger(
            name=logger_name,
            log_file=f"{logger_name}.log"
        )

    def log_scan(self, targets: int, subnet: str):
        self.logger.info(f"SCAN: {targets} addresses on {subnet}.0/24")

    def log_found(self, ip: str, payload):
        self.logger.info(f"FOUND: {ip} -> {payload}")

    def log_configure(self, ip: str, port: int, values: dict):
        self.logger.info(
            f"CONFIGURE {ip}:{port}:\n{json.dumps(values, ensure_ascii=False, indent=2)}"
        )

    def log_disconnect(self, user_id: str, plant_id: str):
        self.logger.info(f"DISCONNECT: user={user_id}, plant={plant_id}")

    def log_error(self, context: str, error: Exception):
        self.logger.error(
            f"DEVICE ERROR in {context}:\n"
            f"Error Type: {type(error).__name__}\n"
            f"Error Message: {str(error)}"
        )


store_logger = StoreLogger()
device_logger = DeviceLogger()
app_logger = setup_logger("app", "app.log")
