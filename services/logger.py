import logging
import sys
import os
from datetime import datetime

# ANSI 颜色码
COLORS = {
    'DBG': '\033[36m',
    'INF': '\033[32m',
    'WRN': '\033[33m',
    'ERR': '\033[31m',
    'CRT': '\033[91m\033[1m',
    'RST': '\033[0m'
}

LEVEL_TAGS = {
    'DEBUG': 'DBG',
    'INFO': 'INF',
    'WARNING': 'WRN',
    'ERROR': 'ERR',
    'CRITICAL': 'CRT',
}

IS_TTY = sys.stdout.isatty()

# 日志目录，可用 MAGNET_LOG_DIR 覆盖
DEFAULT_LOG_DIR = os.environ.get("MAGNET_LOG_DIR", "logs")

# Secret strings redacted from every record; filled from the loaded config.
_sensitive: set[str] = set()


def register_sensitive(values: frozenset[str]) -> None:
    """Register secret strings that must never appear in log output."""
    _sensitive.clear()
    # Short values would mask ordinary words
    _sensitive.update(v for v in values if len(v) >= 8)


class MaskingFilter(logging.Filter):
    """Replaces registered secrets with ``***`` before a record is emitted."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not _sensitive:
            return True
        msg = record.getMessage()
        for secret in _sensitive:
            msg = msg.replace(secret, "***")
        record.msg = msg
        record.args = ()
        return True


class ConsoleFormatter(logging.Formatter):
    """``[time] [TAG] | file:line | message`` with the tag coloured on a TTY."""

    def format(self, record):
        timestamp = datetime.fromtimestamp(record.created).strftime('[%Y-%m-%d %H:%M:%S]')
        tag = LEVEL_TAGS.get(record.levelname, record.levelname[:3].upper())
        level = f"[{tag}]"
        if IS_TTY and tag in COLORS:
            level = COLORS[tag] + level + COLORS['RST']

        try:
            file = os.path.relpath(record.pathname)
        except ValueError:
            file = record.pathname

        return f"{timestamp} {level} | {file}:{record.lineno} | {record.getMessage()}"


logger = logging.getLogger('magnet')
logger.setLevel(logging.DEBUG)
logger.addFilter(MaskingFilter())

# 重复导入时清掉旧 handler
for _handler in list(logger.handlers):
    _handler.close()
    logger.removeHandler(_handler)
logger.propagate = False

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setFormatter(ConsoleFormatter())
console_handler.setLevel(logging.INFO)
logger.addHandler(console_handler)

file_handler: logging.FileHandler | None = None


def enable_file_logging(directory: str = DEFAULT_LOG_DIR) -> str:
    """Start writing every record (DEBUG and up) to a timestamped file.

    Returns the log file path.  Calling it again replaces the previous file.
    """
    global file_handler
    os.makedirs(directory, exist_ok=True)
    # e.g. 20250915-150316060.log
    name = datetime.now().strftime("%Y%m%d-%H%M%S%f")[:-3] + ".log"
    path = os.path.join(directory, name)

    if file_handler is not None:
        logger.removeHandler(file_handler)
        file_handler.close()

    file_handler = logging.FileHandler(path, encoding='utf-8')
    file_handler.setFormatter(logging.Formatter(
        '[%(asctime)s] [%(levelname)s] | %(filename)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    file_handler.setLevel(logging.DEBUG)
    logger.addHandler(file_handler)
    return path


def set_debug(enabled: bool) -> None:
    """Let DEBUG records reach the console while the resolver runs in debug mode."""
    console_handler.setLevel(logging.DEBUG if enabled else logging.INFO)


def get_logger(name=None):
    """返回共享的 magnet 日志器"""
    return logger
