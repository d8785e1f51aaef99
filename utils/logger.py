"""
Logging configuration for the application.
"""
import logging
import re
import sys
from config import Config


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name when writing to a terminal."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt: str, datefmt: str | None = None, use_color: bool = True):
        super().__init__(fmt, datefmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_color:
            return super().format(record)
        levelname = record.levelname
        record.levelname = f"{self.COLORS.get(levelname, self.RESET)}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class BotTokenFilter(logging.Filter):
    """Redacts Telegram bot tokens embedded in Bot API URLs before they reach the log."""

    TOKEN_IN_URL = re.compile(r'/bot\d+:[\w-]+')

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if "/bot" in message:
            record.msg = self.TOKEN_IN_URL.sub("/bot<redacted>", message)
            record.args = ()
        return True


def setup_logger(name: str, level: int | str = logging.INFO) -> logging.Logger:
    """
    Set up a logger writing to stdout.

    Args:
        name: Logger name
        level: Logging level, as a number or a level name such as "DEBUG"

    Returns:
        Configured logger instance
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(BotTokenFilter())
    handler.setFormatter(ColoredFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        use_color=sys.stdout.isatty()
    ))

    logger.addHandler(handler)
    return logger


def mask_secret(value: str, visible: int = 4) -> str:
    """Render a credential as '...abcd' so logs never carry the full secret."""
    if not value:
        return "<empty>"
    if len(value) <= visible:
        return "..." + "*" * len(value)
    return f"...{value[-visible:]}"


app_logger = setup_logger("relay_bot", Config.LOG_LEVEL)
