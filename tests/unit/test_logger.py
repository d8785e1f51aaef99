import logging

import pytest

from utils.logger import BotTokenFilter, ColoredFormatter, mask_secret, setup_logger


@pytest.mark.parametrize("value, expected", [
    ("sk-live-abcdef1234", "...1234"),
    ("abc", "...***"),
    ("", "<empty>"),
])
def test_mask_secret(value, expected):
    """Given a credential, when masked, only its last characters should remain."""
    assert mask_secret(value) == expected


def test_bot_token_filter_redacts_urls():
    """Given a log line with a Bot API URL, when filtered, the token should be redacted."""
    record = logging.LogRecord(
        "relay_bot", logging.ERROR, __file__, 1,
        "POST %s failed", ("https://api.telegram.org/bot123456:AA-bb_CC/sendMessage",), None
    )

    assert BotTokenFilter().filter(record) is True
    assert record.getMessage() == "POST https://api.telegram.org/bot<redacted>/sendMessage failed"


def test_colored_formatter_restores_level_name():
    """Given a colored formatter, when a record is formatted, the record's level name should be left intact."""
    record = logging.LogRecord("relay_bot", logging.WARNING, __file__, 1, "careful", (), None)
    formatted = ColoredFormatter('%(levelname)s %(message)s', use_color=True).format(record)

    assert "\033[33mWARNING\033[0m careful" == formatted
    assert record.levelname == "WARNING"


def test_setup_logger_accepts_level_names():
    """Given a level name, when setting up a logger, it should resolve to the numeric level."""
    assert setup_logger("relay_bot.test_debug", "debug").level == logging.DEBUG
    assert setup_logger("relay_bot.test_bogus", "NOT_A_LEVEL").level == logging.INFO
