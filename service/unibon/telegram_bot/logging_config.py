"""
Logging configuration for the Telegram bot.
"""

import logging
import sys

LOG_FORMAT = '[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s'


def setup_logging(name: str = "telegram_bot", level: int = logging.INFO) -> logging.Logger:
    """Stdout logger for the bot; does not propagate to the root logger."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Re-import safe: drop handlers from a previous setup
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    logger.addHandler(handler)

    logger.propagate = False

    return logger


# Global logger instance
bot_logger = setup_logging()
