# logger.py - Centralized logging configuration
import os
import logging
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]"


def setup_logger(name, log_dir="logs", level=logging.INFO, to_file=True):
    """Set up a logger with file rotation"""
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    logger.setLevel(level)

    if to_file:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, f"{name}.log"),
            maxBytes=1024 * 1024,
            backupCount=10,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    # Console handler for development
    if os.environ.get("FLASK_ENV") != "production":
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(
            "%(name)s - %(levelname)s - %(message)s"
        ))
        logger.addHandler(console_handler)

    return logger


def configure_logging(app):
    """Attach the rotating handlers to the Flask app logger and the domain packages."""
    level = getattr(logging, app.config.get("LOG_LEVEL", "INFO"), logging.INFO)
    to_file = not app.config.get("TESTING", False)
    log_dir = app.config.get("LOG_DIR", "logs")

    if to_file:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "app.log"),
            maxBytes=1024 * 1024,
            backupCount=10,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(level)
        app.logger.handlers.clear()
        app.logger.addHandler(file_handler)
        app.logger.propagate = False  # Prevent duplicate logs

    app.logger.setLevel(level)

    # referral tree / promotion / analytics share one log file
    setup_logger("referrals", log_dir=log_dir, level=level, to_file=to_file)
    setup_logger("blueprints", log_dir=log_dir, level=level, to_file=to_file)
    return app.logger
