"""Configures the logging system for the script."""
import os
import sys
import logging
from logging.handlers import RotatingFileHandler

def settings(script_path):
    """Configures the logging system for the script."""
    script_name = os.path.basename(script_path)
    root = os.environ.get("CHATKEEP_LOG_DIR") or os.path.join(
        os.path.dirname(os.path.dirname(__file__)), 'logs'
    )
    log_name = script_name.rsplit('.', 1)[0] + '.log'
    log_file = os.path.join(root, log_name)
    os.makedirs(os.path.dirname(log_file), exist_ok=True)

    # Create a logger instance
    logger = logging.getLogger(f"chatkeep.{script_name}")

    # Prevent adding multiple handlers
    if not logger.handlers:
        # Set up the RotatingFileHandler
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=1024*1024*10,  # 10 MB
            backupCount=10,
            encoding='utf-8'
        )
        formatter = logging.Formatter(
            '%(asctime)s %(levelname)s [%(filename)s:%(lineno)d] %(message)s'
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)

        # Keep records out of the root logger (Flask and pytest attach there)
        logger.propagate = False

    # Ensure sys.stdout is using UTF-8; room names are frequently Japanese
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding='utf-8')

    return logger


def mask(token: str, keep: int = 4) -> str:
    """Return a token shortened to its first characters for log lines."""
    if not token:
        return "None"
    return f"{token[:keep]}..." if len(token) > keep else "***"
