"""Logging configuration"""

import logging
import sys
from pathlib import Path
from pythonjsonlogger import jsonlogger


def setup_logger(config):
    """
    Setup logger with configuration

    Args:
        config: Configuration dictionary with logging settings
    """
    log_level = config.get('agent', {}).get('log_level', 'INFO').upper()
    log_file = config.get('agent', {}).get('log_file')
    log_format = config.get('agent', {}).get('log_format', 'text')
    level = getattr(logging, log_level, logging.INFO)

    # Module loggers live under latency_agent.*, class loggers under agent.*
    logger = logging.getLogger('agent')
    package_logger = logging.getLogger('latency_agent')

    if log_format == 'json':
        formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s',
            rename_fields={'levelname': 'level', 'name': 'logger', 'asctime': 'timestamp'}
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s - %(message)s',
            datefmt='%Y-%m-%dT%H:%M:%S'
        )

    handlers = []

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    # File handler (if configured)
    file_error = None
    if log_file:
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except OSError as e:
            file_error = e

    for target in (logger, package_logger):
        target.setLevel(level)
        target.handlers.clear()
        target.propagate = False
        for handler in handlers:
            target.addHandler(handler)

    if file_error:
        logger.warning(f"Failed to setup file logging: {file_error}")

    return logger


def get_logger(name):
    """Get logger instance"""
    return logging.getLogger(f'agent.{name}')
