"""Logging setup for the migrator: coloured console output, rotating log files and batch progress."""

import copy
import logging
import logging.handlers
import os
import time
from typing import Any, Dict, List, Optional

import colorlog

LOGGER_NAME = 'jira_markdown_migrator'
DEBUG_LOG_FILE = 'debug.log'

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LEVEL_NAMES = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
VERBOSITY_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)

LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

REDACTED = '***REDACTED***'
SENSITIVE_KEYS = ('password', 'secret', 'api_token', 'access_token', 'auth_header')


def resolve_log_level(verbosity: int = 0, level: Optional[str] = None) -> int:
    """
    Map a level name or a ``-v`` count to a logging level.

    Raises:
        ValueError: If level is not a known log level name
    """
    if level:
        name = level.upper()
        if name not in LEVEL_NAMES:
            raise ValueError(f"Invalid log level '{level}'. Must be one of: {', '.join(LEVEL_NAMES)}")
        return getattr(logging, name)

    return VERBOSITY_LEVELS[min(max(verbosity, 0), len(VERBOSITY_LEVELS) - 1)]


def _console_handler(log_level: int, log_format: str, date_format: str) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(log_level)
    handler.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + log_format,
        datefmt=date_format,
        log_colors=LOG_COLORS
    ))
    return handler


def _file_handler(log_file: str, log_level: int, log_format: str, date_format: str) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding='utf-8'
    )
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
    return handler


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Configure the ``jira_markdown_migrator`` logger.

    Calling it again replaces the handlers of the previous call.
    ``LOG_LEVEL=DEBUG`` in the environment forces DEBUG and, when no log file
    is given, also writes to ``debug.log``.

    Args:
        verbosity: Number of ``-v`` flags (0=WARNING, 1=INFO, 2+=DEBUG)
        log_file: Optional path of a rotating log file
        log_format: Optional custom log format string
        date_format: Optional custom date format string
        level: Optional explicit level name, overrides verbosity

    Returns:
        Configured logger instance

    Raises:
        ValueError: If level is not a known log level name
    """
    if os.getenv('LOG_LEVEL', '').upper() == 'DEBUG':
        level = 'DEBUG'
        log_file = log_file or DEBUG_LOG_FILE

    log_level = resolve_log_level(verbosity, level)
    log_format = log_format or DEFAULT_LOG_FORMAT
    date_format = date_format or DEFAULT_DATE_FORMAT

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(_console_handler(log_level, log_format, date_format))

    level_name = logging.getLevelName(log_level)
    if not log_file:
        logger.info(f"Console logging only. Level: {level_name}")
        return logger

    try:
        logger.addHandler(_file_handler(log_file, log_level, log_format, date_format))
    except OSError as e:
        logger.warning(f"Failed to set up file logging at {log_file}: {e}")
    else:
        logger.info(f"Logging to {log_file} at level {level_name}")

    return logger


class ProgressTracker:
    """
    Counts outcomes of a batch and logs a summary when the batch ends.

    Used as a context manager around the per-issue loop::

        with ProgressTracker(len(keys), 'issues') as tracker:
            for key in keys:
                tracker.advance(key, success=export(key))
    """

    LOG_EVERY = 10

    def __init__(self, total_items: int, item_type: str = "items"):
        self.total_items = total_items
        self.item_type = item_type
        self.processed_items = 0
        self.successful_items = 0
        self.failed: List[str] = []
        self.start_time: Optional[float] = None
        self.logger = logging.getLogger(f'{LOGGER_NAME}.progress')

    @property
    def failed_items(self) -> int:
        return len(self.failed)

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.time()
        self.logger.info(f"Processing {self.total_items} {self.item_type}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is None:
            return

        stats = self.get_stats()
        if not self.failed:
            log = self.logger.info
        elif self.failed_items == self.total_items:
            log = self.logger.error
        else:
            log = self.logger.warning

        log(
            f"{self.item_type.capitalize()}: {stats['successful']}/{stats['total']} succeeded, "
            f"{stats['failed']} failed ({stats['success_rate']:.1f}%) "
            f"in {stats['elapsed_time_formatted']}"
        )
        if self.failed:
            log(f"Failed {self.item_type}: {', '.join(self.failed)}")

    def advance(self, item: str = '', success: bool = True) -> None:
        """
        Record the outcome of one item.

        Args:
            item: Name of the item, kept for the failure summary
            success: Whether the item was processed successfully
        """
        self.processed_items += 1
        if success:
            self.successful_items += 1
        else:
            self.failed.append(item or f'#{self.processed_items}')

        if not success or self.processed_items % self.LOG_EVERY == 0:
            self.logger.info(
                f"{self.processed_items}/{self.total_items} {self.item_type} done, "
                f"last {item or 'item'} {'ok' if success else 'failed'}"
            )

    def get_stats(self) -> Dict[str, Any]:
        elapsed = time.time() - self.start_time if self.start_time is not None else 0.0
        success_rate = self.successful_items * 100 / self.total_items if self.total_items else 0

        return {
            'total': self.total_items,
            'processed': self.processed_items,
            'successful': self.successful_items,
            'failed': self.failed_items,
            'failed_items': list(self.failed),
            'success_rate': success_rate,
            'elapsed_time': elapsed,
            'elapsed_time_formatted': self._format_elapsed(elapsed)
        }

    @staticmethod
    def _format_elapsed(seconds: float) -> str:
        if seconds < 60:
            return f"{seconds:.1f}s"

        hours, rest = divmod(int(seconds), 3600)
        minutes, secs = divmod(rest, 60)
        if hours:
            return f"{hours}h {minutes}m {secs}s"
        return f"{minutes}m {secs}s"


def log_section(title: str) -> None:
    """Log a banner line around a section title."""
    logger = logging.getLogger(LOGGER_NAME)
    banner = "=" * 60
    logger.info(banner)
    logger.info(f"  {title.upper()}")
    logger.info(banner)


def log_config(config: Dict[str, Any]) -> None:
    """
    Log the effective configuration with credentials masked.

    Args:
        config: Loaded configuration dictionary
    """
    logger = logging.getLogger(LOGGER_NAME)
    sanitized = _sanitize_config(config)
    jira = sanitized.get('jira', {})
    output = sanitized.get('output', {})
    development = sanitized.get('development', {})
    display = sanitized.get('display', {})

    log_section("Configuration")

    rows = [
        ("Jira URL", jira.get('url', 'Not Set')),
        ("Email", jira.get('email', 'Not Set')),
        ("API Token", jira.get('api_token', 'Not Set')),
        ("Markdown Directory", output.get('markdown_dir')),
        ("Attachments Directory", output.get('attachments_dir')),
        ("JSON Directory", output.get('json_dir') or 'Disabled'),
        ("Development Info", development.get('enabled', False)),
    ]
    if development.get('enabled'):
        rows.append(("Development API", f"{development.get('api_type')} ({development.get('application_type')})"))
    rows.extend([
        ("Hidden Custom Fields", display.get('hidden_custom_fields', [])),
        ("Rank Field", display.get('rank_field_id')),
        ("Deleted User Mappings", len(sanitized.get('deletedUsers', {}))),
    ])

    for label, value in rows:
        logger.info(f"{label}: {value}")


def _sanitize_config(config: Any) -> Any:
    """Deep copy of the configuration with credential strings replaced by ``***REDACTED***``."""
    if isinstance(config, dict):
        return {
            key: REDACTED
            if isinstance(value, str) and any(word in str(key).lower() for word in SENSITIVE_KEYS)
            else _sanitize_config(value)
            for key, value in config.items()
        }
    if isinstance(config, list):
        return [_sanitize_config(item) for item in config]
    return copy.deepcopy(config)


__all__ = [
    'setup_logging',
    'resolve_log_level',
    'ProgressTracker',
    'log_section',
    'log_config',
]
