"""
Logging setup for CoolChat.

All modules log through the standard ``logging`` package with
``logging.getLogger(__name__)``; this module only decides where the records
go and how they look:

- colored console output for interactive runs
- a rotating ``coolchat.log`` plus an errors-only ``coolchat_errors.log``
- optional JSON lines for log shipping
- presets for development, production and testing, picked by
  ``COOLCHAT_ENV`` in :func:`auto_configure`

Usage:
    from CoolChat.core.logging import configure_logging, LogConfig

    configure_logging(LogConfig(level="DEBUG", file_output=False))
"""

import json
import logging
import logging.handlers
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union


@dataclass
class LogConfig:
    """
    Configuration for the logging system.

    Attributes:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files
        console_output: Whether to output to console
        file_output: Whether to output to rotating files
        json_output: Emit JSON lines on the console instead of colored text
        max_bytes: Maximum size of a log file before rotation (bytes)
        backup_count: Number of rotated files to keep
        format_string: Custom format string for log messages
        date_format: Date format string
        component_levels: Logger name -> level overrides
    """
    level: str = "INFO"
    log_dir: str = "./logs"
    console_output: bool = True
    file_output: bool = True
    json_output: bool = False
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    format_string: Optional[str] = None
    date_format: str = "%Y-%m-%d %H:%M:%S"
    component_levels: Dict[str, str] = field(default_factory=dict)


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name on ANSI terminals."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt: str, datefmt: Optional[str] = None, use_colors: bool = True):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and sys.platform != 'win32'

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors or record.levelname not in self.COLORS:
            return super().format(record)
        original = record.levelname
        record.levelname = f"{self.COLORS[original]}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class JsonFormatter(logging.Formatter):
    """Formatter that renders each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'line': record.lineno,
        }
        if record.exc_info:
            data['exception'] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


def get_default_format() -> str:
    """Get the default log format string."""
    return "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_detailed_format() -> str:
    """Get a log format string with source location."""
    return (
        "%(asctime)s - %(name)s - %(levelname)s - "
        "[%(filename)s:%(lineno)d - %(funcName)s] - %(message)s"
    )


_handlers: List[logging.Handler] = []


def _to_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper())


def configure_logging(config: LogConfig) -> None:
    """
    Configure the root logger from a :class:`LogConfig`.

    Handlers installed by a previous call are removed first, so the function
    can be called again (e.g. by tests) without duplicating output.
    """
    level = _to_level(config.level)
    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)
    _handlers.clear()

    if config.console_output:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(level)
        if config.json_output:
            console.setFormatter(JsonFormatter())
        else:
            console.setFormatter(ColoredFormatter(
                config.format_string or get_default_format(), config.date_format
            ))
        _handlers.append(console)

    if config.file_output:
        Path(config.log_dir).mkdir(parents=True, exist_ok=True)
        formatter = logging.Formatter(
            config.format_string or get_detailed_format(), config.date_format
        )

        main_file = logging.handlers.RotatingFileHandler(
            os.path.join(config.log_dir, "coolchat.log"),
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding='utf-8'
        )
        main_file.setLevel(level)
        main_file.setFormatter(formatter)
        _handlers.append(main_file)

        errors_file = logging.handlers.RotatingFileHandler(
            os.path.join(config.log_dir, "coolchat_errors.log"),
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding='utf-8'
        )
        errors_file.setLevel(logging.ERROR)
        errors_file.setFormatter(formatter)
        _handlers.append(errors_file)

    for handler in _handlers:
        root.addHandler(handler)

    for component, component_level in config.component_levels.items():
        logging.getLogger(component).setLevel(_to_level(component_level))

    logging.getLogger(__name__).debug("Logging configured with level %s", config.level)


def set_level(level: Union[str, int]) -> None:
    """Change the level of the root logger and of every installed handler."""
    level = _to_level(level)
    logging.getLogger().setLevel(level)
    for handler in _handlers:
        if handler.level != logging.ERROR:
            handler.setLevel(level)


def create_development_config() -> LogConfig:
    return LogConfig(
        level="DEBUG",
        log_dir="./logs/dev",
        max_bytes=5 * 1024 * 1024,
        backup_count=3,
        format_string=get_detailed_format(),
        component_levels={
            "asyncio": "WARNING",
            "uvicorn": "INFO",
        }
    )


def create_production_config() -> LogConfig:
    return LogConfig(
        level="INFO",
        log_dir="./logs/prod",
        console_output=True,
        max_bytes=50 * 1024 * 1024,
        backup_count=10,
        component_levels={
            "asyncio": "ERROR",
            "uvicorn": "WARNING",
            "uvicorn.access": "WARNING",
        }
    )


def create_testing_config() -> LogConfig:
    return LogConfig(
        level="DEBUG",
        file_output=False,
        format_string="%(levelname)s - %(name)s - %(message)s",
        component_levels={
            "asyncio": "WARNING",
        }
    )


def auto_configure(env: Optional[str] = None) -> str:
    """
    Configure logging from a named preset.

    Args:
        env: development, production or testing (short forms accepted).
             Read from ``COOLCHAT_ENV`` when omitted.

    Returns:
        The environment name that was applied.
    """
    if env is None:
        env = os.environ.get("COOLCHAT_ENV", "production")
    env = env.lower()

    presets = {
        "development": create_development_config,
        "dev": create_development_config,
        "production": create_production_config,
        "prod": create_production_config,
        "testing": create_testing_config,
        "test": create_testing_config,
    }
    configure_logging(presets.get(env, create_production_config)())
    logging.getLogger(__name__).info("Logging auto-configured for environment: %s", env)
    return env


__all__ = [
    'LogConfig',
    'ColoredFormatter',
    'JsonFormatter',
    'configure_logging',
    'set_level',
    'create_development_config',
    'create_production_config',
    'create_testing_config',
    'auto_configure',
    'get_default_format',
    'get_detailed_format',
]
