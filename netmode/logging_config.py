"""
Logging Configuration for the network mode controller.

Console lines are plain text because operator tooling may screen-scrape
them; JSON output is opt-in. Every line is tagged with the feature area of
the module that wrote it, and transition milestones get their own NOTICE
level so they stand out between INFO and WARNING.

Usage:
    from netmode.logging_config import configure_from_environment, get_logger

    configure_from_environment(verbose=True)

    logger = get_logger('netmode.orchestrator')
    logger.transition("maintenance", "production", "started")
"""

import os
import sys
import json
import logging
import threading
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import Any, Dict, Optional


NOTICE = 25     # Transition milestones

logging.addLevelName(NOTICE, 'NOTICE')


class FeatureArea(Enum):
    """Feature areas used to tag log lines."""
    CORE = auto()           # Orchestrator, modes
    STATE = auto()          # Records, cooldown, lock
    ENFORCEMENT = auto()    # iptables, conntrack
    WORKLOAD = auto()       # Container runtime, namespace checks
    CLI = auto()            # Invocation surface


# Checked in order; the first fragment found in the logger name wins
_FEATURE_MAP = (
    ('.state', FeatureArea.STATE),
    ('.enforcement.workload', FeatureArea.WORKLOAD),
    ('.enforcement', FeatureArea.ENFORCEMENT),
    ('.cli', FeatureArea.CLI),
)


def feature_for(logger_name: str) -> FeatureArea:
    """Map a logger name such as 'netmode.state.lock' to its feature area."""
    for fragment, feature in _FEATURE_MAP:
        if fragment in logger_name:
            return feature
    return FeatureArea.CORE


class NetmodeFormatter(logging.Formatter):
    """Text or JSON lines with a feature tag and optional key=value extras."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'NOTICE': '\033[33m',
        'WARNING': '\033[33;1m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[31;1m',
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True, json_format: bool = False, stream=None):
        super().__init__()
        stream = stream if stream is not None else sys.stdout
        # Colors only when a person is watching
        self.use_colors = use_colors and hasattr(stream, 'isatty') and stream.isatty()
        self.json_format = json_format

    def format(self, record: logging.LogRecord) -> str:
        if self.json_format:
            return self._format_json(record)
        return self._format_text(record)

    def _format_text(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]

        level = f"{record.levelname:8}"
        if self.use_colors and record.levelname in self.COLORS:
            level = f"{self.COLORS[record.levelname]}{level}{self.RESET}"

        feature = f"[{feature_for(record.name).name.lower()}]"
        line = f"{timestamp} {level} {feature:13} {record.getMessage()}"

        extra_data = getattr(record, 'extra_data', None)
        if extra_data:
            line += " | " + ", ".join(f"{k}={v}" for k, v in extra_data.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line

    def _format_json(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'feature': feature_for(record.name).name.lower(),
            'message': record.getMessage(),
        }
        extra_data = getattr(record, 'extra_data', None)
        if extra_data:
            data['extra'] = extra_data
        if record.exc_info:
            data['exception'] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class NetmodeLogger(logging.Logger):
    """Logger with a helper for transition milestones."""

    def log_with_data(self, level: int, msg: str, data: Dict[str, Any]):
        """Log `msg` with structured key=value data attached."""
        if self.isEnabledFor(level):
            self._log(level, msg, (), extra={'extra_data': data})

    def transition(self, source: str, target: str, status: str, **data):
        """Log a transition milestone; failures at ERROR, the rest at NOTICE."""
        level = logging.ERROR if status == "failed" else NOTICE
        self.log_with_data(level, f"Transition {source} -> {target}: {status}", data)


logging.setLoggerClass(NetmodeLogger)

_setup_lock = threading.Lock()


def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    console: bool = True,
    json_format: bool = False,
) -> None:
    """
    Replace the root logger's handlers.

    Args:
        verbose: Log at DEBUG, which includes every external command
        log_file: Also append log lines to this file
        console: Write log lines to stdout
        json_format: One JSON object per line instead of text
    """
    level = logging.DEBUG if verbose else logging.INFO

    with _setup_lock:
        root = logging.getLogger()
        root.setLevel(level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)

        if console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(NetmodeFormatter(json_format=json_format))
            root.addHandler(console_handler)

        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(NetmodeFormatter(use_colors=False, json_format=json_format))
            root.addHandler(file_handler)


def get_logger(name: str) -> NetmodeLogger:
    """
    Get a logger with the transition helper.

    Args:
        name: Logger name (e.g., 'netmode.orchestrator')
    """
    logger = logging.getLogger(name)
    if not isinstance(logger, NetmodeLogger):
        logging.setLoggerClass(NetmodeLogger)
        logger = logging.getLogger(name)
    return logger


def _env_flag(name: str) -> bool:
    return os.environ.get(name, '').lower() in ('1', 'true', 'yes')


def configure_from_environment(
    verbose: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure logging from NETMODE_VERBOSE, NETMODE_LOG_FILE, NETMODE_LOG_JSON
    and NETMODE_LOG_NO_CONSOLE. Explicit arguments (the CLI flags) win when set.
    """
    setup_logging(
        verbose=verbose or _env_flag('NETMODE_VERBOSE'),
        log_file=log_file or os.environ.get('NETMODE_LOG_FILE') or None,
        console=not _env_flag('NETMODE_LOG_NO_CONSOLE'),
        json_format=_env_flag('NETMODE_LOG_JSON'),
    )


__all__ = [
    'NOTICE',
    'FeatureArea',
    'feature_for',
    'NetmodeFormatter',
    'NetmodeLogger',
    'setup_logging',
    'get_logger',
    'configure_from_environment',
]
