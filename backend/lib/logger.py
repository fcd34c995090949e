"""
Console Logging for the Voice Coach Backend

Readable, structured terminal output:
- colour-coded levels (when attached to a terminal)
- an icon per orchestrator component, picked from the logger name
- section banners for server lifecycle events
- pretty-printed data dictionaries attached to a log line
"""

import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional


class Colors:
    """ANSI color codes for terminal output."""
    RESET = '\033[0m'
    BOLD = '\033[1m'

    DEBUG = '\033[36m'      # Cyan
    INFO = '\033[32m'       # Green
    WARNING = '\033[33m'    # Yellow
    ERROR = '\033[31m'      # Red
    CRITICAL = '\033[35m'   # Magenta

    SECTION = '\033[94m'    # Bright Blue
    SUBSECTION = '\033[96m' # Bright Cyan

    KEY = '\033[93m'        # Bright Yellow
    VALUE = '\033[92m'      # Bright Green
    TIMESTAMP = '\033[90m'  # Dark Gray


LEVEL_COLORS = {
    'DEBUG': Colors.DEBUG,
    'INFO': Colors.INFO,
    'WARNING': Colors.WARNING,
    'ERROR': Colors.ERROR,
    'CRITICAL': Colors.CRITICAL,
}


def _stdout_is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


class ColoredFormatter(logging.Formatter):
    """Formatter with colours and a per-component icon."""

    ICONS = {
        'DEBUG': '🔍',
        'INFO': 'ℹ️',
        'WARNING': '⚠️',
        'ERROR': '❌',
        'CRITICAL': '🚨',
    }

    # Keyed by the last part of the logger name
    COMPONENT_ICONS = {
        'main': '🌐',
        'session_controller': '🎬',
        'phase_machine': '🧭',
        'response_generator': '🤖',
        'turn_backend': '📡',
        'response_validator': '🚫',
        'lifecycle_manager': '🎧',
        'session_events': '📊',
        'grade_policy': '🎚️',
        'settings': '⚙️',
        'auth': '🔐',
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and _stdout_is_tty()

    def format(self, record: logging.LogRecord) -> str:
        component = record.name.split('.')[-1]
        icon = self.COMPONENT_ICONS.get(component, self.ICONS.get(record.levelname, '•'))
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]

        if self.use_colors:
            level_color = LEVEL_COLORS.get(record.levelname, Colors.RESET)
            reset, bold, dim = Colors.RESET, Colors.BOLD, Colors.TIMESTAMP
        else:
            level_color = reset = bold = dim = ''

        formatted = (
            f"{dim}[{timestamp}]{reset} "
            f"{icon} {level_color}{record.levelname:8s}{reset} "
            f"{bold}{record.name}{reset} | {record.getMessage()}"
        )

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"
        return formatted


class StructuredLogger:
    """Logger wrapper with section banners and attached data."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(name)
        self.use_colors = _stdout_is_tty()

    def _paint(self, color: str, text: str) -> str:
        return f"{color}{text}{Colors.RESET}" if self.use_colors else text

    def _format_data(self, data: Any, indent: int = 2) -> str:
        pad = ' ' * indent
        closing = ' ' * (indent - 2)
        if isinstance(data, dict):
            lines = []
            for key, value in data.items():
                if isinstance(value, (dict, list, tuple)):
                    rendered = self._format_data(value, indent + 2)
                else:
                    rendered = self._paint(Colors.VALUE, str(value))
                lines.append(f"{pad}{self._paint(Colors.KEY, str(key))}: {rendered}")
            return "{\n" + "\n".join(lines) + f"\n{closing}}}"
        if isinstance(data, (list, tuple)):
            shown = list(data[:3]) if len(data) > 5 else list(data)
            items = [f"{pad}{self._format_data(item, indent + 2)}" for item in shown]
            if len(data) > 5:
                items.append(f"{pad}... ({len(data)} items total)")
            return "[\n" + ",\n".join(items) + f"\n{closing}]"
        return str(data)

    def _with_data(self, message: str, data: Optional[Dict[str, Any]]) -> str:
        return f"{message}\n{self._format_data(data)}" if data else message

    def _banner(self, rule: str, heading: str, data: Optional[Dict[str, Any]], color: str) -> None:
        print(f"\n{self._paint(color, rule)}")
        print(self._paint(color, heading))
        if data:
            print(self._paint(Colors.SUBSECTION, self._format_data(data)))
        print(f"{self._paint(color, rule)}\n")

    def section(self, title: str, data: Optional[Dict[str, Any]] = None):
        self._banner("=" * 80, f"📋 {title.upper()}", data, Colors.SECTION)

    def subsection(self, title: str, data: Optional[Dict[str, Any]] = None):
        self._banner("-" * 60, f"  → {title}", data, Colors.SUBSECTION)

    def debug(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.debug(self._with_data(message, data))

    def info(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.info(self._with_data(message, data))

    def warning(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.warning(self._with_data(message, data))

    def error(self, message: str, error: Optional[Exception] = None, data: Optional[Dict[str, Any]] = None):
        if error is not None:
            message = f"{message} Error: {type(error).__name__}: {error}"
        self.logger.error(self._with_data(message, data), exc_info=error)

    def success(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.info(self._with_data(f"✅ {message}", data))

    def request(self, method: str, path: str, learner_id: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        """Log an incoming request."""
        request_data = {"learner_id": learner_id[:20] if learner_id else None}
        if data:
            request_data.update(data)
        self.logger.info(self._with_data(f"📥 REQUEST: {method} {path}", request_data))

    def response(self, status: int, path: str, duration: Optional[float] = None, data: Optional[Dict[str, Any]] = None):
        """Log an outgoing response."""
        response_data = {"duration_ms": f"{duration * 1000:.2f}" if duration is not None else None}
        if data:
            response_data.update(data)
        self.logger.info(self._with_data(f"📤 RESPONSE: {status} {path}", response_data))


def setup_logging(level: int = logging.INFO, use_colors: bool = True):
    """Route all logging to stdout through ColoredFormatter."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(use_colors=use_colors))

    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    for noisy in ('asyncio', 'httpx', 'httpcore', 'openai', 'urllib3'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name, logging.getLogger(name))
