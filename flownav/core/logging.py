# flownav/core/logging.py
import logging
import sys
from datetime import datetime

# Module-level default log level, can be changed by set_default_level()
_default_level: int = logging.INFO

_RESET = '\033[0m'
_WHITE = '\033[97m'

# Tag color per flownav component
COMPONENT_COLORS: dict[str, str] = {
    'engine': '\033[96m',  # cyan
    'navigator': '\033[96m',
    'loader': '\033[95m',  # magenta
    'catalog': '\033[95m',
    'store': '\033[94m',  # blue
    'persistence': '\033[94m',
    'persistence.json': '\033[94m',
    'persistence.sql': '\033[94m',
    'tools': '\033[93m',  # yellow
    'cli': '\033[97m',
}

LEVEL_COLORS: dict[str, str] = {
    'DEBUG': '\033[90m',
    'INFO': '\033[92m',
    'WARNING': '\033[93m',
    'ERROR': '\033[91m',
    'CRITICAL': '\033[1;91m',
}

# '[persistence.json]' is the widest tag
_TAG_WIDTH = max(len(name) for name in COMPONENT_COLORS) + 3


def component_of(logger_name: str) -> str:
    """'flownav.persistence.sql' -> 'persistence.sql'; foreign names pass through."""
    prefix = 'flownav.'
    return logger_name[len(prefix):] if logger_name.startswith(prefix) else logger_name


class ColoredFormatter(logging.Formatter):
    """`HH:MM:SS [component] [LEVEL] message`, colored per component and level."""

    def __init__(self, use_color: bool = True) -> None:
        super().__init__()
        self.use_color = use_color

    def _paint(self, color: str, text: str) -> str:
        return f'{color}{text}{_RESET}' if self.use_color else text

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')
        component = component_of(record.name)

        tag = f'[{component}]'.ljust(_TAG_WIDTH)
        level = f'[{record.levelname}]'.ljust(10)

        formatted = (
            f'{self._paint(_WHITE, time_str)} '
            f'{self._paint(COMPONENT_COLORS.get(component, _WHITE), tag)}'
            f'{self._paint(LEVEL_COLORS.get(record.levelname, _WHITE), level)}'
            f'{record.getMessage()}'
        )

        if record.exc_info:
            formatted += '\n' + self.formatException(record.exc_info)

        return formatted


def set_default_level(level: int) -> None:
    """Set the default log level for new loggers."""
    global _default_level
    _default_level = level


def get_logger(component_name: str) -> logging.Logger:
    """Get a logger for the specified component."""
    logger = logging.getLogger(f'flownav.{component_name}')

    if not logger.handlers:
        # stdout is reserved for tool/CLI JSON output, so log to stderr
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColoredFormatter(use_color=sys.stderr.isatty()))
        handler.setLevel(_default_level)
        logger.addHandler(handler)
        logger.setLevel(_default_level)

        # Prevent duplicate logs from parent loggers
        logger.propagate = False

    return logger


def setup_logging(loglevel: str) -> None:
    """Apply a level name to every flownav logger created so far."""
    level = getattr(logging, loglevel.upper(), logging.INFO)
    set_default_level(level)

    for name in logging.Logger.manager.loggerDict:
        if isinstance(name, str) and name.startswith('flownav.'):
            lgr = logging.getLogger(name)
            lgr.setLevel(level)
            for handler in lgr.handlers:
                handler.setLevel(level)
