"""
Enhanced Logging Utility for the MCP Chat API
Coloured, structured logging with class.function prefixes and value highlighting.

The app layer logs through ``enhanced_logger``; library modules keep using
``logging.getLogger(__name__)`` and are routed through the same formatter
by ``configure_logging``.
"""

import inspect
import logging
import os
import re
import sys
from datetime import datetime

LOGGER_NAME = "mcp-chat-api"

# Package loggers whose records share the enhanced handler
APP_LOGGER_PREFIXES = ("modules", "routes")


class ColorCodes:
    """ANSI color codes for terminal output"""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'

    RED = '\033[31m'
    CYAN = '\033[36m'
    WHITE = '\033[37m'
    BLUE = '\033[34m'

    BRIGHT_BLACK = '\033[90m'
    BRIGHT_RED = '\033[91m'
    BRIGHT_GREEN = '\033[92m'
    BRIGHT_YELLOW = '\033[93m'
    BRIGHT_BLUE = '\033[94m'
    BRIGHT_MAGENTA = '\033[95m'
    BRIGHT_CYAN = '\033[96m'

    BG_WHITE = '\033[47m'


LEVEL_COLORS = {
    'DEBUG': ColorCodes.BRIGHT_BLACK,
    'INFO': ColorCodes.BRIGHT_BLUE,
    'WARNING': ColorCodes.BRIGHT_YELLOW,
    'ERROR': ColorCodes.BRIGHT_RED,
    'CRITICAL': ColorCodes.RED + ColorCodes.BG_WHITE + ColorCodes.BOLD,
}

SUCCESS_KEYWORDS = ['success', 'connected', 'completed', 'started', 'healthy']
ERROR_KEYWORDS = ['error', 'failed', 'failure', 'exception', 'timeout', 'disconnected']


def colors_enabled() -> bool:
    """FORCE_COLOR turns colours on, NO_COLOR always wins."""
    if os.getenv('NO_COLOR') is not None:
        return False
    if os.getenv('FORCE_COLOR', '').lower() in ('1', 'true', 'yes'):
        return True
    return sys.stderr.isatty() and os.getenv('TERM') != 'dumb'


class EnhancedFormatter(logging.Formatter):
    """Custom formatter with colors and enhanced structure"""

    def __init__(self, use_colors: bool = True):
        self.use_colors = use_colors
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        reset = ColorCodes.RESET if self.use_colors else ''

        level_str = f"[{record.levelname:8}]"
        if self.use_colors:
            level_str = f"{LEVEL_COLORS.get(record.levelname, ColorCodes.WHITE)}{level_str}{reset}"

        # Records from plain module loggers carry no class_func
        class_func = getattr(record, 'class_func', None) or f"{record.name}.{record.funcName}"
        if self.use_colors and '.' in class_func:
            owner, func_name = class_func.rsplit('.', 1)
            class_func = f"{ColorCodes.BRIGHT_CYAN}{owner}{ColorCodes.WHITE}.{ColorCodes.BRIGHT_GREEN}{func_name}{reset}"

        message = record.getMessage()
        if self.use_colors:
            message = self._highlight_values(message)

        dim = ColorCodes.DIM if self.use_colors else ''
        formatted = f"{dim}{timestamp}{reset} {level_str} [{class_func}] {message}"

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted

    def _highlight_values(self, message: str) -> str:
        """Highlight quoted values, numbers, key=value pairs and URLs"""
        message = re.sub(
            r"'([^']*)'",
            f"{ColorCodes.BRIGHT_YELLOW}'\\1'{ColorCodes.RESET}",
            message
        )

        message = re.sub(
            r'\b(https?://[^\s]+)',
            f'{ColorCodes.BLUE}\\1{ColorCodes.RESET}',
            message
        )

        message = re.sub(
            r'\b(\w+)=([^\s,\]}\)]+)',
            f'{ColorCodes.CYAN}\\1{ColorCodes.WHITE}={ColorCodes.BRIGHT_YELLOW}\\2{ColorCodes.RESET}',
            message
        )

        message = re.sub(
            r'\b(\d+(?:\.\d+)?)(ms|s)?\b',
            f'{ColorCodes.BRIGHT_MAGENTA}\\1\\2{ColorCodes.RESET}',
            message
        )

        for keyword in SUCCESS_KEYWORDS:
            message = re.sub(
                rf'\b({keyword})\b',
                f'{ColorCodes.BRIGHT_GREEN}\\1{ColorCodes.RESET}',
                message,
                flags=re.IGNORECASE
            )

        for keyword in ERROR_KEYWORDS:
            message = re.sub(
                rf'\b({keyword})\b',
                f'{ColorCodes.BRIGHT_RED}\\1{ColorCodes.RESET}',
                message,
                flags=re.IGNORECASE
            )

        return message


def _log_level() -> int:
    return getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)


def _make_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(EnhancedFormatter(use_colors=colors_enabled()))
    return handler


class EnhancedLogger:
    """Enhanced logger with automatic class.function detection"""

    def __init__(self, name: str = LOGGER_NAME):
        self.logger = logging.getLogger(name)
        self._setup_logger()

    def _setup_logger(self):
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

        self.logger.addHandler(_make_handler())
        self.logger.setLevel(_log_level())

        # Prevent duplicate logs
        self.logger.propagate = False

    def _get_caller_info(self) -> str:
        """Get the class.function of the calling method"""
        frame = inspect.currentframe()
        try:
            # Skip this method and the log method
            caller_frame = frame.f_back.f_back
            func_name = caller_frame.f_code.co_name

            if 'self' in caller_frame.f_locals:
                return f"{caller_frame.f_locals['self'].__class__.__name__}.{func_name}"
            if 'cls' in caller_frame.f_locals:
                return f"{caller_frame.f_locals['cls'].__name__}.{func_name}"
            return f"Module.{func_name}"
        except Exception:
            return "Unknown.unknown"
        finally:
            del frame

    def _log(self, level: int, message: str, args=(), exc_info=None):
        if self.logger.isEnabledFor(level):
            record = self.logger.makeRecord(
                self.logger.name, level, "", 0, message, args, exc_info
            )
            record.class_func = self._get_caller_info()
            self.logger.handle(record)

    def debug(self, message: str, *args):
        self._log(logging.DEBUG, message, args)

    def info(self, message: str, *args):
        self._log(logging.INFO, message, args)

    def warning(self, message: str, *args):
        self._log(logging.WARNING, message, args)

    def error(self, message: str, *args, exc_info=None):
        self._log(logging.ERROR, message, args, exc_info)

    def log_startup(self, component: str, **kwargs):
        """Log startup information with key-value pairs"""
        kv_pairs = ', '.join([f"{k}={v}" for k, v in kwargs.items()])
        self.info(f"Starting component '{component}' with config: {kv_pairs}")

    def log_api_call(self, method: str, endpoint: str, status_code: int, duration: float):
        """Log API calls with timing and status"""
        self.info(f"API {method} {endpoint} -> {status_code} in {duration:.3f}s")


enhanced_logger = EnhancedLogger()


def configure_logging(suppress_uvicorn=True):
    """Route package loggers through the enhanced handler and quiet uvicorn"""
    for prefix in APP_LOGGER_PREFIXES:
        package_logger = logging.getLogger(prefix)
        for handler in package_logger.handlers[:]:
            package_logger.removeHandler(handler)
        package_logger.addHandler(_make_handler())
        package_logger.setLevel(_log_level())
        package_logger.propagate = False

    if suppress_uvicorn:
        for logger_name in ['uvicorn', 'uvicorn.error', 'uvicorn.access']:
            uvicorn_logger = logging.getLogger(logger_name)
            uvicorn_logger.setLevel(logging.WARNING)
            for handler in uvicorn_logger.handlers[:]:
                uvicorn_logger.removeHandler(handler)

    # Everything else only above warnings
    logging.getLogger().setLevel(logging.WARNING)


configure_logging(suppress_uvicorn=True)
