"""Colorful console logging formatter and logging setup."""

import logging
import re
import sys
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fleet_admin.config.settings import Settings

# ANSI color codes
COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "white": "\033[37m",
    "bright_black": "\033[90m",
    "bright_red": "\033[91m",
    "bright_green": "\033[92m",
    "bright_yellow": "\033[93m",
    "bright_blue": "\033[94m",
    "bright_magenta": "\033[95m",
    "bright_cyan": "\033[96m",
    "bg_red": "\033[41m",
}

# Log level colors
LEVEL_COLORS = {
    "DEBUG": COLORS["bright_black"],
    "INFO": COLORS["bright_green"],
    "WARNING": COLORS["bright_yellow"],
    "ERROR": COLORS["bright_red"],
    "CRITICAL": COLORS["bg_red"] + COLORS["white"] + COLORS["bold"],
}

# Component colors for logger names
COMPONENT_COLORS = {
    "fleet_admin.services.pool": COLORS["bright_magenta"],
    "fleet_admin.services.connection": COLORS["bright_cyan"],
    "fleet_admin.services.dispatcher": COLORS["bright_blue"],
    "fleet_admin.services.ssh": COLORS["cyan"],
    "fleet_admin.config": COLORS["green"],
    "default": COLORS["white"],
}

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_DURATION = re.compile(r"(\d+\.?\d*m?s)\b")
_SSH_TARGET = re.compile(r"(\w+@[\w\.\-]+:\d+)")
_POOL_SIZE = re.compile(r"(pool_size=\d+(?:/\d+)?)")
_DRY_RUN = re.compile(r"(\[DRY RUN\])")


class ColorfulFormatter(logging.Formatter):
    """Colorful log formatter with component highlighting."""

    def __init__(self, use_colors: bool = True) -> None:
        """Initialize the formatter.

        Args:
            use_colors: Whether to use ANSI colors.
        """
        super().__init__()
        self.use_colors = use_colors

    def _colorize(self, text: str, color: str) -> str:
        """Apply color to text if colors are enabled."""
        if not self.use_colors:
            return text
        return f"{color}{text}{COLORS['reset']}"

    def _get_component_color(self, name: str) -> str:
        """Get color for a logger name/component."""
        for prefix, color in COMPONENT_COLORS.items():
            if prefix != "default" and name.startswith(prefix):
                return color
        return COMPONENT_COLORS["default"]

    def _format_timestamp(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created)
        return f"{dt.strftime('%H:%M:%S')}.{int(record.msecs):03d} {dt.strftime('%m/%d')}"

    def _format_level(self, record: logging.LogRecord) -> str:
        """Format log level with color and fixed width."""
        level = record.levelname
        color = LEVEL_COLORS.get(level, COLORS["white"])
        return self._colorize(f"{level:<8}", color)

    def _format_component(self, record: logging.LogRecord) -> str:
        """Format component/logger name with color."""
        name = record.name
        if name.startswith("fleet_admin."):
            name = name[len("fleet_admin.") :]
        color = self._get_component_color(record.name)
        return self._colorize(f"{name:<20}", color)

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with colors."""
        timestamp = self._colorize(self._format_timestamp(record), COLORS["dim"])
        level = self._format_level(record)
        component = self._format_component(record)
        sep = self._colorize("|", COLORS["dim"])

        message = self._highlight_message(record.getMessage())
        line = f"{timestamp} {sep} {level} {sep} {component} {sep} {message}"

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line

    def _highlight_message(self, message: str) -> str:
        """Highlight specific patterns in log messages."""
        if not self.use_colors:
            return message

        message = _DRY_RUN.sub(f"{COLORS['bright_yellow']}\\1{COLORS['reset']}", message)
        message = _DURATION.sub(f"{COLORS['bright_yellow']}\\1{COLORS['reset']}", message)
        message = _SSH_TARGET.sub(f"{COLORS['bright_magenta']}\\1{COLORS['reset']}", message)
        message = _POOL_SIZE.sub(f"{COLORS['cyan']}\\1{COLORS['reset']}", message)
        return message


class DispatchFormatter(ColorfulFormatter):
    """Formatter with a leading marker for session and dispatch events."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)

        if not self.use_colors:
            return base

        message = record.getMessage().lower()

        if "dry run" in message:
            return f"{COLORS['bright_yellow']}?{COLORS['reset']}   {base}"
        elif "exhausted" in message or "failed" in message or "error" in message:
            return f"{COLORS['bright_red']}!!{COLORS['reset']}  {base}"
        elif "completed" in message or "succeeded" in message or "established" in message:
            return f"{COLORS['bright_green']}OK{COLORS['reset']}  {base}"
        elif "opening" in message or "connecting" in message:
            return f"{COLORS['bright_cyan']}+{COLORS['reset']}   {base}"
        elif "closing" in message or "evicting" in message:
            return f"{COLORS['bright_yellow']}-{COLORS['reset']}   {base}"
        elif "reusing" in message:
            return f"{COLORS['bright_magenta']}~{COLORS['reset']}   {base}"

        return f"    {base}"


def configure_logging(settings: "Settings") -> logging.Logger:
    """Configure logging for the fleet_admin package.

    Installs a colorful stderr handler and, when ``settings.log_file`` is
    set, a plain-text file handler. Safe to call more than once.

    Args:
        settings: Settings carrying log level, colors and log file.

    Returns:
        The package logger.
    """
    use_colors = settings.log_colors and sys.stderr.isatty()

    fleet_logger = logging.getLogger("fleet_admin")
    fleet_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    if not fleet_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(DispatchFormatter(use_colors=use_colors))
        fleet_logger.addHandler(handler)
        fleet_logger.propagate = False

        if settings.log_file:
            settings.log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
            fleet_logger.addHandler(file_handler)

    # Suppress noisy third-party loggers
    logging.getLogger("asyncssh").setLevel(logging.WARNING)

    fleet_logger.debug(
        "Logging configured: level=%s, colors=%s, file=%s",
        settings.log_level,
        use_colors,
        settings.log_file,
    )
    return fleet_logger
