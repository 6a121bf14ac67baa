"""Tests for console log formatting and logging setup."""

import logging
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

from fleet_admin.config import Settings
from fleet_admin.utils.console import (
    COLORS,
    ColorfulFormatter,
    DispatchFormatter,
    configure_logging,
)


def make_record(
    msg: str, *args: object, name: str = "fleet_admin.services.pool", level: int = logging.INFO
) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, msg, args, None)


@pytest.fixture
def restore_fleet_logger() -> Iterator[logging.Logger]:
    fleet_logger = logging.getLogger("fleet_admin")
    saved = (fleet_logger.handlers[:], fleet_logger.level, fleet_logger.propagate)
    fleet_logger.handlers.clear()
    yield fleet_logger
    for handler in fleet_logger.handlers:
        handler.close()
    fleet_logger.handlers[:] = saved[0]
    fleet_logger.setLevel(saved[1])
    fleet_logger.propagate = saved[2]


class TestColorfulFormatter:
    """Test ColorfulFormatter."""

    def test_plain_output_has_no_ansi(self) -> None:
        formatter = ColorfulFormatter(use_colors=False)

        line = formatter.format(make_record("Reusing session for %s", "ops@web-01:22"))

        assert "\033[" not in line
        assert "INFO" in line
        assert "services.pool" in line
        assert "fleet_admin.services.pool" not in line
        assert line.endswith("Reusing session for ops@web-01:22")

    def test_colors_highlight_targets_and_durations(self) -> None:
        formatter = ColorfulFormatter(use_colors=True)

        line = formatter.format(make_record("Connected to ops@web-01:22 in 12.5ms"))

        assert f"{COLORS['bright_magenta']}ops@web-01:22{COLORS['reset']}" in line
        assert f"{COLORS['bright_yellow']}12.5ms{COLORS['reset']}" in line

    def test_component_color(self) -> None:
        formatter = ColorfulFormatter(use_colors=True)

        line = formatter.format(make_record("x", name="fleet_admin.services.dispatcher"))

        assert COLORS["bright_blue"] in line

    def test_exception_appended(self) -> None:
        formatter = ColorfulFormatter(use_colors=False)
        try:
            raise RuntimeError("kaboom")
        except RuntimeError:
            record = logging.LogRecord(
                "fleet_admin", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )

        line = formatter.format(record)

        assert "Traceback" in line
        assert "RuntimeError: kaboom" in line


class TestDispatchFormatter:
    """Test DispatchFormatter markers."""

    @pytest.mark.parametrize(
        ("message", "marker"),
        [
            ("[DRY RUN] Would execute on web-01: restart", "?"),
            ("Connection attempts exhausted for web-01", "!!"),
            ("Session established to web-01", "OK"),
            ("Evicting session for web-01", "-"),
        ],
    )
    def test_markers(self, message: str, marker: str) -> None:
        formatter = DispatchFormatter(use_colors=True)

        line = formatter.format(make_record(message))

        assert line.split(COLORS["reset"], 1)[0].endswith(marker)

    def test_no_marker_without_colors(self) -> None:
        formatter = DispatchFormatter(use_colors=False)
        plain = ColorfulFormatter(use_colors=False)
        record = make_record("Session established to web-01")

        assert formatter.format(record) == plain.format(record)


class TestConfigureLogging:
    """Test configure_logging."""

    def test_sets_level_and_single_handler(self, restore_fleet_logger: logging.Logger) -> None:
        settings = Settings(log_level="DEBUG")

        logger = configure_logging(settings)
        configure_logging(settings)

        assert logger is restore_fleet_logger
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, DispatchFormatter)
        assert logger.propagate is False
        assert logging.getLogger("asyncssh").level == logging.WARNING

    def test_file_handler(self, restore_fleet_logger: logging.Logger, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "fleet.log"

        logger = configure_logging(Settings(log_file=log_file))
        logging.getLogger("fleet_admin.services.dispatcher").info("dispatch completed")
        for handler in logger.handlers:
            handler.flush()

        assert len(logger.handlers) == 2
        content = log_file.read_text(encoding="utf-8")
        assert "INFO" in content
        assert "fleet_admin.services.dispatcher | dispatch completed" in content

    def test_unknown_level_falls_back_to_info(self, restore_fleet_logger: logging.Logger) -> None:
        logger = configure_logging(Settings(log_level="chatty"))

        assert logger.level == logging.INFO
