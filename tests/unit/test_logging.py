"""Unit tests for flownav logging module."""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator

import pytest

from flownav.core.logging import (
    COMPONENT_COLORS,
    ColoredFormatter,
    component_of,
    get_logger,
    set_default_level,
    setup_logging,
)

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _restore_default_level() -> Iterator[None]:
    """Save and restore the module-level _default_level after each test."""
    from flownav.core import logging as flownav_logging

    original = flownav_logging._default_level
    yield
    set_default_level(original)


def _unique_name() -> str:
    return f'test_{uuid.uuid4().hex[:8]}'


class TestSetDefaultLevel:
    """Tests for set_default_level()."""

    def test_changes_module_variable(self) -> None:
        from flownav.core import logging as flownav_logging

        set_default_level(logging.DEBUG)
        assert flownav_logging._default_level == logging.DEBUG

        set_default_level(logging.WARNING)
        assert flownav_logging._default_level == logging.WARNING

    def test_new_logger_uses_default_level(self) -> None:
        set_default_level(logging.WARNING)
        logger = get_logger(_unique_name())
        assert logger.level == logging.WARNING

    def test_logger_handler_respects_default_level(self) -> None:
        set_default_level(logging.ERROR)
        logger = get_logger(_unique_name())

        assert len(logger.handlers) > 0
        for handler in logger.handlers:
            assert handler.level == logging.ERROR


class TestGetLogger:
    def test_namespaced_and_not_propagating(self) -> None:
        name = _unique_name()
        logger = get_logger(name)
        assert logger.name == f'flownav.{name}'
        assert logger.propagate is False

    def test_logs_to_stderr(self) -> None:
        logger = get_logger(_unique_name())
        handler = logger.handlers[0]
        assert isinstance(handler, logging.StreamHandler)
        assert handler.stream is sys.stderr

    def test_handler_added_once(self) -> None:
        name = _unique_name()
        get_logger(name)
        assert len(get_logger(name).handlers) == 1


class TestSetupLogging:
    def test_updates_existing_loggers(self) -> None:
        logger = get_logger(_unique_name())
        setup_logging('debug')
        assert logger.level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in logger.handlers)

    def test_unknown_level_falls_back_to_info(self) -> None:
        from flownav.core import logging as flownav_logging

        setup_logging('LOUD')
        assert flownav_logging._default_level == logging.INFO


class TestColoredFormatter:
    def test_component_and_level_in_output(self) -> None:
        record = logging.LogRecord(
            'flownav.engine', logging.WARNING, __file__, 1, 'escalated', None, None
        )
        text = ColoredFormatter().format(record)
        assert '[engine]' in text
        assert '[WARNING]' in text
        assert 'escalated' in text

    def test_nested_component_keeps_full_path(self) -> None:
        record = logging.LogRecord(
            'flownav.persistence.sql', logging.INFO, __file__, 1, 'saved', None, None
        )
        text = ColoredFormatter(use_color=False).format(record)
        assert '[persistence.sql]' in text
        assert '[sql]' not in text

    def test_plain_output_has_no_escape_codes(self) -> None:
        record = logging.LogRecord(
            'flownav.store', logging.INFO, __file__, 1, 'saved', None, None
        )
        text = ColoredFormatter(use_color=False).format(record)
        assert '\033[' not in text
        assert text.endswith('[INFO]    saved')

    def test_tags_align_across_components(self) -> None:
        formatter = ColoredFormatter(use_color=False)
        offsets = {
            formatter.format(
                logging.LogRecord(f'flownav.{name}', logging.INFO, __file__, 1, 'x', None, None)
            ).index('[INFO]')
            for name in COMPONENT_COLORS
        }
        assert len(offsets) == 1

    def test_component_color_applied(self) -> None:
        record = logging.LogRecord(
            'flownav.engine', logging.INFO, __file__, 1, 'advanced', None, None
        )
        text = ColoredFormatter().format(record)
        assert f"{COMPONENT_COLORS['engine']}[engine]" in text

    def test_component_of_strips_namespace_only(self) -> None:
        assert component_of('flownav.persistence.json') == 'persistence.json'
        assert component_of('flownav.cli') == 'cli'
        assert component_of('sqlalchemy.engine') == 'sqlalchemy.engine'
