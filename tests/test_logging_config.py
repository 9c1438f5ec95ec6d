import logging

import pytest

from app.utils.logging_config import ColoredFormatter, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_console_and_file_handlers(tmp_path, restore_root_logger):
    setup_logging(level=logging.DEBUG, log_dir=str(tmp_path / "logs"))

    root = restore_root_logger
    assert root.level == logging.DEBUG
    assert any(isinstance(h, logging.FileHandler) for h in root.handlers)
    assert any(isinstance(h.formatter, ColoredFormatter) for h in root.handlers)
    assert len(list((tmp_path / "logs").glob("lighthouse_api_*.log"))) == 1
    assert logging.getLogger("uvicorn.access").level == logging.DEBUG


def test_console_only_when_no_log_dir(restore_root_logger):
    setup_logging(log_dir="")
    assert not any(isinstance(h, logging.FileHandler) for h in restore_root_logger.handlers)


def test_colored_formatter_wraps_level_color():
    record = logging.LogRecord("app", logging.ERROR, __file__, 1, "boom", None, None)
    out = ColoredFormatter().format(record)
    assert out.startswith(ColoredFormatter.red)
    assert "boom" in out
