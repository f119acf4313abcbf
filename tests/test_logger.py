# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from gpeditor.core.exceptions import OperationFailedError
from gpeditor.core.logger import (
    configure_logging,
    get_logger,
    log_command_complete,
    log_error,
    log_shutdown,
    operation_timer,
    parse_level,
)


@pytest.fixture(autouse=True)
def reset_handlers():
    yield
    logger = logging.getLogger("gpedit")
    for handler in list(logger.handlers):
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()


def test_parse_level():
    assert parse_level("debug") == logging.DEBUG
    assert parse_level("bogus") == logging.INFO


def test_configure_replaces_handlers(tmp_path):
    configure_logging(log_dir=tmp_path)
    logger = configure_logging(log_dir=tmp_path, verbose=True)

    handlers = [h for h in logger.handlers if not isinstance(h, logging.NullHandler)]
    assert len(handlers) == 2
    assert logger.level == logging.DEBUG


def test_file_log_contents(tmp_path):
    configure_logging(level="INFO", log_dir=tmp_path)

    log_command_complete("list", True, 0.012)
    error = OperationFailedError("write refused", gpo_id="g", setting_name="Flag")
    log_error(error, "set", value="1")
    with pytest.raises(RuntimeError):
        with operation_timer("set_policy_setting"):
            raise RuntimeError("boom")
    log_shutdown()

    text = (tmp_path / "gpedit.log").read_text(encoding="utf-8")
    assert "Command completed: list in 12.0ms" in text
    assert '"setting_name": "Flag"' in text
    assert '"context_data": {"value": "1"}' in text


def test_console_only(tmp_path, caplog):
    configure_logging(log_dir=tmp_path / "logs", file_output=False)
    with caplog.at_level(logging.INFO, logger="gpedit"):
        get_logger("cli").info("hello")
    assert "hello" in caplog.text
    assert not (tmp_path / "logs").exists()
