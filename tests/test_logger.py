# tests/test_logger.py
"""
Tests for the component loggers.
Run with: pytest tests/test_logger.py
"""

import logging
from logging.handlers import RotatingFileHandler

from rich.logging import RichHandler

from utils import logger as logger_module
from utils.logger import get_api_logger, get_logger, get_workspace_logger


def test_component_loggers_are_namespaced():
    assert get_api_logger("gateway").name == "api.gateway"
    assert get_workspace_logger("research").name == "workspace.research"


def test_handlers_are_attached_once():
    first = get_workspace_logger("attach-once")
    second = get_workspace_logger("attach-once")

    assert first is second
    assert [type(handler) for handler in first.handlers] == [RichHandler]
    assert first.propagate is False


def test_level_and_file_output_follow_settings(monkeypatch, tmp_path):
    monkeypatch.setattr(logger_module.settings, "log_level", "debug")
    monkeypatch.setattr(logger_module.settings, "log_to_file", True)
    monkeypatch.setattr(logger_module.settings, "log_dir", str(tmp_path / "logs"))

    log = get_logger("workspace.file-output")
    try:
        assert log.level == logging.DEBUG
        file_handlers = [h for h in log.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert list((tmp_path / "logs").glob("workspace.file-output_*.log"))
    finally:
        for handler in list(log.handlers):
            handler.close()
            log.removeHandler(handler)


def test_unknown_level_falls_back_to_info(monkeypatch):
    monkeypatch.setattr(logger_module.settings, "log_level", "chatty")

    assert get_logger("workspace.unknown-level").level == logging.INFO
