"""Shared fixtures for llm-cli tests."""

from __future__ import annotations

import logging

import pytest

from llm_cli.diagnostics import Diagnostics


@pytest.fixture(autouse=True)
def _restore_logging():
    """Undo global logging changes made by setup_logging()."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging.disable(logging.NOTSET)
    logging.captureWarnings(False)


@pytest.fixture
def diagnostics() -> Diagnostics:
    return Diagnostics()


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config" / "config.json"
