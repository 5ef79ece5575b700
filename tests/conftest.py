"""Shared fixtures."""

import logging

import pytest

from constants import Constants


@pytest.fixture(autouse=True)
def isolated_cache_root(tmp_path, monkeypatch):
    """Point the generated-files root at a per-test temp directory."""
    root = tmp_path / "cache-root"
    monkeypatch.setenv(Constants.ENV_CACHE_LOCATION, str(root))
    monkeypatch.delenv(Constants.ENV_LOG_LEVEL, raising=False)
    return root


@pytest.fixture
def write_file(tmp_path):
    """Write ``content`` to ``tmp_path / relative`` and return the path as a string."""

    def _write(relative, content=""):
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Drop handlers and level changes made to the root logger by a test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
