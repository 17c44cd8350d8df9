"""Pytest configuration and shared fixtures."""

import pytest
from sse_starlette.sse import AppStatus

from services.config_manager import ConfigManager


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point config and thread storage at a temp dir with a clean environment."""
    monkeypatch.setenv("LU_CHAT_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("LU_CHAT_HOME", str(tmp_path / "home"))
    for name in ("OPENAI_API_KEY", "ASSISTANT_ID", "OPENAI_BASE_URL"):
        monkeypatch.delenv(name, raising=False)
    ConfigManager.reset_instance()
    yield tmp_path
    ConfigManager.reset_instance()


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """sse-starlette keeps an exit event bound to the first event loop."""
    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
    yield
    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
