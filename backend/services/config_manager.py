"""
Configuration Manager - Relay settings persistence
Environment variables take precedence over the config file
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from services.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"

# Config keys that can be supplied through the environment
ENV_OVERRIDES = {
    "OPENAI_API_KEY": "apiKey",
    "ASSISTANT_ID": "assistantId",
    "OPENAI_BASE_URL": "baseUrl",
}


class RelaySettings(BaseModel):
    """Resolved settings for one relay request"""

    api_key: str = ""
    assistant_id: str = ""
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = 60.0
    stream_read_timeout: float = 120.0
    fallback_limit: int = 5

    def missing(self) -> list[str]:
        """Names of the required environment variables that are unset"""
        names = []
        if not self.api_key:
            names.append("OPENAI_API_KEY")
        if not self.assistant_id:
            names.append("ASSISTANT_ID")
        return names

    def require(self) -> "RelaySettings":
        """Raise ConfigurationError unless the credential and assistant are set"""
        missing = self.missing()
        if missing:
            raise ConfigurationError(f"Missing environment variables: {' and/or '.join(missing)}")
        return self


class ConfigManager:
    """Manage configuration persistence"""

    _instance = None
    _config_file = None

    def __init__(self):
        try:
            # 1st: explicit environment variable
            config_dir = os.environ.get("LU_CHAT_CONFIG_DIR")

            # 2nd: home directory ~/.lu_chat
            if not config_dir:
                config_dir = os.path.expanduser("~/.lu_chat")

            config_path = Path(config_dir)
            try:
                config_path.mkdir(parents=True, exist_ok=True)
                self._config_file = config_path / "config.json"
            except OSError as e:
                logger.warning("Cannot write to %s: %s", config_dir, e)
                self._config_file = None

            # Last resort: temp dir
            if not self._config_file:
                tmp_dir = Path(tempfile.gettempdir()) / "lu_chat"
                tmp_dir.mkdir(parents=True, exist_ok=True)
                self._config_file = tmp_dir / "config.json"
                logger.info("Using temporary config path: %s", self._config_file)

        except OSError as e:
            logger.error("Cannot create config directory: %s", e)
            self._config_file = Path(tempfile.gettempdir()) / "lu_chat_config_fallback.json"

        self._config = self._load_config()

    @classmethod
    def get_instance(cls) -> "ConfigManager":
        """Get singleton instance"""
        if cls._instance is None:
            cls._instance = ConfigManager()
        return cls._instance

    @classmethod
    def reset_instance(cls):
        """Drop the singleton so the next access re-reads disk and env"""
        cls._instance = None

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from file"""
        if not self._config_file.exists():
            return self._default_config()

        try:
            with open(self._config_file) as f:
                return {**self._default_config(), **json.load(f)}
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Error loading config: %s", e)
            return self._default_config()

    def _default_config(self) -> dict[str, Any]:
        """Get default configuration"""
        return {
            "apiKey": "",
            "assistantId": "",
            "baseUrl": DEFAULT_BASE_URL,
            "requestTimeout": 60.0,
            "streamReadTimeout": 120.0,
            "fallbackLimit": 5,
            "server": {"host": "0.0.0.0", "port": 8000},
        }

    def get_config(self) -> dict[str, Any]:
        """Get current configuration with environment overrides applied"""
        # Reload config from file to ensure we have the latest
        self._config = self._load_config()
        config = self._config.copy()
        for env_name, key in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                config[key] = value
        return config

    def get_settings(self) -> RelaySettings:
        """Get the relay settings view of the current configuration"""
        config = self.get_config()
        return RelaySettings(
            api_key=config.get("apiKey") or "",
            assistant_id=config.get("assistantId") or "",
            base_url=(config.get("baseUrl") or DEFAULT_BASE_URL).rstrip("/"),
            request_timeout=config.get("requestTimeout", 60.0),
            stream_read_timeout=config.get("streamReadTimeout", 120.0),
            fallback_limit=config.get("fallbackLimit", 5),
        )

    def save_config(self, config: dict[str, Any]):
        """Save configuration to file"""
        # Merge with existing config
        self._config.update(config)

        # Ensure config directory exists
        self._config_file.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(self._config_file, "w") as f:
                json.dump(self._config, f, indent=2)
        except OSError as e:
            raise RuntimeError(f"Failed to save config: {e}")

    def get(self, key: str, default=None):
        """Get specific config value"""
        return self._config.get(key, default)
