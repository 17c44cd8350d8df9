"""
Thread Store - Persist the active thread id between client sessions
Only the id is stored; message history lives upstream
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

THREAD_KEY = "threadId"


def default_store_path() -> Path:
    home = os.environ.get("LU_CHAT_HOME") or os.path.expanduser("~/.lu_chat")
    return Path(home) / "thread.json"


class ThreadStore:
    """Single-key JSON file holding the active thread id"""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else default_store_path()

    def load(self) -> str | None:
        """Read the saved thread id; None when absent or unreadable"""
        if not self.path.exists():
            return None
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable thread store %s: %s", self.path, e)
            return None
        thread_id = data.get(THREAD_KEY) if isinstance(data, dict) else None
        return thread_id if isinstance(thread_id, str) and thread_id else None

    def save(self, thread_id: str):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump({THREAD_KEY: thread_id}, f)

    def clear(self):
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
