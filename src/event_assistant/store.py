"""
Onboarding flag persistence — a single boolean in a small JSON state file.
"""

import json
from pathlib import Path
from typing import Any

from event_assistant.errors import PersistenceError

STATE_FILE = Path.home() / ".event_assistant" / "state.json"
WELCOME_SEEN_KEY = "welcome_seen"


class FlagStore:
    def __init__(self, path: Path = STATE_FILE, key: str = WELCOME_SEEN_KEY):
        self._path = Path(path)
        self._key = key

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        try:
            data = json.loads(self._path.read_text())
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to read {self._path}: {e}")
        if not isinstance(data, dict):
            raise PersistenceError(f"Unexpected state format in {self._path}")
        return data

    def read(self) -> bool:
        """Stored flag value; absent means False. Raises PersistenceError on unreadable state."""
        return bool(self._load().get(self._key, False))

    def write(self, value: bool) -> None:
        try:
            data = self._load()
        except PersistenceError:
            data = {}
        data[self._key] = value
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, indent=2))
        except OSError as e:
            raise PersistenceError(f"Failed to write {self._path}: {e}")

    def reset(self) -> None:
        try:
            data = self._load()
        except PersistenceError:
            data = {}
        data.pop(self._key, None)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, indent=2))
        except OSError as e:
            raise PersistenceError(f"Failed to write {self._path}: {e}")
