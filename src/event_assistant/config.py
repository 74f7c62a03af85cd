"""
Assistant configuration — ~/.event_assistant/config.json plus EVENT_ASSISTANT_* overrides.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel

from event_assistant.store import STATE_FILE

logger = logging.getLogger(__name__)

CONFIG_FILE = Path.home() / ".event_assistant" / "config.json"
ENV_PREFIX = "EVENT_ASSISTANT_"


class AssistantConfig(BaseModel):
    tick_interval: float = 0.02
    inter_message_pause: float = 0.3
    auto_dismiss_delay: float = 5.0
    reentrancy_window: float = 0.1
    welcome_line_pause: float = 1.0
    state_file: Path = STATE_FILE
    user_name: Optional[str] = None
    user_location: Optional[tuple[float, float]] = None  # (longitude, latitude)


def _read_file(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def _read_env() -> dict[str, Any]:
    values: dict[str, Any] = {}
    for name in AssistantConfig.model_fields:
        raw = os.environ.get(ENV_PREFIX + name.upper())
        if raw is None:
            continue
        if name == "user_location":
            try:
                lon, lat = (float(part) for part in raw.split(","))
            except ValueError:
                logger.warning(
                    "Ignoring %s%s=%r: expected \"longitude,latitude\"", ENV_PREFIX, name.upper(), raw
                )
                continue
            values[name] = (lon, lat)
        else:
            values[name] = raw
    return values


def load_config(path: Path = CONFIG_FILE) -> AssistantConfig:
    """File values first, then environment overrides."""
    return AssistantConfig.model_validate({**_read_file(path), **_read_env()})


def save_config(config: AssistantConfig, path: Path = CONFIG_FILE) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(config.model_dump_json(indent=2, exclude_defaults=True))
