"""
event-assistant — event-driven assistant messaging engine.

Narrates map activity as short, prioritized, typed-out status messages.
"""

from event_assistant.assistant import Assistant
from event_assistant.bus import EventBus
from event_assistant.config import AssistantConfig, load_config, save_config
from event_assistant.errors import (
    AssistantError,
    EventPayloadError,
    PersistenceError,
    SchedulerStateError,
    StreamingError,
    WelcomeStateError,
)
from event_assistant.models.events import Action, AssistantEvent, ViewType
from event_assistant.models.message import AssistantView, Priority
from event_assistant.queue import MessageQueue, SchedulerState
from event_assistant.streaming import TextStreamer
from event_assistant.welcome import WelcomeState

__version__ = "0.1.0"
__all__ = [
    "Assistant",
    "AssistantConfig",
    "load_config",
    "save_config",
    "EventBus",
    "MessageQueue",
    "SchedulerState",
    "TextStreamer",
    "WelcomeState",
    "AssistantEvent",
    "Action",
    "ViewType",
    "AssistantView",
    "Priority",
    "AssistantError",
    "EventPayloadError",
    "StreamingError",
    "SchedulerStateError",
    "WelcomeStateError",
    "PersistenceError",
]
