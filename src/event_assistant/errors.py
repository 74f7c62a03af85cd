"""
Event assistant error types.
"""

from typing import Any, Optional


class AssistantError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class EventPayloadError(AssistantError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("event_payload_error", message, details)


class StreamingError(AssistantError):
    def __init__(self, message: str):
        super().__init__("streaming_error", message)


class SchedulerStateError(AssistantError):
    def __init__(self, message: str, code: str = "scheduler_state_error"):
        super().__init__(code, message)


class WelcomeStateError(AssistantError):
    def __init__(self, message: str, code: str = "welcome_state_error"):
        super().__init__(code, message)


class PersistenceError(AssistantError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("persistence_error", message, details)
