"""
Inbound wire envelopes from the map backend.

The backend emits Socket.IO events named after AssistantEvent types. Data is
either a bare payload or wrapped as {"type": ..., "payload": {...}}.
"""

from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from event_assistant.models.events import payload_model


class WireEnvelope(BaseModel):
    type: Optional[str] = None
    payload: dict[str, Any] = {}
    source: str = ""


def parse_envelope(event: str, raw: Any) -> Optional[WireEnvelope]:
    """Parse an inbound event. Returns None for unknown types or malformed data."""
    if not isinstance(raw, dict):
        raw = {}
    try:
        if "payload" in raw:
            envelope = WireEnvelope.model_validate(raw)
        else:
            envelope = WireEnvelope(payload=raw)
    except ValidationError:
        return None
    if envelope.type is None:
        envelope.type = event
    if payload_model(envelope.type) is None:
        return None
    return envelope
