"""
Event envelope — what the bus hands to every subscriber.
"""

from typing import Any

from pydantic import BaseModel


class EventEnvelope(BaseModel):
    type: str
    payload: Any = None
    timestamp: float
    source: str = ""

    model_config = {"arbitrary_types_allowed": True}
