"""
Inbound event types and their payload models.

Payload shape is fixed by event type; see PAYLOAD_MODELS.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class AssistantEvent:
    SELECT_ITEM = "map:item:selected"
    DESELECT_ITEM = "map:item:deselected"
    VIEWPORT_CHANGING = "viewport:changing"
    VIEWPORT_CHANGED = "viewport:changed"
    MARKERS_UPDATED = "markers:updated"
    ACTION_PRESSED = "ui:action:pressed"
    OPEN_VIEW = "ui:open:view"
    CLOSE_VIEW = "ui:close:view"
    NEXT_ITEM = "navigation:next"
    PREVIOUS_ITEM = "navigation:previous"
    CONNECTION_CHANGED = "connection:changed"


class Action:
    DETAILS = "details"
    SHARE = "share"
    SEARCH = "search"
    CAMERA = "camera"
    LOCATE = "locate"
    NEXT = "next"
    PREVIOUS = "previous"
    USER = "user"
    SAVED = "saved"


# Actions that only make sense with a focused item
ITEM_ACTIONS = {Action.DETAILS, Action.SHARE}


class ViewType:
    DETAILS = "details"
    SHARE = "share"
    SEARCH = "search"
    SCAN = "scan"


class MarkerData(BaseModel):
    title: Optional[str] = None
    emoji: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    time: Optional[str] = None
    category: Optional[str] = None
    categories: list[str] = []
    is_verified: bool = Field(default=False, alias="isVerified")
    rating: Optional[float] = None

    model_config = {"populate_by_name": True, "extra": "allow"}


class MapItem(BaseModel):
    id: str
    type: str = "marker"  # "marker" | "cluster"
    coordinates: Optional[tuple[float, float]] = None  # (longitude, latitude)
    data: Optional[MarkerData] = Field(default=None, alias="markerData")
    count: int = 0
    child_markers: list[str] = Field(default_factory=list, alias="childMarkers")

    model_config = {"populate_by_name": True}

    @property
    def is_cluster(self) -> bool:
        return self.type == "cluster"

    @property
    def title(self) -> Optional[str]:
        return self.data.title if self.data else None


class Viewport(BaseModel):
    north: float
    south: float
    east: float
    west: float

    @property
    def center(self) -> tuple[float, float]:
        """(latitude, longitude) of the viewport centre."""
        return ((self.north + self.south) / 2, (self.east + self.west) / 2)


class EmptyPayload(BaseModel):
    pass


class SelectItemPayload(BaseModel):
    item: MapItem


class DeselectItemPayload(BaseModel):
    item: Optional[MapItem] = None


class ViewportChangedPayload(BaseModel):
    viewport: Viewport
    markers: list[MapItem] = []
    searching: bool = False


class MarkersUpdatedPayload(BaseModel):
    markers: list[MapItem] = []
    count: Optional[int] = None

    @property
    def total(self) -> int:
        return self.count if self.count is not None else len(self.markers)


class ActionPressedPayload(BaseModel):
    action: str


class OpenViewPayload(BaseModel):
    view_type: str = Field(alias="viewType")

    model_config = {"populate_by_name": True}


class NavigationPayload(BaseModel):
    current_id: Optional[str] = Field(default=None, alias="currentId")

    model_config = {"populate_by_name": True}


class ConnectionChangedPayload(BaseModel):
    connected: bool


PAYLOAD_MODELS: dict[str, type[BaseModel]] = {
    AssistantEvent.SELECT_ITEM: SelectItemPayload,
    AssistantEvent.DESELECT_ITEM: DeselectItemPayload,
    AssistantEvent.VIEWPORT_CHANGING: EmptyPayload,
    AssistantEvent.VIEWPORT_CHANGED: ViewportChangedPayload,
    AssistantEvent.MARKERS_UPDATED: MarkersUpdatedPayload,
    AssistantEvent.ACTION_PRESSED: ActionPressedPayload,
    AssistantEvent.OPEN_VIEW: OpenViewPayload,
    AssistantEvent.CLOSE_VIEW: EmptyPayload,
    AssistantEvent.NEXT_ITEM: NavigationPayload,
    AssistantEvent.PREVIOUS_ITEM: NavigationPayload,
    AssistantEvent.CONNECTION_CHANGED: ConnectionChangedPayload,
}


def payload_model(event_type: str) -> Optional[type[BaseModel]]:
    return PAYLOAD_MODELS.get(event_type)


def coerce_payload(event_type: str, payload: Any) -> Any:
    """Validate a payload against its event type. Unregistered types pass through."""
    model = payload_model(event_type)
    if model is None:
        return payload
    if isinstance(payload, model):
        return payload
    if payload is None:
        payload = {}
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(by_alias=True)
    return model.model_validate(payload)
