"""
Message flows — the text the assistant says for each situation.

Templates substitute item attributes; any missing attribute falls back to
neutral wording instead of failing.
"""

from __future__ import annotations

import math
import random
from typing import Optional

from event_assistant.models.events import Action, MapItem, ViewType

FALLBACK_TITLE = "this location"
FALLBACK_CLUSTER_TITLE = "this group of events"
UNAVAILABLE_MESSAGE = "Sorry, I couldn't load information about this location."
SELECT_FIRST_MESSAGE = "Please select a location first."
CLOSING_PROMPT = "How can I help you explore this place?"

GOODBYE_MESSAGES = [
    "Goodbye for now! Let me know if you want to explore more locations.",
    "Goodbye! I'll be here when you're ready to discover more places!",
    "Goodbye! Until next time! Looking forward to your next exploration.",
    "Goodbye for now! Tap any marker to learn about other places.",
    "Goodbye from this location. Let me know when you're ready for more!",
]

ACTION_MESSAGES: dict[str, list[str]] = {
    Action.DETAILS: ["Opening detailed information about this location."],
    Action.SHARE: ["Let's share this place with your friends!"],
    Action.SEARCH: ["Looking for something specific?"],
    Action.CAMERA: ["Scanner activated!", "Scan an image of a flyer to get information about an event."],
    Action.NEXT: ["Let me show you the next event on your itinerary."],
    Action.PREVIOUS: ["Going back to the previous location."],
    Action.USER: ["Launching your profile."],
    Action.SAVED: ["Let's see what you've bookmarked for later."],
}
DEFAULT_ACTION_MESSAGE = "How can I help you with this location?"

VIEW_MESSAGES: dict[str, str] = {
    ViewType.DETAILS: "Here are the event details. You can get directions or share this event.",
    ViewType.SHARE: "Share this event with friends and family.",
    ViewType.SEARCH: "Search for events by name, location, or category.",
    ViewType.SCAN: "Scan event flyers or posters to add them to your list.",
}
VIEW_EMOJI: dict[str, str] = {
    ViewType.DETAILS: "📖",
    ViewType.SHARE: "🔗",
    ViewType.SEARCH: "🔍",
    ViewType.SCAN: "📸",
}
CLOSE_VIEW_MESSAGE = "What would you like to explore next?"

# First match wins, so longer phrases go before their substrings.
EMOJI_MAP: list[tuple[str, str]] = [
    ("discovered", "🔭"),
    ("Welcome back", "👋"),
    ("Welcome", "👋"),
    ("Hey", "👋"),
    ("Returning", "↩️"),
    ("Launching", "🚀"),
    ("Starts in", "⏰"),
    ("Happening now", "⏰"),
    ("meters away", "📍"),
    ("km away", "📍"),
    ("Located at", "🗺️"),
    ("verified", "✅"),
    ("Opening detailed", "📝"),
    ("share", "📲"),
    ("Looking", "🔍"),
    ("Search", "🔍"),
    ("Scanning", "🔍"),
    ("flyer", "📜"),
    ("Scanner", "📷"),
    ("next", "⏭️"),
    ("previous", "⏮️"),
    ("Categories", "🏷️"),
    ("moved away", "👋"),
    ("Goodbye", "👋"),
    ("How can I help", "💬"),
    ("rating", "⭐"),
    ("bookmarked", "🔖"),
    ("found a hotspot", "🔥"),
    ("found a group", "📍"),
    ("major event hub", "🌟"),
    ("interesting events", "📅"),
    ("events are taking place", "📅"),
    ("time", "⏰"),
    ("assistant", "🤖"),
]


def emoji_for(text: str) -> str:
    """Pick an emoji from message content; empty when nothing matches."""
    for key, emoji in EMOJI_MAP:
        if key in text:
            return emoji
    return ""


def distance_km(origin: tuple[float, float], target: tuple[float, float]) -> float:
    """Haversine distance between two (longitude, latitude) points."""
    lon1, lat1 = map(math.radians, origin)
    lon2, lat2 = map(math.radians, target)
    a = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
    )
    return 6371.0 * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def format_distance(km: float) -> str:
    if km < 1:
        return f"{round(km * 1000)} meters away"
    return f"{km:.1f} km away"


def welcome_flow(user_name: Optional[str] = None) -> list[str]:
    messages = [f"Welcome, {user_name}!" if user_name else "Welcome to EventExplorer!"]
    messages.append("I'm your personal event assistant.")
    messages.append("Tap on any marker to discover events and attractions near you.")
    messages.append("Use the action buttons below to search for events, scan event flyers or launch your profile.")
    return messages


def marker_flow(item: MapItem, user_location: Optional[tuple[float, float]] = None) -> list[str]:
    data = item.data
    if data is None:
        return [UNAVAILABLE_MESSAGE]

    messages = [f"You discovered {data.title or FALLBACK_TITLE}!"]
    if data.location:
        messages.append(f"Located at {data.location}")
    if user_location is not None and item.coordinates is not None:
        messages.append(f"{format_distance(distance_km(user_location, item.coordinates))} from your current location")
    if data.time:
        messages.append(f"Event time: {data.time}")
    if data.is_verified:
        messages.append("This is a verified location ✓")
    if data.rating:
        messages.append(f"It has a rating of {data.rating:g}/5 stars based on visitor reviews.")
    if data.description:
        messages.append(data.description)
    if len(data.categories) > 1:
        messages.append(f"Categories: {', '.join(data.categories)}")
    messages.append(CLOSING_PROMPT)
    return messages


def cluster_headline(count: int) -> str:
    if count > 10:
        return f"You've found a hotspot with {count} events!"
    return f"You've found a group of {count} events!"


def cluster_flow(count: int) -> list[str]:
    if count > 20:
        detail = "This is a major event hub with lots of activities."
    elif count > 10:
        detail = "This location hosts several interesting events."
    elif count > 5:
        detail = "A few interesting events are happening at this location."
    else:
        detail = "A couple of events are taking place here."
    return [cluster_headline(count), detail]


def item_title(item: Optional[MapItem]) -> Optional[str]:
    if item is None:
        return None
    if item.is_cluster:
        return FALLBACK_CLUSTER_TITLE
    return item.title


def goodbye_message(item_name: Optional[str] = None, rng: Optional[random.Random] = None) -> str:
    message = (rng or random).choice(GOODBYE_MESSAGES)
    if item_name:
        return f"You've moved away from {item_name}. {message}"
    return message


def action_flow(action: str, user_location: Optional[tuple[float, float]] = None) -> list[str]:
    if action == Action.LOCATE:
        where = ", ".join(f"{c:g}" for c in user_location) if user_location else "your location"
        return [f"Returning to {where}"]
    return list(ACTION_MESSAGES.get(action, [DEFAULT_ACTION_MESSAGE]))


def markers_found_message(count: int) -> str:
    if count == 0:
        return "No events found in this area."
    return f"Found {count} event{'s' if count > 1 else ''} in this area! Swipe through to explore them."
