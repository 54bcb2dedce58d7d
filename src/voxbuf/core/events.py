"""Explicit observer lists keyed by event type."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

EventCallback = Callable[[Mapping[str, Any]], None]
"""Listener called with the fired event, a mapping holding at least ``type``."""


class ListenerHandler:
    """Per-instance registry of event listeners."""

    def __init__(self) -> None:
        self._callbacks: dict[str, list[EventCallback]] = {}

    def add(self, event_type: str, callback: EventCallback) -> None:
        self._callbacks.setdefault(event_type, []).append(callback)

    def remove(self, event_type: str, callback: EventCallback) -> None:
        """Remove a listener; unknown listeners are ignored."""
        callbacks = self._callbacks.get(event_type)
        if not callbacks:
            return
        try:
            callbacks.remove(callback)
        except ValueError:
            return

    def fire_event(self, event: Mapping[str, Any]) -> None:
        # copy: listeners may unsubscribe while being called
        for callback in list(self._callbacks.get(event["type"], [])):
            callback(event)
