"""
MediaFlow Events — Synchronous dispatcher for workflow events.

Events emitted:
    ItemRouted        — new item routed into an inbox folder
    MarkedNeedsReview — item moved into the Needs Review folder
    Approved          — item moved into the effective Approved folder

Usage:
    bus = EventBus()
    bus.subscribe(ItemRouted, lambda event: ...)
    bus.emit(ItemRouted(item_id=7, folder_id=3, principal_id=2))

Handlers run in subscription order. A failing handler is logged and does not
stop the remaining handlers or the mutation that emitted the event.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Type

logger = logging.getLogger("mediaflow.engine.events")


@dataclass(frozen=True)
class Event:
    """Base class for emitted events."""

    name = "event"

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.name, **asdict(self)}


@dataclass(frozen=True)
class ItemRouted(Event):
    item_id: int
    folder_id: int
    principal_id: int

    name = "item_routed"


@dataclass(frozen=True)
class MarkedNeedsReview(Event):
    item_id: int
    folder_id: int

    name = "marked_needs_review"


@dataclass(frozen=True)
class Approved(Event):
    item_id: int
    folder_id: int

    name = "approved"


Handler = Callable[[Event], Any]


class EventBus:
    """Registry and dispatcher of event handlers keyed by event type."""

    def __init__(self):
        self._handlers: Dict[Type[Event], List[Handler]] = {}

    def subscribe(self, event_type: Type[Event], handler: Handler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed {getattr(handler, '__name__', handler)!r} to {event_type.name}")

    def unsubscribe(self, event_type: Type[Event], handler: Handler) -> bool:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def emit(self, event: Event) -> List[Dict[str, Any]]:
        """
        Dispatch an event to every handler subscribed to its type.

        Returns:
            One status dict per handler ("success" or "error").
        """
        results: List[Dict[str, Any]] = []
        for handler in list(self._handlers.get(type(event), [])):
            hook = getattr(handler, "__name__", repr(handler))
            try:
                handler(event)
                results.append({"hook": hook, "status": "success"})
            except Exception as e:
                logger.error(
                    f"Event handler failed: {hook} for {event.name}: {e}",
                    extra={"event": event.name},
                )
                results.append({"hook": hook, "status": "error", "error": str(e)})
        logger.debug(f"Emitted {event.name}", extra=event.to_dict())
        return results

    def handler_count(self, event_type: Type[Event]) -> int:
        return len(self._handlers.get(event_type, []))
