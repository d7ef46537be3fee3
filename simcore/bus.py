"""
TribeSim: simcore/bus.py
Simulation event bus: typed envelopes and a bespoke pub-sub.
============================================================
Stack:       Python 3.11+ | Pydantic v2 | bespoke pub-sub
Status:      Core wiring layer.

Architecture notes
------------------
- All bus traffic is a SimEvent (Pydantic v2 BaseModel).
- data must remain flat + JSON-serializable; the chronicle writes it as-is.
- Wildcard key "*" receives every emitted event (used by the chronicle).
- The bus is injected at construction. There is no global instance.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# ============================================================
# CANONICAL EVENT KEYS
# Never use raw strings. Add new keys here only.
# ============================================================

EVT_SESSION_OPENED = "sim.session_opened"
EVT_SESSION_CLOSED = "sim.session_closed"
EVT_TICK_ADVANCED = "sim.tick_advanced"
EVT_TRIBE_EXTINCT = "tribe.extinct"
EVT_TRIBE_SETTLED = "tribe.settled"
EVT_TECH_DISCOVERED = "tribe.tech_discovered"
EVT_EVENT_GENERATED = "event.generated"
EVT_EVENT_RESOLVED = "event.resolved"
EVT_GAME_SAVED = "storage.saved"
EVT_GAME_LOADED = "storage.loaded"


class SimEvent(BaseModel):
    """Envelope for everything that travels on the bus."""
    event_key: str
    source: str
    tick: int = 0
    data: Dict[str, Any] = Field(default_factory=dict)


HandlerFn = Callable[[SimEvent], None]


class EventBus:
    """
    Bespoke pub-sub. Pass instance at construction.

    Per-handler errors are logged and swallowed so emission always
    continues for the remaining subscribers.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[HandlerFn]] = {}

    def subscribe(self, event_key: str, handler: HandlerFn) -> None:
        self._subscribers.setdefault(event_key, []).append(handler)

    def unsubscribe(self, event_key: str, handler: HandlerFn) -> None:
        # Bound methods are rebuilt on each attribute access; compare by equality.
        if event_key in self._subscribers:
            self._subscribers[event_key] = [
                h for h in self._subscribers[event_key] if h != handler
            ]

    def emit(self, event: SimEvent) -> None:
        targets = (
            self._subscribers.get(event.event_key, [])
            + self._subscribers.get("*", [])
        )
        for handler in targets:
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                logger.exception("Handler error on '%s'", event.event_key)

    def publish(self, event_key: str, source: str, tick: int = 0, data: Optional[Dict[str, Any]] = None) -> None:
        """Shorthand for emit(SimEvent(...))."""
        self.emit(SimEvent(event_key=event_key, source=source, tick=tick, data=data or {}))
