"""
TribeSim: simcore/chronicle.py
Chronicle: append-only JSONL history of notable simulation happenings.
=====================================================================
Stack:       Python 3.11+ | stdlib json | bespoke EventBus
Status:      Passive observer. No simulation logic here.

Architecture notes
------------------
- The inscriber is a wildcard subscriber on the EventBus. It never emits.
- Entries are frozen once built and appended one JSON object per line.
  The file is opened in append mode and never truncated.
- Significance gate (int 1-5): events below CHRONICLE_SIGNIFICANCE_MIN are
  dropped. Routine ticks score 1 and are therefore not inscribed.
- Time is the simulation tick carried on the SimEvent, never wall time.

Significance Scoring Reference (CHRONICLE_SIGNIFICANCE_MIN = 2)
----------------------------------------------------------------
  1  routine (EVT_TICK_ADVANCED)
  2  bookkeeping (EVT_GAME_SAVED, EVT_GAME_LOADED, EVT_EVENT_RESOLVED)
  3  notable (EVT_EVENT_GENERATED, EVT_TRIBE_SETTLED, EVT_TECH_DISCOVERED)
  4  significant (EVT_TRIBE_EXTINCT; EVT_EVENT_GENERATED at priority >= 8)
  5  session markers
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

from simcore.bus import (
    EVT_EVENT_GENERATED,
    EVT_EVENT_RESOLVED,
    EVT_GAME_LOADED,
    EVT_GAME_SAVED,
    EVT_SESSION_CLOSED,
    EVT_SESSION_OPENED,
    EVT_TECH_DISCOVERED,
    EVT_TICK_ADVANCED,
    EVT_TRIBE_EXTINCT,
    EVT_TRIBE_SETTLED,
    EventBus,
    SimEvent,
)

# ============================================================
# DESIGN VARIABLE DEFAULTS
# ============================================================

CHRONICLE_SIGNIFICANCE_MIN: int = 2
HIGH_PRIORITY_EVENT: int = 8

_SIGNIFICANCE_TABLE: Dict[str, int] = {
    EVT_TICK_ADVANCED:    1,

    EVT_GAME_SAVED:       2,
    EVT_GAME_LOADED:      2,
    EVT_EVENT_RESOLVED:   2,

    EVT_EVENT_GENERATED:  3,
    EVT_TRIBE_SETTLED:    3,
    EVT_TECH_DISCOVERED:  3,

    EVT_TRIBE_EXTINCT:    4,

    EVT_SESSION_OPENED:   5,
    EVT_SESSION_CLOSED:   5,
}

_VERBS: Dict[str, str] = {
    EVT_TICK_ADVANCED:   "advanced",
    EVT_GAME_SAVED:      "saved",
    EVT_GAME_LOADED:     "loaded",
    EVT_EVENT_RESOLVED:  "resolved",
    EVT_EVENT_GENERATED: "befell",
    EVT_TRIBE_SETTLED:   "settled",
    EVT_TECH_DISCOVERED: "discovered",
    EVT_TRIBE_EXTINCT:   "perished",
    EVT_SESSION_OPENED:  "opened",
    EVT_SESSION_CLOSED:  "closed",
}


@dataclass(frozen=True)
class ChronicleEntry:
    entry_id: str
    tick: int
    event_key: str
    source: str
    verb: str
    details: Dict[str, Any]
    significance: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "tick": self.tick,
            "event_key": self.event_key,
            "source": self.source,
            "verb": self.verb,
            "details": self.details,
            "significance": self.significance,
        }


def score_significance(event: SimEvent) -> int:
    """
    Table lookup (unknown keys score 1) with one override: generated
    events at priority >= HIGH_PRIORITY_EVENT (raids, wars) score 4.
    """
    base = _SIGNIFICANCE_TABLE.get(event.event_key, 1)
    if event.event_key == EVT_EVENT_GENERATED:
        priority = event.data.get("priority", 0)
        if isinstance(priority, int) and priority >= HIGH_PRIORITY_EVENT:
            base = max(base, 4)
    return base


# ============================================================
# CHRONICLE INSCRIBER
# ============================================================

class ChronicleInscriber:
    """
    Usage:
        bus = EventBus()
        inscriber = ChronicleInscriber(bus, Path("saves/chronicle.jsonl"))
        # ... simulation publishes on bus ...
    """

    def __init__(
        self,
        bus: EventBus,
        chronicle_path: Path,
        significance_min: int = CHRONICLE_SIGNIFICANCE_MIN,
    ) -> None:
        self.bus = bus
        self.chronicle_path = Path(chronicle_path)
        self.significance_min = significance_min

        self.chronicle_path.parent.mkdir(parents=True, exist_ok=True)
        bus.subscribe("*", self._on_event)

    def detach(self) -> None:
        self.bus.unsubscribe("*", self._on_event)

    def _on_event(self, event: SimEvent) -> None:
        significance = score_significance(event)
        if significance < self.significance_min:
            return
        self.inscribe(event, significance)

    def inscribe(self, event: SimEvent, significance: int) -> ChronicleEntry:
        entry = ChronicleEntry(
            entry_id=str(uuid.uuid4()),
            tick=event.tick,
            event_key=event.event_key,
            source=event.source,
            verb=_VERBS.get(event.event_key, "occurred"),
            details=dict(event.data),
            significance=significance,
        )
        with open(self.chronicle_path, "a", encoding="utf-8") as fh:
            fh.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")
        return entry


# ============================================================
# CHRONICLE READER  (read-only)
# ============================================================

class ChronicleReader:
    """Query helper over a chronicle JSONL file. All queries return lists of dicts."""

    def __init__(self, chronicle_path: Path) -> None:
        self.chronicle_path = Path(chronicle_path)

    def all_entries(self) -> List[Dict[str, Any]]:
        if not self.chronicle_path.exists():
            return []
        entries = []
        with open(self.chronicle_path, "r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if line:
                    entries.append(json.loads(line))
        return entries

    def by_event_key(self, event_key: str) -> List[Dict[str, Any]]:
        return [e for e in self.all_entries() if e.get("event_key") == event_key]

    def by_source(self, source: str) -> List[Dict[str, Any]]:
        return [e for e in self.all_entries() if e.get("source") == source]

    def by_significance(self, minimum: int) -> List[Dict[str, Any]]:
        return [e for e in self.all_entries() if e.get("significance", 0) >= minimum]

    def extinctions(self) -> List[Dict[str, Any]]:
        return self.by_event_key(EVT_TRIBE_EXTINCT)

    def session_markers(self) -> List[Dict[str, Any]]:
        return [
            e for e in self.all_entries()
            if e.get("event_key") in (EVT_SESSION_OPENED, EVT_SESSION_CLOSED)
        ]
