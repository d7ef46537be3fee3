from simcore.bus import (
    EVT_EVENT_GENERATED,
    EVT_SESSION_CLOSED,
    EVT_SESSION_OPENED,
    EVT_TICK_ADVANCED,
    EVT_TRIBE_EXTINCT,
    EventBus,
    SimEvent,
)
from simcore.chronicle import ChronicleInscriber, ChronicleReader, score_significance


def test_significance_scoring():
    assert score_significance(SimEvent(event_key=EVT_TICK_ADVANCED, source="s")) == 1
    assert score_significance(SimEvent(event_key=EVT_TRIBE_EXTINCT, source="s")) == 4
    assert score_significance(SimEvent(event_key="unknown.key", source="s")) == 1
    assert score_significance(SimEvent(event_key=EVT_EVENT_GENERATED, source="s", data={"priority": 5})) == 3
    assert score_significance(SimEvent(event_key=EVT_EVENT_GENERATED, source="s", data={"priority": 9})) == 4


def test_inscriber_filters_and_appends(tmp_path):
    path = tmp_path / "logs" / "chronicle.jsonl"
    bus = EventBus()
    ChronicleInscriber(bus, path)

    bus.publish(EVT_SESSION_OPENED, "simulation", tick=0)
    bus.publish(EVT_TICK_ADVANCED, "simulation", tick=1)
    bus.publish(EVT_TRIBE_EXTINCT, "simulation", tick=2, data={"tribe_id": 4, "name": "Ashkin"})
    bus.publish(EVT_SESSION_CLOSED, "simulation", tick=2)

    reader = ChronicleReader(path)
    entries = reader.all_entries()
    assert [e["event_key"] for e in entries] == [EVT_SESSION_OPENED, EVT_TRIBE_EXTINCT, EVT_SESSION_CLOSED]

    extinct = reader.extinctions()[0]
    assert extinct["tick"] == 2
    assert extinct["verb"] == "perished"
    assert extinct["details"] == {"tribe_id": 4, "name": "Ashkin"}
    assert len(reader.session_markers()) == 2
    assert len(reader.by_significance(5)) == 2
    assert len(reader.by_source("simulation")) == 3


def test_detach_stops_inscription(tmp_path):
    path = tmp_path / "chronicle.jsonl"
    bus = EventBus()
    inscriber = ChronicleInscriber(bus, path)
    inscriber.detach()
    bus.publish(EVT_TRIBE_EXTINCT, "simulation")
    assert ChronicleReader(path).all_entries() == []


def test_entries_are_appended_across_inscribers(tmp_path):
    path = tmp_path / "chronicle.jsonl"
    for _ in range(2):
        bus = EventBus()
        ChronicleInscriber(bus, path)
        bus.publish(EVT_SESSION_OPENED, "simulation")
    assert len(ChronicleReader(path).all_entries()) == 2
