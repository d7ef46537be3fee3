from simcore.bus import EVT_TICK_ADVANCED, EVT_TRIBE_EXTINCT, EventBus, SimEvent


def test_subscribe_and_wildcard():
    bus = EventBus()
    specific, everything = [], []
    bus.subscribe(EVT_TICK_ADVANCED, specific.append)
    bus.subscribe("*", everything.append)

    bus.publish(EVT_TICK_ADVANCED, "test", tick=3, data={"tribes": 2})
    bus.publish(EVT_TRIBE_EXTINCT, "test", tick=3)

    assert [e.event_key for e in specific] == [EVT_TICK_ADVANCED]
    assert [e.event_key for e in everything] == [EVT_TICK_ADVANCED, EVT_TRIBE_EXTINCT]
    assert specific[0].data == {"tribes": 2}
    assert everything[1].data == {}


def test_unsubscribe():
    bus = EventBus()
    seen = []
    bus.subscribe(EVT_TICK_ADVANCED, seen.append)
    bus.unsubscribe(EVT_TICK_ADVANCED, seen.append)
    bus.emit(SimEvent(event_key=EVT_TICK_ADVANCED, source="test"))
    assert seen == []


def test_failing_handler_does_not_stop_emission(caplog):
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(EVT_TICK_ADVANCED, broken)
    bus.subscribe(EVT_TICK_ADVANCED, seen.append)
    bus.publish(EVT_TICK_ADVANCED, "test")

    assert len(seen) == 1
    assert "Handler error" in caplog.text


def test_unsubscribe_bound_method():
    class Listener:
        def __init__(self):
            self.seen = []

        def on_event(self, event):
            self.seen.append(event)

    bus = EventBus()
    listener = Listener()
    bus.subscribe("*", listener.on_event)
    bus.unsubscribe("*", listener.on_event)
    bus.publish(EVT_TICK_ADVANCED, "test")
    assert listener.seen == []
