import logging

from ursa_save.events import EventBus, SignalType


def test_publish_reaches_subscribers_in_order():
    bus = EventBus()
    seen = []
    bus.subscribe(SignalType.SLOT_SAVED, lambda e: seen.append(("first", e.payload["slot"])))
    bus.subscribe(SignalType.SLOT_SAVED, lambda e: seen.append(("second", e.payload["slot"])))

    bus.publish(SignalType.SLOT_SAVED, {"slot": "alpha"})

    assert seen == [("first", "alpha"), ("second", "alpha")]


def test_unsubscribe_callable():
    bus = EventBus()
    seen = []
    remove = bus.subscribe(SignalType.SLOT_DELETED, seen.append)

    remove()
    bus.publish(SignalType.SLOT_DELETED, {"slot": "alpha"})

    assert seen == []


def test_failing_subscriber_does_not_break_publisher(caplog):
    bus = EventBus()
    seen = []

    def broken(_event):
        raise RuntimeError("boom")

    bus.subscribe(SignalType.SLOT_FAILED, broken)
    bus.subscribe(SignalType.SLOT_FAILED, seen.append)

    with caplog.at_level(logging.ERROR):
        bus.publish(SignalType.SLOT_FAILED, {"code": "invalid-slot"})

    assert len(seen) == 1
    assert "Unhandled exception" in caplog.text


def test_subscribe_many_and_signal_names():
    bus = EventBus()
    seen = []
    detach = bus.subscribe_many(SignalType.all(), lambda e: seen.append(e.name))

    bus.publish(SignalType.RECOVERY_FAILED, {})
    bus.publish("unrelated", {})
    detach()
    bus.publish(SignalType.SLOT_SAVED, {})

    assert seen == [SignalType.RECOVERY_FAILED]
    assert len(SignalType.all()) == 11
    assert all(name.startswith("save:") for name in SignalType.all())


def test_subscribers_cannot_change_nested_payload_for_each_other():
    bus = EventBus()
    seen = []
    bus.subscribe(SignalType.RECOVERY_STARTUP_CHECKED, lambda e: e.payload["diagnostics"].append("tampered"))
    bus.subscribe(SignalType.RECOVERY_STARTUP_CHECKED, lambda e: seen.append(list(e.payload["diagnostics"])))
    diagnostics = [{"code": "missing-save"}]

    bus.publish(SignalType.RECOVERY_STARTUP_CHECKED, {"status": "clean", "diagnostics": diagnostics})

    assert seen == [[{"code": "missing-save"}]]
    assert diagnostics == [{"code": "missing-save"}]
