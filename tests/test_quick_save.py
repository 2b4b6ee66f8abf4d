import json

from ursa_save.save import QuickSaveScheduler, QuickSaveService

QUICK = "save:quick"


def test_quick_save_and_load_round_trip(storage, store, make_state):
    quick = QuickSaveService(storage, store)
    saved = store.get_state()

    assert quick.quick_save()
    assert json.loads(storage.get(QUICK))["version"] == 1

    store.set_state(lambda _prev: make_state(player_x=0))
    assert quick.quick_load()
    assert store.get_state() == saved


def test_quick_load_without_save(storage, store):
    assert QuickSaveService(storage, store).quick_load() is False
    assert store.set_calls == 0


def test_quick_load_of_garbage_is_false(storage, store):
    storage.set(QUICK, "{garbage")

    assert QuickSaveService(storage, store).quick_load() is False


def test_quick_save_failures_are_false(raising_storage, store, storage):
    assert QuickSaveService(None, store).quick_save() is False
    assert QuickSaveService(raising_storage(fail_set={QUICK}), store).quick_save() is False
    assert QuickSaveService(storage, type(store)()).quick_save() is False


def test_clear(storage, store, raising_storage):
    quick = QuickSaveService(storage, store)
    quick.quick_save()

    assert quick.clear()
    assert storage.get(QUICK) is None
    assert QuickSaveService(raising_storage(fail_remove={QUICK}), store).clear() is False


def test_custom_key(storage, store):
    QuickSaveService(storage, store, key="other:quick").quick_save()

    assert storage.get("other:quick") is not None
    assert storage.get(QUICK) is None


class _Saver:
    def __init__(self, result=True):
        self.calls = 0
        self.result = result

    def __call__(self):
        self.calls += 1
        return self.result


def test_scheduler_saves_once_after_wait(clock):
    saver = _Saver()
    scheduler = QuickSaveScheduler(saver, wait_ms=500, clock=clock)

    scheduler.notify_change()
    clock.advance(499)
    assert scheduler.poll() is False
    assert saver.calls == 0

    clock.advance(1)
    assert scheduler.poll() is True
    assert saver.calls == 1
    assert not scheduler.pending
    assert scheduler.poll() is False


def test_notifications_while_armed_do_not_postpone(clock):
    saver = _Saver()
    scheduler = QuickSaveScheduler(saver, wait_ms=500, clock=clock)

    scheduler.notify_change()
    for _ in range(4):
        clock.advance(200)
        scheduler.notify_change()
        scheduler.poll()

    assert saver.calls == 1


def test_flush_and_dispose(clock):
    saver = _Saver()
    scheduler = QuickSaveScheduler(saver, wait_ms=500, clock=clock)

    assert scheduler.flush() is False
    scheduler.notify_change()
    assert scheduler.flush() is True
    assert saver.calls == 1

    scheduler.notify_change()
    scheduler.dispose()
    clock.advance(10_000)
    assert scheduler.poll() is False
    assert saver.calls == 1


def test_scheduler_survives_raising_save(clock):
    def explode():
        raise RuntimeError("disk full")

    scheduler = QuickSaveScheduler(explode, wait_ms=0, clock=clock)
    scheduler.notify_change()

    assert scheduler.poll() is False
    assert not scheduler.pending


def test_scheduler_drives_quick_save_service(storage, store, clock):
    quick = QuickSaveService(storage, store)
    scheduler = QuickSaveScheduler(quick.quick_save, wait_ms=100, clock=clock)

    scheduler.notify_change()
    clock.advance(100)
    scheduler.poll()

    assert storage.get(QUICK) is not None
