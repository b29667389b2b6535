import os
import threading

import pytest
from watchdog.events import FileDeletedEvent, FileModifiedEvent, FileMovedEvent

from cfgwatch.errors import CallbackNotFoundError, DuplicateCallbackError
from cfgwatch.filewatcher import FileWatcher, _PathEventHandler

from conftest import wait_until


def test_missing_file_fails_fast(tmp_path):
    with pytest.raises(FileNotFoundError):
        FileWatcher(str(tmp_path / "absent.json"))


def test_file_path_is_absolute(config_path, monkeypatch):
    monkeypatch.chdir(config_path.parent)
    fw = FileWatcher(config_path.name)
    assert os.path.isabs(fw.file_path)
    assert os.path.samefile(fw.file_path, config_path)


def test_call_once_all_passes_file_bytes(config_path, write_config):
    write_config({"a": 1})
    fw = FileWatcher(str(config_path))
    seen = {}
    fw.register_callback(lambda data: seen.setdefault("one", data), "one")
    fw.register_callback(lambda data: seen.setdefault("two", data), "two")

    fw.call_once_all()

    assert seen == {"one": b'{"a": 1}', "two": b'{"a": 1}'}


def test_duplicate_key_keeps_first_callback(config_path):
    fw = FileWatcher(str(config_path))
    calls = []
    fw.register_callback(lambda data: calls.append("first"), "k")

    with pytest.raises(DuplicateCallbackError):
        fw.register_callback(lambda data: calls.append("second"), "k")

    fw.call_once_all()
    assert calls == ["first"]


def test_deregister_is_idempotent(config_path):
    fw = FileWatcher(str(config_path))
    fw.deregister_callback("never-registered")
    fw.register_callback(lambda data: None, "k")
    fw.deregister_callback("k")
    fw.deregister_callback("k")
    with pytest.raises(CallbackNotFoundError):
        fw.call_once_specific("k")


def test_call_once_specific_only_calls_that_key(config_path):
    fw = FileWatcher(str(config_path))
    calls = []
    fw.register_callback(lambda data: calls.append("a"), "a")
    fw.register_callback(lambda data: calls.append("b"), "b")

    fw.call_once_specific("b")

    assert calls == ["b"]


def test_call_once_specific_unknown_key(config_path):
    fw = FileWatcher(str(config_path))
    with pytest.raises(CallbackNotFoundError):
        fw.call_once_specific("nope")


def test_failing_callback_does_not_block_others(config_path):
    fw = FileWatcher(str(config_path))
    calls = []

    def boom(data):
        raise RuntimeError("boom")

    fw.register_callback(boom, "boom")
    fw.register_callback(lambda data: calls.append(data), "ok")

    fw.call_once_all()

    assert calls == [b"{}"]


def test_call_once_all_raises_when_file_unreadable(config_path):
    fw = FileWatcher(str(config_path))
    config_path.unlink()
    with pytest.raises(OSError):
        fw.call_once_all()


def test_callback_may_deregister_itself_during_dispatch(config_path):
    fw = FileWatcher(str(config_path))
    calls = []

    def once(data):
        calls.append(data)
        fw.deregister_callback("once")

    fw.register_callback(once, "once")
    fw.call_once_all()
    fw.call_once_all()

    assert len(calls) == 1


def test_event_classification(config_path, tmp_path):
    import queue

    events = queue.Queue()
    handler = _PathEventHandler(str(config_path), events)
    other = str(tmp_path / "other.json")

    handler.dispatch(FileModifiedEvent(str(config_path)))
    handler.dispatch(FileModifiedEvent(other))
    handler.dispatch(FileMovedEvent(other, str(config_path)))
    handler.dispatch(FileMovedEvent(str(config_path), other))
    handler.dispatch(FileDeletedEvent(str(config_path)))

    kinds = []
    while not events.empty():
        kinds.append(events.get_nowait()[0])
    assert kinds == ["write", "write", "remove", "remove"]


@pytest.mark.timeout(15)
def test_write_event_dispatches_new_contents(config_path, write_config):
    fw = FileWatcher(str(config_path))
    seen = []
    fw.register_callback(seen.append, "seen")
    fw.start_watching()
    try:
        assert fw.is_watching
        write_config({"step": 2})
        assert wait_until(lambda: seen and seen[-1] == b'{"step": 2}')
    finally:
        fw.stop_watching()
    assert not fw.is_watching


@pytest.mark.timeout(15)
def test_stop_watching_twice_is_harmless(config_path):
    fw = FileWatcher(str(config_path))
    fw.start_watching()
    fw.stop_watching()
    fw.stop_watching()
    assert not fw.is_watching


def test_stop_before_start_is_harmless(config_path):
    fw = FileWatcher(str(config_path))
    fw.stop_watching()
    fw.stop_watching()
    with pytest.raises(RuntimeError):
        fw.start_watching()


@pytest.mark.timeout(15)
def test_start_twice_fails(config_path):
    fw = FileWatcher(str(config_path))
    fw.start_watching()
    try:
        with pytest.raises(RuntimeError):
            fw.start_watching()
    finally:
        fw.stop_watching()


def test_start_fails_if_file_vanished(config_path):
    fw = FileWatcher(str(config_path))
    config_path.unlink()
    with pytest.raises(FileNotFoundError):
        fw.start_watching()


@pytest.mark.timeout(15)
def test_removed_file_stops_watcher(config_path):
    fw = FileWatcher(str(config_path))
    fw.start_watching()
    config_path.unlink()

    assert wait_until(lambda: not fw.is_watching)
    # stopping an already self-stopped watcher is still safe
    fw.stop_watching()
    with pytest.raises(RuntimeError):
        fw.start_watching()


@pytest.mark.timeout(15)
def test_dispatch_cycles_do_not_overlap(config_path, write_config):
    fw = FileWatcher(str(config_path))
    active = []
    overlaps = []
    lock = threading.Lock()

    def slow(data):
        with lock:
            active.append(1)
            if len(active) > 1:
                overlaps.append(True)
        threading.Event().wait(0.05)
        with lock:
            active.pop()

    fw.register_callback(slow, "slow")
    fw.start_watching()
    try:
        workers = [threading.Thread(target=fw.call_once_all) for _ in range(3)]
        for w in workers:
            w.start()
        for n in range(3):
            write_config({"n": n})
        for w in workers:
            w.join()
    finally:
        fw.stop_watching()
    assert overlaps == []
