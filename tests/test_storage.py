import logging
import threading

from reflex.kv_store  import SQLiteKVStore
from reflex.scheduler import DebouncedWriter


# SQLiteKVStore

def test_get_missing_key(store):
    assert store.get("nope") is None


def test_put_overwrites(store):
    store.put("k", "v1")
    store.put("k", "v2")
    assert store.get("k") == "v2"
    assert store.keys() == ["k"]
    store.delete("k")
    assert store.get("k") is None


def test_file_store_survives_reopen(tmp_path):
    path = str(tmp_path / "reflex.db")
    first = SQLiteKVStore(path)
    first.put("srg:main", '{"version": 1, "nodes": []}')
    first.close()

    second = SQLiteKVStore(path)
    assert second.get("srg:main") == '{"version": 1, "nodes": []}'
    second.close()


# DebouncedWriter

def test_flush_without_pending_write():
    writes = []
    writer = DebouncedWriter(lambda: writes.append(1), delay=60)
    assert not writer.pending
    assert writer.flush() is False
    assert writes == []


def test_rapid_schedules_coalesce():
    writes = []
    writer = DebouncedWriter(lambda: writes.append(1), delay=60)
    for _ in range(10):
        writer.schedule()
    assert writer.pending
    assert writer.flush() is True
    assert writes == [1]
    assert writer.writes == 1
    assert not writer.pending


def test_cancel_drops_pending_write():
    writes = []
    writer = DebouncedWriter(lambda: writes.append(1), delay=60)
    writer.schedule()
    assert writer.cancel() is True
    assert writer.cancel() is False
    assert writes == []


def test_timer_fires_once():
    done = threading.Event()
    writer = DebouncedWriter(done.set, delay=0.05)
    writer.schedule()
    writer.schedule()
    assert done.wait(timeout=5)
    assert not writer.pending


def test_write_errors_are_logged(caplog):
    def boom():
        raise IOError("disk full")

    writer = DebouncedWriter(boom, delay=60)
    writer.schedule()
    with caplog.at_level(logging.ERROR, logger="reflex.scheduler"):
        writer.flush()
    assert "Debounced write failed" in caplog.text
    assert writer.writes == 0
