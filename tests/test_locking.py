import threading
import time

from chirpy.core.locking import ReadWriteLock


def test_readers_share_the_lock():
    lock = ReadWriteLock()
    inside = threading.Barrier(3, timeout=5)

    def reader():
        with lock.read_locked():
            # All three readers must be inside at once for the barrier to pass.
            inside.wait()

    threads = [threading.Thread(target=reader) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)
    assert not inside.broken


def test_writer_excludes_readers():
    lock = ReadWriteLock()
    events = []
    lock.acquire_write()

    def reader():
        with lock.read_locked():
            events.append("read")

    t = threading.Thread(target=reader)
    t.start()
    time.sleep(0.05)
    events.append("write-done")
    lock.release_write()
    t.join(timeout=5)
    assert events == ["write-done", "read"]


def test_writers_are_serialized():
    lock = ReadWriteLock()
    counter = {"value": 0}

    def bump():
        for _ in range(200):
            with lock.write_locked():
                current = counter["value"]
                time.sleep(0)
                counter["value"] = current + 1

    threads = [threading.Thread(target=bump) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    assert counter["value"] == 800


def test_waiting_writer_blocks_new_readers():
    lock = ReadWriteLock()
    events = []
    lock.acquire_read()

    def writer():
        with lock.write_locked():
            events.append("write")

    def late_reader():
        with lock.read_locked():
            events.append("late-read")

    w = threading.Thread(target=writer)
    w.start()
    time.sleep(0.05)
    r = threading.Thread(target=late_reader)
    r.start()
    time.sleep(0.05)
    assert events == []
    lock.release_read()
    w.join(timeout=5)
    r.join(timeout=5)
    assert events == ["write", "late-read"]


def test_concurrent_creates_get_distinct_ids(db):
    def create(n):
        for i in range(10):
            db.create_chirp(f"chirp {n}-{i}", n)

    threads = [threading.Thread(target=create, args=(n,)) for n in range(1, 5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    assert [c.id for c in db.get_chirps()] == list(range(1, 41))
