from __future__ import annotations

import threading
import time

from toggles.core.store.rwlock import ReadWriteLock


def test_readers_share_the_lock():
    lock = ReadWriteLock()
    inside = threading.Barrier(3, timeout=2.0)
    errors = []

    def reader():
        with lock.read():
            try:
                inside.wait()
            except threading.BrokenBarrierError as e:
                errors.append(e)

    threads = [threading.Thread(target=reader) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(3.0)
    assert errors == []


def test_writer_excludes_readers():
    lock = ReadWriteLock()
    order = []
    lock.acquire_write()

    def reader():
        with lock.read():
            order.append("read")

    t = threading.Thread(target=reader)
    t.start()
    time.sleep(0.05)
    order.append("write-done")
    lock.release_write()
    t.join(2.0)
    assert order == ["write-done", "read"]


def test_waiting_writer_blocks_new_readers():
    lock = ReadWriteLock()
    order = []
    lock.acquire_read()

    def writer():
        with lock.write():
            order.append("write")

    def late_reader():
        with lock.read():
            order.append("late-read")

    w = threading.Thread(target=writer)
    w.start()
    time.sleep(0.05)
    r = threading.Thread(target=late_reader)
    r.start()
    time.sleep(0.05)
    assert order == []
    lock.release_read()
    w.join(2.0)
    r.join(2.0)
    assert order == ["write", "late-read"]
