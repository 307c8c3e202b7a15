"""Unit tests for per-key locks"""

import threading
import pytest
from offer_gateway.services.concurrency import KeyedLocks


def test_lock_entries_dropped_after_release():
    locks = KeyedLocks()

    for n in range(10000):
        with locks.hold(("offer", n)):
            assert len(locks) == 1

    assert len(locks) == 0


def test_nested_keys_released_in_turn():
    locks = KeyedLocks()

    with locks.hold(("enquiry", 1)):
        with locks.hold(("property", 1)):
            assert len(locks) == 2
        assert len(locks) == 1

    assert len(locks) == 0


def test_entry_kept_while_another_thread_waits():
    locks = KeyedLocks()
    held = threading.Event()
    release = threading.Event()
    order = []

    def first():
        with locks.hold("offer-1"):
            held.set()
            release.wait(timeout=5)
            order.append("first")

    def second():
        held.wait(timeout=5)
        with locks.hold("offer-1"):
            order.append("second")

    threads = [threading.Thread(target=first), threading.Thread(target=second)]
    for thread in threads:
        thread.start()

    held.wait(timeout=5)
    assert len(locks) == 1
    release.set()
    for thread in threads:
        thread.join(timeout=5)

    assert order == ["first", "second"]
    assert len(locks) == 0


def test_exception_inside_hold_releases_entry():
    locks = KeyedLocks()

    with pytest.raises(RuntimeError):
        with locks.hold("offer-1"):
            raise RuntimeError("boom")

    assert len(locks) == 0
    with locks.hold("offer-1"):
        assert len(locks) == 1
