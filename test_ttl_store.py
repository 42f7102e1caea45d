#!/usr/bin/env python3
"""
Expiry behaviour of the in-process TTL store.
"""

import threading
from datetime import datetime, timedelta, timezone

from utils.ttl_store import TTLStore

T0 = datetime(2026, 3, 10, 4, 0, tzinfo=timezone.utc)


def test_entry_expires_on_read():
    store = TTLStore()
    store.set("job", "in_progress", ttl=timedelta(minutes=5), now=T0)

    assert store.get("job", now=T0 + timedelta(minutes=4)) == "in_progress"
    assert store.get("job", now=T0 + timedelta(minutes=5)) is None
    # The expired read dropped it
    assert len(store) == 0


def test_explicit_expiry_instant():
    store = TTLStore()
    store.set("check_in:2026-03-10", 3, expires_at=T0 + timedelta(hours=1))

    assert store.contains("check_in:2026-03-10", now=T0)
    assert not store.contains("check_in:2026-03-10", now=T0 + timedelta(hours=1))


def test_default_ttl_and_no_ttl():
    store = TTLStore(default_ttl=timedelta(seconds=30))
    store.set("a", 1, now=T0)
    assert store.get("a", now=T0 + timedelta(seconds=31)) is None

    forever = TTLStore()
    forever.set("b", 2, now=T0)
    assert forever.get("b", now=T0 + timedelta(days=365)) == 2


def test_falsy_values_are_still_present():
    store = TTLStore()
    store.set("sent", 0)
    assert store.contains("sent")
    assert store.get("missing", "fallback") == "fallback"


def test_purge_pop_and_clear():
    store = TTLStore()
    store.set("old", 1, ttl=timedelta(seconds=1), now=T0)
    store.set("new", 2, ttl=timedelta(hours=1), now=T0)

    assert store.purge_expired(now=T0 + timedelta(minutes=1)) == 1
    assert store.pop("new") == 2
    assert store.pop("new", "gone") == "gone"

    store.set("x", 1)
    store.clear()
    assert len(store) == 0


def test_add_if_absent_claims_once():
    store = TTLStore()
    expires = T0 + timedelta(hours=1)

    assert store.add_if_absent("check_in:2026-03-10", None, expires_at=expires, now=T0)
    assert not store.add_if_absent("check_in:2026-03-10", None, expires_at=expires, now=T0)
    # An expired claim can be taken again
    assert store.add_if_absent("check_in:2026-03-10", 1, expires_at=expires + timedelta(days=1), now=expires)
    assert store.get("check_in:2026-03-10", now=expires) == 1


def test_add_if_absent_under_contention():
    store = TTLStore()
    claimed = []

    def claim():
        claimed.append(store.add_if_absent("job", "mine"))

    threads = [threading.Thread(target=claim) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert claimed.count(True) == 1
