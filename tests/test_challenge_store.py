import threading
from unittest import mock

import pytest
from sqlalchemy import event

from definvoice_auth.services.challenge import (
    DatabaseChallengeStore,
    MemoryChallengeStore,
    authentication_key,
    registration_key,
    usernameless_key,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(params=["memory", "database"])
def clock_and_store(request, session_factory):
    clock = FakeClock()
    if request.param == "memory":
        store = MemoryChallengeStore(ttl_seconds=300, clock=clock)
    else:
        store = DatabaseChallengeStore(session_factory, ttl_seconds=300, clock=clock)
    return clock, store


def test_take_returns_value_once(clock_and_store):
    _, store = clock_and_store
    store.put("user-1", "abc")

    assert store.take("user-1") == "abc"
    assert store.take("user-1") is None


def test_take_unknown_key(clock_and_store):
    _, store = clock_and_store
    assert store.take("nobody") is None


def test_put_overwrites_pending_challenge(clock_and_store):
    _, store = clock_and_store
    store.put("user-1", "first")
    store.put("user-1", "second")

    assert store.take("user-1") == "second"
    assert store.take("user-1") is None


def test_keys_are_independent(clock_and_store):
    _, store = clock_and_store
    store.put("user-1", "one")
    store.put("auth:a@x.com", "two")

    assert store.take("auth:a@x.com") == "two"
    assert store.take("user-1") == "one"


def test_expired_challenge_is_not_returned(clock_and_store):
    clock, store = clock_and_store
    store.put("user-1", "abc")
    clock.advance(301)

    assert store.take("user-1") is None


def test_challenge_within_ttl_is_returned(clock_and_store):
    clock, store = clock_and_store
    store.put("user-1", "abc")
    clock.advance(299)

    assert store.take("user-1") == "abc"


def test_memory_store_purges_expired_entries_on_put():
    clock = FakeClock()
    store = MemoryChallengeStore(ttl_seconds=10, clock=clock)
    store.put("a", "1")
    store.put("b", "2")
    clock.advance(11)
    store.put("c", "3")

    assert len(store) == 1


def test_memory_store_concurrent_take_hands_out_once():
    store = MemoryChallengeStore()
    store.put("user-1", "abc")
    results = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        results.append(store.take("user-1"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("abc") == 1
    assert results.count(None) == 7


def test_principal_keys():
    assert registration_key(42) == "42"
    assert authentication_key("  A@X.com ") == "auth:a@x.com"
    assert usernameless_key("xyz") == "auth:usernameless:xyz"


def test_database_put_wins_over_concurrent_insert(engine, session_factory):
    clock = FakeClock()
    store = DatabaseChallengeStore(session_factory, ttl_seconds=300, clock=clock)
    injected = []

    # another instance stores a challenge for the same key mid-transaction
    def rival_put(conn, cursor, statement, parameters, context, executemany):
        if not injected and statement.startswith("DELETE FROM webauthn_challenges"):
            injected.append(True)
            cursor.execute(
                'INSERT INTO webauthn_challenges ("key", challenge, expires_at) VALUES (?, ?, ?)',
                ("user-1", "rival", clock() + 300),
            )

    event.listen(engine, "after_cursor_execute", rival_put)
    try:
        store.put("user-1", "mine")
    finally:
        event.remove(engine, "after_cursor_execute", rival_put)

    assert injected
    assert store.take("user-1") == "mine"
    assert store.take("user-1") is None


def test_database_store_rejects_unsupported_dialect():
    bind = mock.Mock(dialect=mock.Mock())
    bind.dialect.name = "mssql"
    factory = mock.Mock(kw={"bind": bind})

    with pytest.raises(ValueError):
        DatabaseChallengeStore(factory)
