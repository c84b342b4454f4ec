from app.services.ttl_cache import TTLCache


def test_entry_is_served_until_expiry(fake_clock):
    cache = TTLCache("callsign", clock=fake_clock)
    cache.set("BAW123", {"r": "G-EUUU"}, 60)

    fake_clock.advance(59)
    assert cache.get("BAW123") == {"r": "G-EUUU"}

    fake_clock.advance(2)
    assert cache.get("BAW123") is None


def test_expired_read_evicts_entry(fake_clock):
    cache = TTLCache("routeset", clock=fake_clock)
    cache.set("EZY45", {"airline_code": "EZY"}, 10)

    fake_clock.advance(11)
    assert "EZY45" in cache

    assert cache.get("EZY45") is None
    assert "EZY45" not in cache
    assert len(cache) == 0


def test_raw_inspection_does_not_evict(fake_clock):
    cache = TTLCache(clock=fake_clock)
    cache.set("RYR1", 1, 5)
    fake_clock.advance(6)

    assert "RYR1" in cache
    assert len(cache) == 1


def test_set_overwrites_value_and_expiry(fake_clock):
    cache = TTLCache(clock=fake_clock)
    cache.set("DLH4", "old", 5)
    fake_clock.advance(4)
    cache.set("DLH4", "new", 5)
    fake_clock.advance(4)

    assert cache.get("DLH4") == "new"


def test_missing_key_returns_none(fake_clock):
    cache = TTLCache(clock=fake_clock)

    assert cache.get("nope") is None
