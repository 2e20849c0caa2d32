from types import SimpleNamespace

from firebase_admin import firestore

from bundle_access.services.rate_limit_service import RateLimiter, counter_id_for, window_start_for

from conftest import inline_transactional


class _Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def test_local_window_blocks_after_limit_and_recovers():
    clock = _Clock(1000.0)
    limiter = RateLimiter(firestore, clock=clock)

    assert limiter.check('checkout:u1', 2, 60) == (True, 0)
    assert limiter.check('checkout:u1', 2, 60) == (True, 0)
    allowed, retry_after = limiter.check('checkout:u1', 2, 60)

    assert allowed is False
    assert 1 <= retry_after <= 60

    clock.now += 61
    assert limiter.check('checkout:u1', 2, 60) == (True, 0)


def test_keys_are_limited_independently():
    limiter = RateLimiter(firestore, clock=_Clock(50.0))

    assert limiter.check('checkout:a', 1, 60)[0] is True
    assert limiter.check('checkout:a', 1, 60)[0] is False
    assert limiter.check('checkout:b', 1, 60)[0] is True


def test_shared_counter_failure_falls_back_to_local_window(fake_db):
    limiter = RateLimiter(SimpleNamespace(transactional=inline_transactional), clock=_Clock(10.0))
    fake_db.failing.add('rate_limit_counters')

    assert limiter.check('checkout:u1', 1, 60, db=fake_db) == (True, 0)
    assert limiter.check('checkout:u1', 1, 60, db=fake_db)[0] is False


def test_counter_ids_are_stable_per_window():
    start = window_start_for(125.0, 60)

    assert start == 120
    assert counter_id_for('k', 60, start) == counter_id_for('k', 60, 120)
    assert counter_id_for('k', 60, start) != counter_id_for('k', 60, 180)


def test_shared_counter_is_enforced_across_limiters(fake_db):
    firestore_module = SimpleNamespace(transactional=inline_transactional)
    first = RateLimiter(firestore_module, clock=_Clock(10.0))
    second = RateLimiter(firestore_module, clock=_Clock(10.0))

    assert first.check('checkout:u1', 1, 60, db=fake_db) == (True, 0)
    assert second.check('checkout:u1', 1, 60, db=fake_db)[0] is False
    assert fake_db.writes['rate_limit_counters'] == 1
