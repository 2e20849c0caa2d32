"""Fixed-window request limits for checkout and other abuse-prone calls.

Counts live in Firestore when a client is available so limits hold across
workers; otherwise (or when the counter transaction fails) a per-process
window is used.
"""

import hashlib
import logging
import threading
import time

from bundle_access.repositories import rate_limit_repo

logger = logging.getLogger('bundle_access.rate_limit')


def window_start_for(now_ts, window_seconds):
    return int(now_ts // window_seconds) * int(window_seconds)


def counter_id_for(key, window_seconds, window_start):
    raw = f"{key}|{window_seconds}|{int(window_start)}".encode('utf-8')
    return hashlib.sha256(raw).hexdigest()


class RateLimiter:
    def __init__(self, firestore_module, counter_collection=rate_limit_repo.COUNTER_COLLECTION, clock=time.time):
        self._firestore = firestore_module
        self._counter_collection = counter_collection
        self._clock = clock
        self._lock = threading.Lock()
        self._events = {}

    def check(self, key, limit, window_seconds, db=None):
        """Return (allowed, retry_after_seconds) and count the attempt when allowed."""
        now_ts = self._clock()
        if db is not None:
            try:
                return self._check_shared(db, key, limit, window_seconds, now_ts)
            except Exception as e:
                logger.warning(f"⚠️ Shared rate limit unavailable for {key}, using local window: {e}")
        return self._check_local(key, limit, window_seconds, now_ts)

    def _check_shared(self, db, key, limit, window_seconds, now_ts):
        window_start = window_start_for(now_ts, window_seconds)
        retry_after = max(1, int((window_start + window_seconds) - now_ts))
        counter_ref = rate_limit_repo.counter_doc_ref(
            db,
            counter_id_for(key, window_seconds, window_start),
            collection_name=self._counter_collection,
        )

        @self._firestore.transactional
        def _increment(txn):
            snapshot = counter_ref.get(transaction=txn)
            count = int((snapshot.to_dict() or {}).get('count', 0) or 0) if snapshot.exists else 0
            if count >= limit:
                return False, retry_after
            txn.set(counter_ref, {
                'key': key,
                'count': count + 1,
                'windowStart': window_start,
                'windowSeconds': int(window_seconds),
                'expiresAt': window_start + (window_seconds * 3),
            }, merge=True)
            return True, 0

        return _increment(db.transaction())

    def _check_local(self, key, limit, window_seconds, now_ts):
        with self._lock:
            recent = [ts for ts in self._events.get(key, []) if ts > now_ts - window_seconds]
            if len(recent) >= limit:
                self._events[key] = recent
                return False, max(1, int((recent[0] + window_seconds) - now_ts))
            recent.append(now_ts)
            self._events[key] = recent
        return True, 0

    def reset(self):
        with self._lock:
            self._events.clear()
