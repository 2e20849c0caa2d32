"""Registry of realtime bundle document watches with explicit release."""

import itertools
import logging
import threading
from dataclasses import dataclass

from bundle_access.models import Bundle
from bundle_access.repositories import bundles_repo

logger = logging.getLogger('bundle_access.watch')


@dataclass(frozen=True)
class WatchHandle:
    id: int
    bundle_id: str


class BundleWatchRegistry:
    """Owns every snapshot listener opened for bundle documents.

    ``subscribe`` returns a handle; ``unsubscribe`` releases one listener and
    ``close`` releases all of them. Use as a context manager so listeners
    cannot outlive their owner.
    """

    def __init__(self, db):
        self._db = db
        self._lock = threading.Lock()
        self._watches = {}
        self._ids = itertools.count(1)

    def subscribe(self, bundle_id, callback) -> WatchHandle:
        def _on_snapshot(snapshots, _changes, _read_time):
            for snapshot in snapshots:
                bundle = Bundle.from_doc(snapshot.id, snapshot.to_dict()) if snapshot.exists else None
                try:
                    callback(bundle_id, bundle)
                except Exception as e:
                    logger.error(f"❌ Bundle watch callback failed for {bundle_id}: {e}")

        watch = bundles_repo.doc_ref(self._db, bundle_id).on_snapshot(_on_snapshot)
        with self._lock:
            handle = WatchHandle(id=next(self._ids), bundle_id=bundle_id)
            self._watches[handle] = watch
        logger.debug(f"Subscribed to bundle {bundle_id} (handle {handle.id})")
        return handle

    def unsubscribe(self, handle) -> bool:
        with self._lock:
            watch = self._watches.pop(handle, None)
        if watch is None:
            return False
        watch.unsubscribe()
        return True

    def active_handles(self):
        with self._lock:
            return list(self._watches)

    def close(self):
        with self._lock:
            watches = list(self._watches.values())
            self._watches.clear()
        for watch in watches:
            try:
                watch.unsubscribe()
            except Exception as e:
                logger.warning(f"⚠️ Failed to release bundle watch: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __len__(self):
        with self._lock:
            return len(self._watches)
