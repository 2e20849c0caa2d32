"""Firestore accessors for unified purchases (userPurchases/{uid}/purchases)."""

from firebase_admin import firestore

from .query_utils import apply_where, first_doc

BUNDLE_ID_FIELDS = ('bundleId', 'productBoxId')


def collection_ref(db, uid):
    return db.collection('userPurchases').document(uid).collection('purchases')


def doc_ref(db, uid, bundle_id):
    return collection_ref(db, uid).document(bundle_id)


def find_by_bundle(db, uid, bundle_id):
    """Unified docs are keyed by bundle id; older ones were keyed by session id."""
    snapshot = doc_ref(db, uid, bundle_id).get()
    if snapshot.exists:
        return snapshot
    for field_path in BUNDLE_ID_FIELDS:
        doc = first_doc(apply_where(collection_ref(db, uid), field_path, '==', bundle_id))
        if doc is not None:
            return doc
    return None


def list_for_user(db, uid, limit=200):
    return list(collection_ref(db, uid).limit(limit).stream())


def create(db, uid, bundle_id, data):
    """Write only when no document exists; raises AlreadyExists otherwise."""
    return doc_ref(db, uid, bundle_id).create(data)


def replace_if_empty(db, uid, bundle_id, data):
    """Overwrite the bundle-keyed record unless it already carries items.

    Returns False when another writer filled the record first.
    """
    ref = doc_ref(db, uid, bundle_id)

    @firestore.transactional
    def _swap(txn):
        snapshot = ref.get(transaction=txn)
        if snapshot.exists and (snapshot.to_dict() or {}).get('items'):
            return False
        txn.set(ref, data)
        return True

    return _swap(db.transaction())
