"""Firestore accessors for legacy per-bundle purchases (users/{uid}/purchases)."""

from .query_utils import apply_where, first_doc

BUNDLE_ID_FIELDS = ('productBoxId', 'bundleId')


def collection_ref(db, uid):
    return db.collection('users').document(uid).collection('purchases')


def list_by_bundle(db, uid, bundle_id):
    docs = []
    seen = set()
    for field_path in BUNDLE_ID_FIELDS:
        for doc in apply_where(collection_ref(db, uid), field_path, '==', bundle_id).stream():
            if doc.id not in seen:
                seen.add(doc.id)
                docs.append(doc)
    return docs


def list_for_user(db, uid):
    return list(collection_ref(db, uid).stream())


def find_by_session_id(db, uid, session_id):
    snapshot = collection_ref(db, uid).document(session_id).get()
    if snapshot.exists:
        return snapshot
    return first_doc(apply_where(collection_ref(db, uid), 'sessionId', '==', session_id))


def upsert(db, uid, session_id, data):
    return collection_ref(db, uid).document(session_id).set(data, merge=True)


def list_buyer_ids(db):
    """Buyer uids that hold at least one legacy purchase (collection-group scan)."""
    buyer_ids = []
    for doc in db.collection_group('purchases').stream():
        parent = doc.reference.parent.parent
        if parent is None or parent.parent.id != 'users':
            continue
        if parent.id not in buyer_ids:
            buyer_ids.append(parent.id)
    return buyer_ids
