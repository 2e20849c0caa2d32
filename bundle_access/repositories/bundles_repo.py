"""Firestore accessors for bundles (and the older productBoxes collection)."""

from .query_utils import apply_where

BUNDLES_COLLECTION = 'bundles'
LEGACY_BUNDLES_COLLECTION = 'productBoxes'


def doc_ref(db, bundle_id, collection_name=BUNDLES_COLLECTION):
    return db.collection(collection_name).document(bundle_id)


def get_doc(db, bundle_id):
    """Return (snapshot, collection_name); snapshot is None when absent from both collections."""
    for collection_name in (BUNDLES_COLLECTION, LEGACY_BUNDLES_COLLECTION):
        snapshot = doc_ref(db, bundle_id, collection_name).get()
        if snapshot.exists:
            return snapshot, collection_name
    return None, BUNDLES_COLLECTION


def list_by_creator(db, creator_id, limit=200):
    query = apply_where(db.collection(BUNDLES_COLLECTION), 'creatorId', '==', creator_id)
    return list(query.limit(limit).stream())


def update_doc(db, bundle_id, updates, collection_name=BUNDLES_COLLECTION):
    return doc_ref(db, bundle_id, collection_name).update(updates)


def delete_doc(db, bundle_id, collection_name=BUNDLES_COLLECTION):
    return doc_ref(db, bundle_id, collection_name).delete()
