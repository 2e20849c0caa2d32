"""Firestore accessors for uploaded content items."""

from .query_utils import apply_where

UPLOADS_COLLECTION = 'uploads'
BUNDLE_CONTENT_COLLECTION = 'productBoxContent'


def get_upload(db, item_id):
    return db.collection(UPLOADS_COLLECTION).document(item_id).get()


def get_bundle_content(db, item_id):
    return db.collection(BUNDLE_CONTENT_COLLECTION).document(item_id).get()


def list_bundle_content(db, bundle_id, field_path='productBoxId'):
    return list(apply_where(db.collection(BUNDLE_CONTENT_COLLECTION), field_path, '==', bundle_id).stream())


def list_uploads_for_bundle(db, bundle_id):
    return list(apply_where(db.collection(UPLOADS_COLLECTION), 'productBoxId', '==', bundle_id).stream())


def delete_bundle_content(db, bundle_id):
    deleted = 0
    for doc in list_bundle_content(db, bundle_id):
        db.collection(BUNDLE_CONTENT_COLLECTION).document(doc.id).delete()
        deleted += 1
    return deleted
