"""Firestore accessors for checkout rate-limit counters."""

COUNTER_COLLECTION = 'rate_limit_counters'


def counter_doc_ref(db, counter_id, collection_name=COUNTER_COLLECTION):
    return db.collection(collection_name).document(counter_id)
