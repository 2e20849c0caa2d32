"""Decide whether a buyer may open a bundle, and with which content.

Lookup order:

1. the unified purchase for (uid, bundle) - returned as-is when it carries items;
2. the legacy purchase for (uid, bundle) - absent means access denied;
3. the bundle's current content, resolved and filtered, assembled in memory
   into the unified shape. Nothing is written on this path; persisting the
   unified record is the job of migration_service.

A paid purchase whose content resolves to nothing is reported as
``no_content``, never as ``denied``. Store failures raise
StoreUnavailableError so the caller can offer a retry.
"""

import logging

from bundle_access.errors import STORE_ERRORS, StoreUnavailableError
from bundle_access.logging_config import log_event
from bundle_access.models import (
    ACCESS_DENIED,
    ACCESS_GRANTED,
    ACCESS_NO_CONTENT,
    AccessResult,
    Bundle,
    LegacyPurchase,
    UnifiedPurchase,
    normalize_legacy_purchase,
)
from bundle_access.repositories import bundles_repo, legacy_purchases_repo, unified_purchases_repo
from bundle_access.services import content_service

logger = logging.getLogger('bundle_access.access')


def find_unified_purchase(db, uid, bundle_id):
    try:
        snapshot = unified_purchases_repo.find_by_bundle(db, uid, bundle_id)
    except STORE_ERRORS as e:
        raise StoreUnavailableError(f"Could not read unified purchases for user {uid}: {e}") from e
    if snapshot is None:
        return None
    return UnifiedPurchase.from_doc(snapshot.id, snapshot.to_dict(), uid)


def find_legacy_purchase(db, uid, bundle_id):
    """First completed legacy purchase of the bundle, or None."""
    try:
        docs = legacy_purchases_repo.list_by_bundle(db, uid, bundle_id)
    except STORE_ERRORS as e:
        raise StoreUnavailableError(f"Could not read legacy purchases for user {uid}: {e}") from e
    for doc in docs:
        purchase = LegacyPurchase.from_doc(doc.id, doc.to_dict(), uid)
        if purchase.is_completed:
            return purchase
        logger.info(f"ℹ️ Ignoring legacy purchase {doc.id} with status '{purchase.status}'")
    return None


def load_bundle(db, bundle_id):
    try:
        snapshot, collection_name = bundles_repo.get_doc(db, bundle_id)
    except STORE_ERRORS as e:
        raise StoreUnavailableError(f"Could not read bundle {bundle_id}: {e}") from e
    if snapshot is None:
        return None
    return Bundle.from_doc(snapshot.id, snapshot.to_dict(), collection=collection_name)


def resolve_access(db, uid, bundle_id) -> AccessResult:
    unified = find_unified_purchase(db, uid, bundle_id)
    if unified is not None and unified.items:
        log_event(logger, logging.INFO, 'access_granted', uid=uid, bundle_id=bundle_id, source='unified', items=unified.total_items)
        return AccessResult(status=ACCESS_GRANTED, purchase=unified, source='unified')

    legacy = find_legacy_purchase(db, uid, bundle_id)
    if legacy is None:
        if unified is not None:
            logger.warning(f"⚠️ Unified purchase {unified.id} for bundle {bundle_id} has no items")
            return AccessResult(status=ACCESS_NO_CONTENT, purchase=unified, source='unified', reason='No content available')
        log_event(logger, logging.INFO, 'access_denied', uid=uid, bundle_id=bundle_id)
        return AccessResult(status=ACCESS_DENIED, reason='No purchase found')

    bundle = load_bundle(db, bundle_id)
    if bundle is None:
        logger.warning(f"⚠️ Legacy purchase {legacy.id} points at missing bundle {bundle_id}")
        purchase = normalize_legacy_purchase(legacy, None, [])
        return AccessResult(status=ACCESS_NO_CONTENT, purchase=purchase, source='legacy_fallback', reason='Bundle no longer exists')

    items, dropped = content_service.collect_purchase_items(db, bundle)
    purchase = normalize_legacy_purchase(legacy, bundle, items)
    if not items:
        return AccessResult(
            status=ACCESS_NO_CONTENT,
            purchase=purchase,
            source='legacy_fallback',
            reason='No content available',
            dropped=tuple(dropped),
        )
    log_event(
        logger,
        logging.INFO,
        'access_granted',
        uid=uid,
        bundle_id=bundle_id,
        source='legacy_fallback',
        items=len(items),
        dropped=len(dropped),
    )
    return AccessResult(status=ACCESS_GRANTED, purchase=purchase, source='legacy_fallback', dropped=tuple(dropped))
