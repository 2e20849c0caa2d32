"""Backfill legacy purchases into the unified purchase shape."""

import dataclasses
import logging
import time

from google.api_core import exceptions as google_exceptions

from bundle_access.errors import (
    STORE_ERRORS,
    BundleAccessError,
    BundleNotFoundError,
    PurchaseNotFoundError,
    StoreUnavailableError,
)
from bundle_access.models import LegacyPurchase, MigrationOutcome, MigrationReport, normalize_legacy_purchase
from bundle_access.repositories import legacy_purchases_repo, unified_purchases_repo
from bundle_access.services import access_service, content_service

logger = logging.getLogger('bundle_access.migration')

BUNDLE_PURCHASE_TYPES = {'', 'product_box', 'bundle'}


def migrate_one(db, uid, bundle_id) -> MigrationOutcome:
    """Create the unified record for (uid, bundle_id) from its legacy purchase.

    A no-op returning ``created=False`` when a unified record with items
    already exists. An empty unified record is replaced once the bundle
    resolves to deliverable items. Nothing is written while any content
    lookup is failing. The legacy record is never modified.
    """
    existing = access_service.find_unified_purchase(db, uid, bundle_id)
    if existing is not None and existing.items:
        logger.info(f"⏭️ Purchase of bundle {bundle_id} by {uid} already migrated ({existing.id})")
        return MigrationOutcome(purchase_id=existing.id, bundle_id=bundle_id)

    legacy = access_service.find_legacy_purchase(db, uid, bundle_id)
    bundle = access_service.load_bundle(db, bundle_id) if legacy is not None else None
    if existing is not None and bundle is None:
        return MigrationOutcome(purchase_id=existing.id, bundle_id=bundle_id)
    if legacy is None:
        raise PurchaseNotFoundError(f"No legacy purchase found for bundle {bundle_id}")
    if bundle is None:
        raise BundleNotFoundError(f"Bundle {bundle_id} not found")

    items, dropped = content_service.collect_purchase_items(db, bundle)
    failed_lookups = [item_id for item_id, reason in dropped if reason.startswith(content_service.LOOKUP_ERROR)]
    if failed_lookups:
        raise StoreUnavailableError(
            f"Content lookup failed for bundle {bundle_id} ({', '.join(failed_lookups)}); nothing written"
        )
    if existing is not None and not items:
        logger.info(f"⏭️ Bundle {bundle_id} still has no deliverable items for {uid}")
        return MigrationOutcome(purchase_id=existing.id, bundle_id=bundle_id, dropped=len(dropped))

    unified = dataclasses.replace(normalize_legacy_purchase(legacy, bundle, items), source='migration')
    record = unified.to_dict()
    record['legacyPurchaseId'] = legacy.id
    record['migratedAt'] = time.time()

    try:
        if existing is None:
            unified_purchases_repo.create(db, uid, bundle_id, record)
        elif not unified_purchases_repo.replace_if_empty(db, uid, bundle_id, record):
            logger.info(f"⏭️ Concurrent migration already filled bundle {bundle_id} for {uid}")
            return MigrationOutcome(purchase_id=unified.id, bundle_id=bundle_id)
    except google_exceptions.AlreadyExists:
        logger.info(f"⏭️ Concurrent migration already wrote bundle {bundle_id} for {uid}")
        return MigrationOutcome(purchase_id=unified.id, bundle_id=bundle_id)
    except STORE_ERRORS as e:
        raise StoreUnavailableError(f"Could not write unified purchase for bundle {bundle_id}: {e}") from e

    logger.info(f"✅ Migrated purchase {legacy.id} of bundle {bundle_id} for {uid}: {len(items)} items")
    return MigrationOutcome(
        purchase_id=unified.id,
        bundle_id=bundle_id,
        items_migrated=len(items),
        created=True,
        dropped=len(dropped),
    )


def migrate_all(db, uid) -> MigrationReport:
    """Migrate every legacy bundle purchase of a user, continuing past failures."""
    try:
        docs = legacy_purchases_repo.list_for_user(db, uid)
    except STORE_ERRORS as e:
        raise StoreUnavailableError(f"Could not list legacy purchases for user {uid}: {e}") from e

    report = MigrationReport(total=len(docs))
    logger.info(f"🔄 Migrating {len(docs)} legacy purchases for user {uid}")
    seen_bundles = set()
    for doc in docs:
        legacy = LegacyPurchase.from_doc(doc.id, doc.to_dict(), uid)
        if not legacy.bundle_id or legacy.purchase_type not in BUNDLE_PURCHASE_TYPES:
            report.skipped += 1
            report.details.append(f"Skipped {doc.id}: not a bundle purchase")
            continue
        if not legacy.is_completed:
            report.skipped += 1
            report.details.append(f"Skipped {doc.id}: status '{legacy.status}'")
            continue
        if legacy.bundle_id in seen_bundles:
            report.skipped += 1
            report.details.append(f"Skipped {doc.id}: bundle {legacy.bundle_id} already handled")
            continue
        seen_bundles.add(legacy.bundle_id)

        try:
            outcome = migrate_one(db, uid, legacy.bundle_id)
        except BundleAccessError as e:
            logger.warning(f"⚠️ Migration of purchase {doc.id} failed: {e}")
            report.errors += 1
            report.batch.failed.append((doc.id, str(e)))
            report.details.append(f"Error {doc.id}: {e}")
            continue
        except Exception as e:
            logger.error(f"❌ Unexpected error migrating purchase {doc.id}: {e}")
            report.errors += 1
            report.batch.failed.append((doc.id, str(e) or e.__class__.__name__))
            report.details.append(f"Error {doc.id}: {e}")
            continue

        report.batch.succeeded.append(outcome)
        if outcome.created:
            report.migrated += 1
            report.details.append(f"Migrated {doc.id}: {outcome.items_migrated} items")
        else:
            report.skipped += 1
            report.details.append(f"Skipped {doc.id}: already migrated")

    logger.info(
        f"🎉 Migration for {uid} complete: migrated={report.migrated} skipped={report.skipped} errors={report.errors}"
    )
    return report
