#!/usr/bin/env python3
import argparse
import json
import os
from typing import Dict, Iterable

import firebase_admin
from firebase_admin import credentials, firestore

from bundle_access.logging_config import configure_logging
from bundle_access.models import LegacyPurchase
from bundle_access.repositories import legacy_purchases_repo
from bundle_access.services import access_service, migration_service


def init_firestore():
    if os.path.exists("firebase-credentials.json"):
        cred = credentials.Certificate("firebase-credentials.json")
    else:
        raw = (os.getenv("FIREBASE_CREDENTIALS", "") or "").strip()
        if not raw:
            raise RuntimeError("Missing firebase-credentials.json and FIREBASE_CREDENTIALS env var.")
        cred = credentials.Certificate(json.loads(raw))
    if not firebase_admin._apps:
        firebase_admin.initialize_app(cred)
    return firestore.client()


def plan_user(db, uid) -> Dict[str, int]:
    """Count what migrate_all would do for one user, without writing."""
    counts = {"total": 0, "pending": 0, "skipped": 0}
    seen_bundles = set()
    for doc in legacy_purchases_repo.list_for_user(db, uid):
        counts["total"] += 1
        legacy = LegacyPurchase.from_doc(doc.id, doc.to_dict(), uid)
        if (
            not legacy.bundle_id
            or legacy.purchase_type not in migration_service.BUNDLE_PURCHASE_TYPES
            or not legacy.is_completed
            or legacy.bundle_id in seen_bundles
        ):
            counts["skipped"] += 1
            continue
        seen_bundles.add(legacy.bundle_id)
        if access_service.find_unified_purchase(db, uid, legacy.bundle_id) is None:
            counts["pending"] += 1
        else:
            counts["skipped"] += 1
    return counts


def backfill(db, uids: Iterable[str], apply_changes: bool) -> Dict[str, int]:
    totals = {"users": 0, "total": 0, "migrated": 0, "pending": 0, "skipped": 0, "errors": 0}
    for uid in uids:
        totals["users"] += 1
        if apply_changes:
            report = migration_service.migrate_all(db, uid)
            totals["total"] += report.total
            totals["migrated"] += report.migrated
            totals["skipped"] += report.skipped
            totals["errors"] += report.errors
            for item_id, error in report.batch.failed:
                print(f"  ! {uid}/{item_id}: {error}")
        else:
            counts = plan_user(db, uid)
            totals["total"] += counts["total"]
            totals["pending"] += counts["pending"]
            totals["skipped"] += counts["skipped"]
    return totals


def main():
    parser = argparse.ArgumentParser(description="Copy legacy bundle purchases into the unified purchase store.")
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply changes. Without this flag, the script runs in dry-run mode.",
    )
    parser.add_argument(
        "--uid",
        action="append",
        default=[],
        help="Only backfill this user (repeatable). Defaults to every user with legacy purchases.",
    )
    args = parser.parse_args()

    configure_logging(os.getenv("LOG_LEVEL", "WARNING"))
    db = init_firestore()
    uids = args.uid or legacy_purchases_repo.list_buyer_ids(db)
    totals = backfill(db, uids, apply_changes=args.apply)
    mode = "APPLY" if args.apply else "DRY-RUN"
    if args.apply:
        print(
            f"[{mode}] users={totals['users']} purchases={totals['total']} "
            f"migrated={totals['migrated']} skipped={totals['skipped']} errors={totals['errors']}"
        )
    else:
        print(
            f"[{mode}] users={totals['users']} purchases={totals['total']} "
            f"pending={totals['pending']} skipped={totals['skipped']}"
        )
        print("No changes were written. Re-run with --apply to persist.")


if __name__ == "__main__":
    main()
